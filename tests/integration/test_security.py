"""Security-related integration tests."""

from __future__ import annotations

import pytest
from fastapi import status
from fastapi.testclient import TestClient

from mealpilot.config import get_settings
from mealpilot.db.repository import reset_repository_state
from mealpilot.server.app import create_app


@pytest.fixture()
def secure_client(tmp_path, monkeypatch) -> TestClient:
    monkeypatch.setenv("MEALPILOT_DATABASE_PATH", str(tmp_path / "secure.db"))
    monkeypatch.setenv("MEALPILOT_API_TOKEN", "secret-token")
    get_settings.cache_clear()
    reset_repository_state()
    app = create_app()
    client = TestClient(app)
    yield client
    monkeypatch.delenv("MEALPILOT_API_TOKEN", raising=False)
    reset_repository_state()
    get_settings.cache_clear()


def test_api_routes_require_token(secure_client):
    response = secure_client.get("/api/settings", params={"username": "alice"})
    assert response.status_code == status.HTTP_401_UNAUTHORIZED

    for headers in ({"Authorization": "Bearer secret-token"}, {"X-API-Key": "secret-token"}):
        response = secure_client.get("/api/settings", params={"username": "alice"}, headers=headers)
        assert response.status_code == status.HTTP_200_OK


def test_query_token_is_accepted(secure_client):
    response = secure_client.get(
        "/api/settings", params={"username": "alice", "api_token": "secret-token"}
    )
    assert response.status_code == status.HTTP_200_OK


def test_health_stays_public(secure_client):
    assert secure_client.get("/health").status_code == status.HTTP_200_OK
