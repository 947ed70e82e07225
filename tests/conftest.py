"""Shared pytest fixtures for the Mealpilot test suite."""

from __future__ import annotations

from typing import Generator

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from factories import FakeGateway
from mealpilot.config import get_settings
from mealpilot.db.repository import reset_repository_state
from mealpilot.models.preferences import UserPreferences
from mealpilot.models.slot import Address, AddressBook
from mealpilot.server.app import create_app


@pytest.fixture()
def fake_gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture()
def default_book() -> AddressBook:
    return AddressBook(
        addresses=[
            Address(unique_id="addr-1", name="Tower A Lobby"),
            Address(unique_id="addr-2", name="Tower B Lobby"),
        ],
        default_address_id="addr-1",
    )


@pytest.fixture()
def configured_prefs() -> UserPreferences:
    return UserPreferences(username="alice", gemini_api_key="gemini-key")


@pytest.fixture()
def app() -> Generator[FastAPI, None, None]:
    """Create a new FastAPI app instance for each test and reset overrides."""

    application = create_app()
    yield application
    application.dependency_overrides.clear()


@pytest.fixture()
def client(app) -> TestClient:
    """Return a test client bound to the FastAPI app."""

    return TestClient(app)


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path, monkeypatch):
    """Ensure each test uses isolated database and preferences locations."""

    monkeypatch.setenv("MEALPILOT_DATABASE_PATH", str(tmp_path / "test_mealpilot.db"))
    monkeypatch.setenv("MEALPILOT_PREFERENCES_PATH", str(tmp_path / "preferences.json"))
    monkeypatch.delenv("MEALPILOT_API_TOKEN", raising=False)
    monkeypatch.delenv("MEALPILOT_SESSION_MAX_AGE_HOURS", raising=False)
    get_settings.cache_clear()
    reset_repository_state()
    yield
    reset_repository_state()
    get_settings.cache_clear()
