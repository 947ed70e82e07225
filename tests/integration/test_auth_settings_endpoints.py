"""Integration tests for login, settings and AI forwarding routes."""

from __future__ import annotations

from fastapi import status

from mealpilot.llm.interface import LLMError
from mealpilot.server import deps
from mealpilot.upstream.meican import LoginOutcome


def _authenticate_as(app, outcome: LoginOutcome) -> list:
    attempts: list = []

    def authenticator(username, password):
        attempts.append((username, password))
        return outcome

    app.dependency_overrides[deps.get_authenticator] = lambda: authenticator
    return attempts


def test_login_requires_credentials(client):
    response = client.post("/api/auth/login", json={"username": "alice"})

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json() == {"error": "Username and password are required"}


def test_login_rejection_is_401(app, client):
    _authenticate_as(app, LoginOutcome(success=False, error="Invalid username or password"))

    response = client.post("/api/auth/login", json={"username": "alice", "password": "nope"})

    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert response.json() == {"success": False, "error": "Invalid username or password"}


def test_login_status_logout_round_trip(app, client):
    attempts = _authenticate_as(app, LoginOutcome(success=True, cookies="PLAY_SESSION=abc"))

    response = client.post("/api/auth/login", json={"username": "alice", "password": "pw"})
    assert response.status_code == status.HTTP_200_OK
    body = response.json()
    assert body["success"] is True
    assert body["sessionId"].startswith("session_")
    assert attempts == [("alice", "pw")]

    headers = {"X-Session-Id": body["sessionId"]}
    status_body = client.get("/api/auth/status", headers=headers).json()
    assert status_body == {"authenticated": True, "sessionAge": 0}

    assert client.post("/api/auth/logout", headers=headers).json()["success"] is True
    assert client.get("/api/auth/status", headers=headers).json() == {"authenticated": False}


def test_status_without_session(client):
    assert client.get("/api/auth/status").json() == {"authenticated": False}


def test_settings_round_trip(client):
    assert client.get("/api/settings").status_code == status.HTTP_400_BAD_REQUEST
    assert client.get("/api/settings", params={"username": "alice"}).json() == {}

    response = client.post(
        "/api/settings",
        json={"username": "alice", "settings": {"planningMode": "health"}},
    )
    assert response.json() == {"success": True}
    client.post("/api/settings", json={"username": "alice", "settings": {"enableWeekends": True}})

    stored = client.get("/api/settings", params={"username": "alice"}).json()
    assert stored == {"planningMode": "health", "enableWeekends": True}


def test_settings_post_validation(client):
    response = client.post("/api/settings", json={"username": "alice"})

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json() == {"error": "Username and settings required"}


def test_ai_chat_forwards_and_reports_errors(app, client):
    forwarded = {}

    def forwarder(**kwargs):
        forwarded.update(kwargs)
        return {"choices": [{"message": {"content": "[]"}}]}

    app.dependency_overrides[deps.get_chat_forwarder] = lambda: forwarder
    payload = {
        "baseUrl": "https://llm.test/v1",
        "apiKey": "sk-test",
        "model": "qwen",
        "messages": [{"role": "user", "content": "plan"}],
    }

    assert client.post("/api/ai/chat", json={"baseUrl": "x"}).json() == {"error": "Missing required fields"}

    response = client.post("/api/ai/chat", json=payload)
    assert response.status_code == status.HTTP_200_OK
    assert forwarded["model"] == "qwen"
    assert forwarded["api_key"] == "sk-test"

    def failing(**kwargs):
        raise LLMError("AI provider returned 401: bad key")

    app.dependency_overrides[deps.get_chat_forwarder] = lambda: failing
    response = client.post("/api/ai/chat", json=payload)
    assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
    assert response.json() == {"error": "AI Provider Error", "details": "AI provider returned 401: bad key"}
