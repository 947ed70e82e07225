"""Dependency definitions for the Mealpilot proxy server."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any, Callable, Dict, List, Optional

from fastapi import Depends, HTTPException, Request, status

from mealpilot.config import get_settings
from mealpilot.db.sessions import (
    create_session,
    delete_session,
    get_session_cookies,
    session_age_minutes,
)
from mealpilot.db.user_settings import load_user_settings, merge_user_settings
from mealpilot.llm.interface import chat_completion
from mealpilot.models.slot import HistoricalOrder
from mealpilot.upstream.history import collect_order_history
from mealpilot.upstream.meican import LoginOutcome, MeicanClient, login

UpstreamClientFactory = Callable[[str], MeicanClient]
Authenticator = Callable[[str, str], LoginOutcome]
SessionCreator = Callable[[str], str]
SessionLookup = Callable[[str], Optional[str]]
SessionDeleter = Callable[[str], bool]
SessionAgeProvider = Callable[[str], Optional[int]]
SettingsLoader = Callable[[str], Dict[str, Any]]
SettingsMerger = Callable[[str, Dict[str, Any]], Dict[str, Any]]
HistoryCollector = Callable[[MeicanClient, Optional[date], Optional[date]], List[HistoricalOrder]]
ChatForwarder = Callable[..., Dict[str, Any]]


@dataclass(frozen=True)
class AuthContext:
    """Platform credentials resolved for one request."""

    cookie: str
    session_id: Optional[str] = None


def get_upstream_factory() -> UpstreamClientFactory:
    return lambda cookie: MeicanClient(cookie)


def get_authenticator() -> Authenticator:
    return login


def get_session_creator() -> SessionCreator:
    return create_session


def get_session_lookup() -> SessionLookup:
    return get_session_cookies


def get_session_deleter() -> SessionDeleter:
    return delete_session


def get_session_age_provider() -> SessionAgeProvider:
    return session_age_minutes


def get_settings_loader() -> SettingsLoader:
    return load_user_settings


def get_settings_merger() -> SettingsMerger:
    return merge_user_settings


def get_history_collector() -> HistoryCollector:
    return lambda client, begin, end: collect_order_history(client, begin, end)


def get_chat_forwarder() -> ChatForwarder:
    return chat_completion


def get_auth_context(
    request: Request,
    lookup: SessionLookup = Depends(get_session_lookup),
) -> AuthContext:
    """Stored session cookies win; raw cookie headers are the fallback."""

    session_id = request.headers.get("X-Session-Id")
    cookie = ""
    if session_id:
        cookie = lookup(session_id) or ""
    if not cookie:
        cookie = request.headers.get("X-Meican-Cookie") or request.headers.get("Cookie") or ""
    return AuthContext(cookie=cookie, session_id=session_id)


def get_upstream_client(
    auth: AuthContext = Depends(get_auth_context),
    factory: UpstreamClientFactory = Depends(get_upstream_factory),
) -> MeicanClient:
    return factory(auth.cookie)


def require_api_token(
    request: Request,
    settings = Depends(get_settings),
) -> None:
    """Ensure requests carry the configured API token when required."""

    token = settings.api_token
    if not token:
        return

    auth_header = request.headers.get("Authorization")
    if auth_header and auth_header.split("Bearer ")[-1].strip() == token:
        return

    if request.headers.get("X-API-Key") == token:
        return

    if request.query_params.get("api_token") == token:
        return

    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
