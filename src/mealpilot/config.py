"""Application configuration helpers."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

ENV_FILE_CANDIDATES = (Path(".env"), Path(".env.local"))


class Settings(BaseModel):
    """Global application settings loaded from environment variables or .env files."""

    database_path: Path = Field(
        default=Path("./data/mealpilot.db"),
        description="SQLite database holding proxy sessions and user settings.",
    )
    preferences_path: Path = Field(
        default=Path("./data/preferences.json"),
        description="JSON file holding the CLI user's planning preferences.",
    )
    upstream_base_url: str = Field(
        default="https://meican.com/preorder/api/v2.1",
        description="Base URL of the catering platform preorder API.",
    )
    upstream_login_url: str = Field(
        default="https://meican.com/account/directlogin",
        description="Form login endpoint of the catering platform.",
    )
    upstream_timeout: float = Field(
        default=20.0,
        description="Seconds before an upstream platform request is abandoned.",
    )
    history_chunk_days: int = Field(
        default=15,
        description="Calendar window size used when collecting order history.",
    )
    proxy_url: str = Field(
        default="http://127.0.0.1:8080",
        description="Proxy base URL used by the CLI when preferences do not set one.",
    )
    proxy_timeout: float = Field(
        default=30.0,
        description="Seconds before a client request to the proxy is abandoned.",
    )
    llm_timeout: float = Field(
        default=60.0,
        description="Seconds before an LLM provider request is abandoned.",
    )
    llm_temperature: float = Field(
        default=0.7,
        description="Sampling temperature for plan generation and analysis.",
    )
    gemini_base_url: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta",
        description="Hosted Gemini REST endpoint.",
    )
    gemini_model: str = Field(
        default="gemini-2.5-flash",
        description="Hosted Gemini model identifier.",
    )
    custom_llm_default_model: str = Field(
        default="gpt-3.5-turbo",
        description="Model used for OpenAI-compatible providers when none is configured.",
    )
    api_token: Optional[str] = Field(
        default=None,
        description="Token required by proxy routes when set.",
    )
    session_max_age_hours: Optional[float] = Field(
        default=None,
        description="Purge proxy sessions older than this many hours when set.",
    )
    session_purge_interval: float = Field(
        default=3600.0,
        description="Seconds between stale-session purge runs.",
    )
    log_level: str = Field(default="INFO", description="Logging level (DEBUG/INFO/WARNING/ERROR)")
    log_format: str = Field(
        default="plain",
        description="Logging format (plain/json).",
    )
    log_requests: bool = Field(
        default=True,
        description="Emit request access logs when true.",
    )

    model_config = ConfigDict(frozen=True)


def _coerce_bool(value: str) -> bool:
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _parse_env_file(path: Path) -> dict[str, str]:
    payload: dict[str, str] = {}
    try:
        with path.open("r", encoding="utf-8") as handle:
            for raw_line in handle:
                line = raw_line.strip()
                if not line or line.startswith("#") or "=" not in line:
                    continue
                key, raw_value = line.split("=", 1)
                payload[key.strip()] = raw_value.strip()
    except FileNotFoundError:
        return {}
    return payload


def _load_env_file_values() -> dict[str, str]:
    values: dict[str, str] = {}
    for candidate in ENV_FILE_CANDIDATES:
        values.update(_parse_env_file(candidate))
    return values


_STRING_KEYS = {
    "MEALPILOT_UPSTREAM_BASE_URL": "upstream_base_url",
    "MEALPILOT_UPSTREAM_LOGIN_URL": "upstream_login_url",
    "MEALPILOT_PROXY_URL": "proxy_url",
    "MEALPILOT_GEMINI_BASE_URL": "gemini_base_url",
    "MEALPILOT_GEMINI_MODEL": "gemini_model",
    "MEALPILOT_CUSTOM_LLM_MODEL": "custom_llm_default_model",
    "MEALPILOT_API_TOKEN": "api_token",
    "MEALPILOT_LOG_LEVEL": "log_level",
    "MEALPILOT_LOG_FORMAT": "log_format",
}

_FLOAT_KEYS = {
    "MEALPILOT_UPSTREAM_TIMEOUT": "upstream_timeout",
    "MEALPILOT_PROXY_TIMEOUT": "proxy_timeout",
    "MEALPILOT_LLM_TIMEOUT": "llm_timeout",
    "MEALPILOT_LLM_TEMPERATURE": "llm_temperature",
    "MEALPILOT_SESSION_MAX_AGE_HOURS": "session_max_age_hours",
    "MEALPILOT_SESSION_PURGE_INTERVAL": "session_purge_interval",
}


def _load_from_env() -> dict[str, object]:
    """Load optional overrides from env vars (with .env fallbacks)."""

    file_values = _load_env_file_values()

    def _env(key: str) -> Optional[str]:
        return os.environ.get(key) or file_values.get(key)

    payload: dict[str, object] = {}
    if (db_path := _env("MEALPILOT_DATABASE_PATH")):
        payload["database_path"] = Path(db_path)
    if (prefs_path := _env("MEALPILOT_PREFERENCES_PATH")):
        payload["preferences_path"] = Path(prefs_path)
    for env_key, field_name in _STRING_KEYS.items():
        if (value := _env(env_key)):
            payload[field_name] = value
    for env_key, field_name in _FLOAT_KEYS.items():
        if (value := _env(env_key)):
            try:
                payload[field_name] = float(value)
            except ValueError:
                pass
    if (chunk_days := _env("MEALPILOT_HISTORY_CHUNK_DAYS")):
        try:
            payload["history_chunk_days"] = max(1, int(chunk_days))
        except ValueError:
            pass
    if (log_requests := _env("MEALPILOT_LOG_REQUESTS")):
        payload["log_requests"] = _coerce_bool(log_requests)
    return payload


@lru_cache
def get_settings() -> Settings:
    """Return cached application settings."""

    return Settings(**_load_from_env())
