"""Per-user settings documents stored by the proxy."""

from __future__ import annotations

import json
import logging
from typing import Any, Dict

from .models import UserSettingsORM
from .repository import session_scope

logger = logging.getLogger(__name__)


def _decode(payload: str) -> Dict[str, Any]:
    try:
        decoded = json.loads(payload)
    except json.JSONDecodeError:
        logger.warning("Discarding unreadable settings payload")
        return {}
    return decoded if isinstance(decoded, dict) else {}


def load_user_settings(username: str) -> Dict[str, Any]:
    """Return the stored settings for ``username`` or an empty mapping."""

    with session_scope() as session:
        row = session.get(UserSettingsORM, username)
        if row is None:
            return {}
        return _decode(row.payload)


def merge_user_settings(username: str, updates: Dict[str, Any]) -> Dict[str, Any]:
    """Shallow-merge ``updates`` into the stored document and return the result."""

    with session_scope() as session:
        row = session.get(UserSettingsORM, username)
        current = _decode(row.payload) if row is not None else {}
        current.update(updates)
        encoded = json.dumps(current, ensure_ascii=False)
        if row is None:
            session.add(UserSettingsORM(username=username, payload=encoded))
        else:
            row.payload = encoded
    logger.debug("Saved settings for user=%s keys=%s", username, sorted(updates))
    return current
