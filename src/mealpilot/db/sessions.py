"""Proxy login sessions mapping opaque ids to platform cookies."""

from __future__ import annotations

import logging
import secrets
import time
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import delete, select

from .models import SessionORM
from .repository import session_scope

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_session_id() -> str:
    return f"session_{int(time.time() * 1000)}_{secrets.token_hex(6)}"


def create_session(cookies: str, now: Optional[datetime] = None) -> str:
    """Store the cookie header for a fresh login and return its session id."""

    session_id = new_session_id()
    with session_scope() as session:
        session.add(
            SessionORM(session_id=session_id, cookies=cookies, created_at=now or _utcnow())
        )
    logger.info("Created proxy session")
    return session_id


def get_session_cookies(session_id: str) -> Optional[str]:
    with session_scope() as session:
        row = session.get(SessionORM, session_id)
        return row.cookies if row is not None else None


def delete_session(session_id: str) -> bool:
    with session_scope() as session:
        row = session.get(SessionORM, session_id)
        if row is None:
            return False
        session.delete(row)
    return True


def session_age_minutes(session_id: str, now: Optional[datetime] = None) -> Optional[int]:
    """Return whole minutes since login, or None for unknown sessions."""

    with session_scope() as session:
        row = session.get(SessionORM, session_id)
        if row is None:
            return None
        created_at = row.created_at
    elapsed = (now or _utcnow()) - created_at
    return max(0, int(elapsed.total_seconds() // 60))


def purge_sessions_older_than(max_age: timedelta, now: Optional[datetime] = None) -> int:
    """Delete sessions created before ``now - max_age``; return how many went."""

    cutoff = (now or _utcnow()) - max_age
    with session_scope() as session:
        stale = session.execute(
            select(SessionORM.session_id).where(SessionORM.created_at < cutoff)
        ).scalars().all()
        if stale:
            session.execute(delete(SessionORM).where(SessionORM.session_id.in_(stale)))
    if stale:
        logger.info("Purged %d stale proxy sessions", len(stale))
    return len(stale)
