"""Session helpers (issue bearer tokens, resolve and revoke them)."""
from __future__ import annotations

from datetime import timedelta
from typing import Optional

from creditledger.core.config import get_settings
from creditledger.core.security import new_session_token
from creditledger.core.utils import is_expired, utcnow
from creditledger.db.models import User, UserSession
from creditledger.db.session import get_session


def issue_session(user_id: int) -> str:
    """Create a new opaque token and persist it with its expiry."""
    token = new_session_token()
    settings = get_settings()
    ttl = max(60, settings.session_ttl_seconds)
    now = utcnow()
    with get_session() as session:
        session.add(UserSession(token=token, user_id=user_id, expires_at=now + timedelta(seconds=ttl), created_at=now))
        session.commit()
    return token


def resolve_session(token: Optional[str]) -> Optional[User]:
    """Return the active account behind token; expired tokens are deleted on the way."""
    if not token:
        return None
    with get_session() as session:
        row = session.get(UserSession, token)
        if row is None:
            return None
        if is_expired(row.expires_at):
            session.delete(row)
            session.commit()
            return None
        user = session.get(User, row.user_id)
        if user is None or not user.is_active:
            return None
        return user


def delete_session(token: Optional[str]) -> None:
    """Remove a session token from the store."""
    if not token:
        return
    with get_session() as session:
        entity = session.get(UserSession, token)
        if entity:
            session.delete(entity)
            session.commit()
