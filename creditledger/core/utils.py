"""
Utility helpers shared across routers/services.
"""

from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """
    Normalize a stored timestamp to an aware UTC datetime. SQLite hands back
    naive values even for DateTime(timezone=True) columns.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def is_expired(expires_at: Optional[datetime], now: Optional[datetime] = None) -> bool:
    expires = as_utc(expires_at)
    if expires is None:
        return True
    return expires < (now or utcnow())


def page_offset(page: int, limit: int) -> tuple[int, int]:
    """Clamp 1-based page/limit query values and return (limit, offset)."""
    page = max(int(page or 1), 1)
    limit = min(max(int(limit or 1), 1), 200)
    return limit, (page - 1) * limit
