"""Closed vocabularies for roles and ledger entry kinds."""
from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    ADMIN = "admin"
    SELLER = "seller"
    USER = "user"


class GrantKind(str, Enum):
    """Balances a seller/admin can grant. Each maps to exactly one account column."""

    CREDITS = "credits"
    DAYS = "days"


class EntryKind(str, Enum):
    CREDITS = "credits"
    DAYS = "days"
    ROLE_CHANGE = "role_change"


GRANTING_ROLES = frozenset({Role.SELLER, Role.ADMIN})


def parse_role(value: str | Role | None) -> Role | None:
    """Return the Role for value, or None when it is not a known role."""
    if isinstance(value, Role):
        return value
    try:
        return Role((value or "").strip().lower())
    except ValueError:
        return None


def parse_grant_kind(value: str | GrantKind | None) -> GrantKind | None:
    if isinstance(value, GrantKind):
        return value
    try:
        return GrantKind((value or "").strip().lower())
    except ValueError:
        return None
