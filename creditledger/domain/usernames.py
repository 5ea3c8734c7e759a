"""Domain helpers for username and password validation."""
from __future__ import annotations

import re

# Telegram handles: 5-32 chars, letters, digits and underscores.
USERNAME_PATTERN = re.compile(r"[A-Za-z0-9_]{5,32}")
PASSWORD_PATTERN = re.compile(r"(?=.*[A-Za-z])(?=.*\d)[A-Za-z\d@$!%*#?&]{6,}")
RESERVED_USERNAMES = {
    "admin",
    "administrator",
    "support",
    "system",
    "telegram",
}


def normalize_username(value: str | None) -> str:
    return (value or "").strip().lstrip("@")


def is_valid_username(value: str | None) -> bool:
    """Return True when the handle matches the Telegram format and is not reserved."""
    if not value:
        return False
    return bool(USERNAME_PATTERN.fullmatch(value)) and value.lower() not in RESERVED_USERNAMES


def is_strong_password(value: str | None) -> bool:
    """At least 6 chars with one letter and one digit."""
    if not value:
        return False
    return bool(PASSWORD_PATTERN.fullmatch(value))
