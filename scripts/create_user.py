#!/usr/bin/env python3
"""
Create an already-verified account directly in the database.

Usage:
  python scripts/create_user.py --username seller_one --password s3cret1 [--role seller] [--credits 20] [--days 7]
"""
from __future__ import annotations

import argparse

from creditledger.core.config import get_settings
from creditledger.core.security import hash_password
from creditledger.db.create_tables import create_all
from creditledger.domain.roles import Role, parse_role
from creditledger.domain.usernames import USERNAME_PATTERN, is_strong_password, normalize_username
from creditledger.repositories.sql_repository import SQLRepository


def main(argv: list[str] | None = None) -> int:
    settings = get_settings()
    ap = argparse.ArgumentParser(description="Create a verified creditledger account")
    ap.add_argument("--username", required=True, help="Telegram handle (5-32 chars [A-Za-z0-9_])")
    ap.add_argument("--password", required=True, help="At least 6 chars with a letter and a digit")
    ap.add_argument("--role", default=Role.USER.value, choices=[role.value for role in Role])
    ap.add_argument("--display-name", default="")
    ap.add_argument("--credits", type=int, default=settings.default_credits)
    ap.add_argument("--days", type=int, default=settings.default_days)
    args = ap.parse_args(argv)

    username = normalize_username(args.username)
    if not USERNAME_PATTERN.fullmatch(username):
        raise SystemExit("Invalid username (use 5-32 chars [A-Za-z0-9_])")
    if not is_strong_password(args.password):
        raise SystemExit("Weak password (6+ chars with a letter and a digit)")
    if args.credits < 0 or args.days < 0:
        raise SystemExit("Balances cannot be negative")

    create_all()
    repo = SQLRepository()
    if repo.username_taken(username):
        raise SystemExit(f"User '{username}' already exists")

    role = parse_role(args.role) or Role.USER
    user = repo.create_user(
        username,
        hash_password(args.password),
        display_name=args.display_name or None,
        role=role.value,
        credits=args.credits,
        days_remaining=args.days,
        is_active=True,
    )
    print("OK: account created")
    print(f"  id: {user.id}")
    print(f"  username: {user.username}")
    print(f"  role: {user.role}")
    print(f"  credits/days: {user.credits}/{user.days_remaining}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
