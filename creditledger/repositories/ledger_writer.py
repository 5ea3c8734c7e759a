"""
Session-bound writes used inside the grant and role transactions.

Every function here takes the caller's open Session and never commits; the
coordinator's transaction() block decides the outcome. Ledger rows are only
ever inserted, never updated or deleted.
"""
from __future__ import annotations

from datetime import datetime
from typing import Callable, Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from creditledger.db.models import ActivityLog, LedgerEntry, User
from creditledger.domain.roles import EntryKind, GrantKind, Role


# -------------------------- balances --------------------------
def _read_credits(account: User) -> int:
    return int(account.credits or 0)


def _read_days(account: User) -> int:
    return int(account.days_remaining or 0)


def _write_credits(account: User, value: int) -> None:
    account.credits = value


def _write_days(account: User, value: int) -> None:
    account.days_remaining = value


BALANCE_READERS: dict[GrantKind, Callable[[User], int]] = {
    GrantKind.CREDITS: _read_credits,
    GrantKind.DAYS: _read_days,
}
BALANCE_WRITERS: dict[GrantKind, Callable[[User, int], None]] = {
    GrantKind.CREDITS: _write_credits,
    GrantKind.DAYS: _write_days,
}


def read_balance(account: User, kind: GrantKind) -> int:
    return BALANCE_READERS[kind](account)


def write_balance(account: User, kind: GrantKind, value: int) -> None:
    BALANCE_WRITERS[kind](account, value)


# -------------------------- locking --------------------------
def lock_account(session: Session, user_id: int) -> Optional[User]:
    """SELECT ... FOR UPDATE on one account row; None when it does not exist."""
    stmt = select(User).where(User.id == user_id).with_for_update()
    return session.execute(stmt).scalar_one_or_none()


def current_role(session: Session, user_id: int) -> Optional[str]:
    return session.execute(select(User.role).where(User.id == user_id)).scalar_one_or_none()


# -------------------------- seller counters --------------------------
def seller_given(session: Session, seller_id: int, kind: GrantKind) -> int:
    column = User.total_credits_given if kind is GrantKind.CREDITS else User.total_days_given
    return session.execute(select(column).where(User.id == seller_id)).scalar_one_or_none() or 0


def has_granted_before(session: Session, seller_id: int, target_id: int) -> bool:
    stmt = (
        select(LedgerEntry.id)
        .where(
            LedgerEntry.from_user_id == seller_id,
            LedgerEntry.to_user_id == target_id,
            LedgerEntry.transaction_type.in_((EntryKind.CREDITS.value, EntryKind.DAYS.value)),
        )
        .limit(1)
    )
    return session.execute(stmt).first() is not None


def bump_seller_counters(session: Session, seller_id: int, kind: GrantKind, amount: int, *, new_recipient: bool) -> None:
    """In-database increments so concurrent grants by one seller never lose an update."""
    values = {}
    if new_recipient:
        values["total_credited_users"] = User.total_credited_users + 1
    if kind is GrantKind.CREDITS:
        values["total_credits_given"] = User.total_credits_given + amount
    else:
        values["total_days_given"] = User.total_days_given + amount
    session.execute(update(User).where(User.id == seller_id).values(**values))


# -------------------------- ledger --------------------------
def append_grant_entry(
    session: Session,
    *,
    source_id: Optional[int],
    target_id: int,
    kind: GrantKind,
    amount: int,
    previous_amount: int,
    new_amount: int,
    reason: str,
    created_at: datetime,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> LedgerEntry:
    entry = LedgerEntry(
        from_user_id=source_id,
        to_user_id=target_id,
        transaction_type=kind.value,
        amount=amount,
        previous_amount=previous_amount,
        new_amount=new_amount,
        reason=reason,
        ip_address=ip_address,
        user_agent=user_agent,
        created_at=created_at,
    )
    session.add(entry)
    session.flush()
    return entry


def append_role_entry(
    session: Session,
    *,
    source_id: Optional[int],
    target_id: int,
    old_role: Role,
    new_role: Role,
    created_at: datetime,
    reason: Optional[str] = None,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> LedgerEntry:
    entry = LedgerEntry(
        from_user_id=source_id,
        to_user_id=target_id,
        transaction_type=EntryKind.ROLE_CHANGE.value,
        old_role=old_role.value,
        new_role=new_role.value,
        reason=reason,
        ip_address=ip_address,
        user_agent=user_agent,
        created_at=created_at,
    )
    session.add(entry)
    session.flush()
    return entry


def append_activity(
    session: Session,
    *,
    actor_id: Optional[int],
    action_type: str,
    target_id: Optional[int],
    details: dict,
    created_at: datetime,
    target_type: str = "user",
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> ActivityLog:
    row = ActivityLog(
        user_id=actor_id,
        action_type=action_type,
        target_type=target_type,
        target_id=target_id,
        details=details,
        ip_address=ip_address,
        user_agent=user_agent,
        created_at=created_at,
    )
    session.add(row)
    return row
