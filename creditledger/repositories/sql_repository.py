"""High-level data access helpers backed by SQLAlchemy."""
from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import case, delete, distinct, func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import aliased

from creditledger.core.utils import utcnow
from creditledger.db.models import (
    LedgerEntry,
    PasswordResetCode,
    User,
    UserSession,
    VerificationCode,
    VerificationLog,
)
from creditledger.db.session import get_session
from creditledger.domain.roles import EntryKind, Role

_GRANT_TYPES = (EntryKind.CREDITS.value, EntryKind.DAYS.value)


class SQLRepository:
    """CRUD helpers wrapping the SQLAlchemy session."""

    # -------------------------- users --------------------------
    def get_user(self, user_id: int) -> Optional[User]:
        with get_session() as session:
            return session.get(User, user_id)

    def get_user_by_username(self, username: str) -> Optional[User]:
        """Match on username or Telegram handle."""
        value = (username or "").strip()
        if not value:
            return None
        with get_session() as session:
            stmt = select(User).where(or_(User.username == value, User.telegram_username == value))
            return session.execute(stmt).scalars().first()

    def username_taken(self, username: str) -> bool:
        return self.get_user_by_username(username) is not None

    def create_user(
        self,
        username: str,
        password_hash: str,
        *,
        display_name: str | None = None,
        role: str = Role.USER.value,
        credits: int = 20,
        days_remaining: int = 7,
        is_active: bool = False,
        created_by: int | None = None,
    ) -> User:
        now = utcnow()
        entity = User(
            username=username,
            telegram_username=username,
            password_hash=password_hash,
            display_name=display_name or username,
            credits=credits,
            days_remaining=days_remaining,
            role=role,
            is_active=is_active,
            telegram_verified=is_active,
            verified_at=now if is_active else None,
            seller_since=now if role == Role.SELLER.value else None,
            created_by=created_by,
            created_at=now,
            updated_at=now,
        )
        with get_session() as session:
            session.add(entity)
            session.commit()
            session.refresh(entity)
            return entity

    def create_pending_user(
        self,
        username: str,
        password_hash: str,
        *,
        display_name: str | None,
        credits: int,
        days_remaining: int,
        code: str,
        code_expires_at: datetime,
    ) -> User:
        """Insert an inactive account and its first verification code in one commit."""
        now = utcnow()
        entity = User(
            username=username,
            telegram_username=username,
            password_hash=password_hash,
            display_name=display_name or username,
            credits=credits,
            days_remaining=days_remaining,
            role=Role.USER.value,
            is_active=False,
            telegram_verified=False,
            created_at=now,
            updated_at=now,
        )
        with get_session() as session:
            try:
                session.add(entity)
                session.flush()
                session.add(VerificationCode(user_id=entity.id, code=code, expires_at=code_expires_at, created_at=now))
                session.commit()
            except IntegrityError:
                session.rollback()
                raise
            session.refresh(entity)
            return entity

    def activate_user(self, user_id: int) -> None:
        now = utcnow()
        with get_session() as session:
            stmt = (
                update(User)
                .where(User.id == user_id)
                .values(is_active=True, telegram_verified=True, verified_at=now, updated_at=now)
            )
            session.execute(stmt)
            session.execute(delete(VerificationCode).where(VerificationCode.user_id == user_id))
            session.commit()

    def update_last_login(self, user_id: int) -> None:
        now = utcnow()
        with get_session() as session:
            session.execute(update(User).where(User.id == user_id).values(last_login=now))
            session.commit()

    def update_user_password(self, user_id: int, password_hash: str) -> None:
        with get_session() as session:
            stmt = update(User).where(User.id == user_id).values(password_hash=password_hash, updated_at=utcnow())
            session.execute(stmt)
            session.commit()

    def list_users(self, role: str | None = None, *, limit: int = 20, offset: int = 0) -> list[User]:
        with get_session() as session:
            stmt = select(User)
            if role:
                stmt = stmt.where(User.role == role)
            stmt = stmt.order_by(User.created_at.desc(), User.id.desc()).limit(limit).offset(offset)
            return list(session.execute(stmt).scalars().all())

    def search_users(self, term: str, *, role: str = Role.USER.value, limit: int = 10) -> list[User]:
        pattern = f"%{(term or '').strip().lower()}%"
        with get_session() as session:
            stmt = (
                select(User)
                .where(func.lower(User.username).like(pattern), User.role == role)
                .order_by(User.username)
                .limit(limit)
            )
            return list(session.execute(stmt).scalars().all())

    # -------------------------- sessions --------------------------
    def delete_user_sessions(self, user_id: int) -> None:
        with get_session() as session:
            session.execute(delete(UserSession).where(UserSession.user_id == user_id))
            session.commit()

    # -------------------------- verification codes --------------------------
    def replace_verification_code(self, user_id: int, code: str, expires_at: datetime) -> None:
        with get_session() as session:
            session.execute(delete(VerificationCode).where(VerificationCode.user_id == user_id))
            session.add(VerificationCode(user_id=user_id, code=code, expires_at=expires_at, created_at=utcnow()))
            session.commit()

    def find_verification_code(self, user_id: int, code: str) -> Optional[VerificationCode]:
        with get_session() as session:
            stmt = (
                select(VerificationCode)
                .where(
                    VerificationCode.user_id == user_id,
                    VerificationCode.code == code,
                    VerificationCode.used.is_(False),
                )
                .order_by(VerificationCode.created_at.desc(), VerificationCode.id.desc())
            )
            return session.execute(stmt).scalars().first()

    def add_verification_log(
        self, user_id: int | None, code: str | None, status: str, error_message: str | None = None
    ) -> None:
        with get_session() as session:
            session.add(
                VerificationLog(
                    user_id=user_id,
                    code=code,
                    sent_via="telegram",
                    status=status,
                    error_message=error_message,
                    created_at=utcnow(),
                )
            )
            session.commit()

    def list_verification_logs(self, user_id: int) -> list[VerificationLog]:
        with get_session() as session:
            stmt = select(VerificationLog).where(VerificationLog.user_id == user_id).order_by(VerificationLog.id)
            return list(session.execute(stmt).scalars().all())

    # -------------------------- password reset codes --------------------------
    def create_reset_code(self, user_id: int, code: str, expires_at: datetime) -> None:
        with get_session() as session:
            session.add(PasswordResetCode(user_id=user_id, code=code, expires_at=expires_at, created_at=utcnow()))
            session.commit()

    def find_reset_code(self, user_id: int, code: str) -> Optional[PasswordResetCode]:
        with get_session() as session:
            stmt = (
                select(PasswordResetCode)
                .where(
                    PasswordResetCode.user_id == user_id,
                    PasswordResetCode.code == code,
                    PasswordResetCode.used.is_(False),
                )
                .order_by(PasswordResetCode.created_at.desc(), PasswordResetCode.id.desc())
            )
            return session.execute(stmt).scalars().first()

    def consume_reset_code(self, code_id: int, user_id: int, password_hash: str) -> None:
        """Set the new password and burn the code in one commit."""
        now = utcnow()
        with get_session() as session:
            session.execute(update(User).where(User.id == user_id).values(password_hash=password_hash, updated_at=now))
            session.execute(update(PasswordResetCode).where(PasswordResetCode.id == code_id).values(used=True))
            session.commit()

    # -------------------------- ledger reads --------------------------
    def list_entries_for_target(self, target_id: int, kind: str | None = None) -> list[LedgerEntry]:
        """Entries addressed to target_id in commit order."""
        with get_session() as session:
            stmt = select(LedgerEntry).where(LedgerEntry.to_user_id == target_id)
            if kind:
                stmt = stmt.where(LedgerEntry.transaction_type == kind)
            return list(session.execute(stmt.order_by(LedgerEntry.id)).scalars().all())

    def list_entries_from_source(self, source_id: int, *, limit: int = 20, offset: int = 0) -> list[dict]:
        source = aliased(User)
        target = aliased(User)
        with get_session() as session:
            stmt = (
                select(LedgerEntry, target.username, source.username)
                .outerjoin(target, LedgerEntry.to_user_id == target.id)
                .outerjoin(source, LedgerEntry.from_user_id == source.id)
                .where(LedgerEntry.from_user_id == source_id, LedgerEntry.transaction_type.in_(_GRANT_TYPES))
                .order_by(LedgerEntry.id.desc())
                .limit(limit)
                .offset(offset)
            )
            return [
                _entry_dict(entry, to_username=to_name, from_username=from_name)
                for entry, to_name, from_name in session.execute(stmt).all()
            ]

    def list_seller_entries(self, *, limit: int = 50, offset: int = 0) -> list[dict]:
        """Ledger rows whose source is currently a seller, newest first."""
        seller = aliased(User)
        target = aliased(User)
        with get_session() as session:
            stmt = (
                select(LedgerEntry, seller.username, target.username, seller.role)
                .join(seller, (LedgerEntry.from_user_id == seller.id) & (seller.role == Role.SELLER.value))
                .join(target, LedgerEntry.to_user_id == target.id)
                .order_by(LedgerEntry.id.desc())
                .limit(limit)
                .offset(offset)
            )
            rows = []
            for entry, seller_name, user_name, seller_role in session.execute(stmt).all():
                data = _entry_dict(entry, to_username=user_name, from_username=seller_name)
                data["seller_username"] = seller_name
                data["user_username"] = user_name
                data["seller_role"] = seller_role
                rows.append(data)
            return rows

    def seller_totals(self, seller_id: int) -> dict:
        with get_session() as session:
            stmt = select(
                func.count(distinct(LedgerEntry.to_user_id)),
                func.coalesce(func.sum(case((LedgerEntry.transaction_type == "credits", LedgerEntry.amount), else_=0)), 0),
                func.coalesce(func.sum(case((LedgerEntry.transaction_type == "days", LedgerEntry.amount), else_=0)), 0),
                func.count(LedgerEntry.id),
            ).where(LedgerEntry.from_user_id == seller_id, LedgerEntry.transaction_type.in_(_GRANT_TYPES))
            users, credits, days, total = session.execute(stmt).one()
            return {
                "total_users_credited": int(users or 0),
                "total_credits_given": int(credits or 0),
                "total_days_given": int(days or 0),
                "total_transactions": int(total or 0),
            }

    def user_totals(self, now: datetime | None = None) -> dict:
        now = now or utcnow()
        week_ago = now - timedelta(days=7)
        month_ago = now - timedelta(days=30)
        with get_session() as session:
            stmt = select(
                func.count(User.id),
                func.count(case((User.role == "admin", 1))),
                func.count(case((User.role == "seller", 1))),
                func.count(case((User.role == "user", 1))),
                func.coalesce(func.sum(User.credits), 0),
                func.coalesce(func.sum(User.days_remaining), 0),
                func.count(case((User.is_active.is_(False), 1))),
                func.count(case((User.last_login >= week_ago, 1))),
                func.count(case((User.created_at >= month_ago, 1))),
            )
            row = session.execute(stmt).one()
        keys = (
            "total_users",
            "admin_count",
            "seller_count",
            "user_count",
            "total_credits",
            "total_days",
            "inactive_users",
            "active_7d",
            "new_users_30d",
        )
        return {key: int(value or 0) for key, value in zip(keys, row)}

    def ledger_totals(self) -> dict:
        with get_session() as session:
            stmt = select(
                func.count(LedgerEntry.id),
                func.coalesce(func.sum(case((LedgerEntry.transaction_type == "credits", LedgerEntry.amount), else_=0)), 0),
                func.coalesce(func.sum(case((LedgerEntry.transaction_type == "days", LedgerEntry.amount), else_=0)), 0),
                func.count(distinct(LedgerEntry.from_user_id)),
                func.count(distinct(LedgerEntry.to_user_id)),
            ).where(LedgerEntry.transaction_type.in_(_GRANT_TYPES))
            total, credits, days, sellers, users = session.execute(stmt).one()
        return {
            "total_transactions": int(total or 0),
            "total_credits_given": int(credits or 0),
            "total_days_given": int(days or 0),
            "total_sellers_active": int(sellers or 0),
            "total_users_credited": int(users or 0),
        }


def _entry_dict(entry: LedgerEntry, **extra) -> dict:
    data = {
        "id": entry.id,
        "from_user_id": entry.from_user_id,
        "to_user_id": entry.to_user_id,
        "transaction_type": entry.transaction_type,
        "amount": entry.amount,
        "previous_amount": entry.previous_amount,
        "new_amount": entry.new_amount,
        "old_role": entry.old_role,
        "new_role": entry.new_role,
        "reason": entry.reason,
        "created_at": entry.created_at.isoformat() if entry.created_at else None,
    }
    data.update(extra)
    return data


def entry_to_dict(entry: LedgerEntry) -> dict:
    return _entry_dict(entry)
