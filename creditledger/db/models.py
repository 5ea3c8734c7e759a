"""SQLAlchemy models for accounts, the credit ledger and verification."""
from __future__ import annotations

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    JSON,
    func,
)

from .session import Base


class User(Base):
    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint("role IN ('admin', 'seller', 'user')", name="ck_users_role"),
        CheckConstraint("credits >= 0", name="ck_users_credits_non_negative"),
        CheckConstraint("days_remaining >= 0", name="ck_users_days_non_negative"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String(50), unique=True, nullable=False, index=True)
    telegram_username = Column(String(50), unique=True, nullable=True, index=True)
    telegram_verified = Column(Boolean, default=False, nullable=False)
    verified_at = Column(DateTime(timezone=True), nullable=True)
    password_hash = Column(String(255), nullable=False)
    display_name = Column(String(100), nullable=True)
    credits = Column(Integer, default=20, nullable=False)
    days_remaining = Column(Integer, default=7, nullable=False)
    role = Column(String(20), default="user", nullable=False, index=True)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    is_active = Column(Boolean, default=False, nullable=False, index=True)
    last_login = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    # seller aggregates
    total_credited_users = Column(Integer, default=0, nullable=False)
    total_credits_given = Column(Integer, default=0, nullable=False)
    total_days_given = Column(Integer, default=0, nullable=False)
    seller_since = Column(DateTime(timezone=True), nullable=True)
    last_credited_user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    last_credited_date = Column(DateTime(timezone=True), nullable=True)
    notes = Column(Text, nullable=True)


class LedgerEntry(Base):
    """Append-only record of one balance or role mutation."""

    __tablename__ = "credit_transactions"
    __table_args__ = (
        CheckConstraint(
            "transaction_type IN ('credits', 'days', 'role_change')",
            name="ck_credit_transactions_type",
        ),
        CheckConstraint(
            "((transaction_type IN ('credits', 'days') AND amount > 0 "
            "AND previous_amount IS NOT NULL AND new_amount IS NOT NULL) "
            "OR (transaction_type = 'role_change' AND amount IS NULL "
            "AND old_role IS NOT NULL AND new_role IS NOT NULL))",
            name="ck_credit_transactions_shape",
        ),
        Index("ix_credit_transactions_to_user_type", "to_user_id", "transaction_type"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    from_user_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    to_user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    transaction_type = Column(String(20), nullable=False)
    amount = Column(Integer, nullable=True)
    previous_amount = Column(Integer, nullable=True)
    new_amount = Column(Integer, nullable=True)
    old_role = Column(String(20), nullable=True)
    new_role = Column(String(20), nullable=True)
    reason = Column(Text, nullable=True)
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)


class ActivityLog(Base):
    __tablename__ = "activity_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    action_type = Column(String(50), nullable=False)
    target_type = Column(String(50), nullable=True)
    target_id = Column(Integer, nullable=True)
    details = Column(JSON, nullable=True)
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class UserSession(Base):
    __tablename__ = "sessions"

    token = Column(String(128), primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class VerificationCode(Base):
    __tablename__ = "verification_codes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    code = Column(String(6), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)
    used = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class VerificationLog(Base):
    __tablename__ = "verification_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=True, index=True)
    code = Column(String(6), nullable=True)
    sent_via = Column(String(20), default="telegram", nullable=False)
    status = Column(String(20), default="sent", nullable=False)
    error_message = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class PasswordResetCode(Base):
    __tablename__ = "password_reset_codes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    code = Column(String(6), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    used = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
