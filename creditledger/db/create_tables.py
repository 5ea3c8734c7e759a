"""Create the database schema and seed the bootstrap admin account."""
from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from creditledger.core.config import get_settings
from creditledger.core.security import hash_password
from creditledger.core.utils import utcnow
from .session import Base, get_engine, transaction
from . import models  # noqa: F401  # ensure models are imported for metadata

logger = logging.getLogger(__name__)

ADMIN_CREDITS = 999999
ADMIN_DAYS = 9999


def create_all() -> None:
    engine = get_engine()
    Base.metadata.create_all(bind=engine)


def seed_admin() -> bool:
    """Insert the ADMIN_USERNAME account once. Skipped when ADMIN_PASSWORD is empty."""
    settings = get_settings()
    username = (settings.admin_username or "").strip()
    if not username or not settings.admin_password:
        logger.info("ADMIN_PASSWORD not set; skipping admin seed.")
        return False
    with transaction() as session:
        exists = session.execute(select(models.User.id).where(models.User.username == username)).first()
        if exists:
            return False
        now = utcnow()
        session.add(
            models.User(
                username=username,
                password_hash=hash_password(settings.admin_password),
                display_name="Administrador",
                credits=ADMIN_CREDITS,
                days_remaining=ADMIN_DAYS,
                role="admin",
                is_active=True,
                telegram_verified=True,
                verified_at=now,
                created_at=now,
                updated_at=now,
            )
        )
    logger.info("Seeded admin account %s", username)
    return True


if __name__ == "__main__":
    try:
        create_all()
        seed_admin()
        print("Database tables created successfully.")
    except SQLAlchemyError as exc:
        raise SystemExit(f"Failed to create tables: {exc}") from exc
