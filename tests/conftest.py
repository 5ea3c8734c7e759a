"""
Shared fixtures: a temporary SQLite database per test and a recording
Telegram client.
"""
from __future__ import annotations

import pytest

from creditledger.core import config as core_config
from creditledger.core import rate_limiter
from creditledger.core import telegram as core_telegram
from creditledger.core.security import hash_password
from creditledger.db import models
from creditledger.db import session as db_session
from creditledger.repositories.sql_repository import SQLRepository


class RecordingTelegram(core_telegram.TelegramClient):
    """Captures outgoing messages instead of calling the Bot API."""

    def __init__(self, fail: bool = False) -> None:
        super().__init__(token="test-token", api_base="http://telegram.invalid")
        self.fail = fail
        self.sent: list[tuple[str, str]] = []

    def send_message(self, username: str, text: str) -> bool:
        if self.fail:
            raise core_telegram.TelegramDeliveryError("bot unreachable")
        self.sent.append((username, text))
        return True


def _clear_caches() -> None:
    core_config.get_settings.cache_clear()
    core_telegram.get_telegram_client.cache_clear()
    db_session.get_engine.cache_clear()
    db_session._get_sessionmaker.cache_clear()  # type: ignore[attr-defined]
    rate_limiter.reset_limits()


@pytest.fixture()
def temp_db(tmp_path, monkeypatch):
    """Temporary SQLite file with the full schema; torn down after the test."""
    db_file = tmp_path / "test.db"
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{db_file}")
    monkeypatch.setenv("APP_ENV", "dev")
    monkeypatch.setenv("TELEGRAM_BOT_TOKEN", "")
    monkeypatch.setenv("ADMIN_PASSWORD", "")
    _clear_caches()

    engine = db_session.get_engine()
    models.Base.metadata.drop_all(bind=engine)
    models.Base.metadata.create_all(bind=engine)

    yield db_file

    try:
        models.Base.metadata.drop_all(bind=engine)
    except Exception:
        pass
    engine.dispose()
    _clear_caches()
    if db_file.exists():
        try:
            db_file.unlink()
        except OSError:
            pass


@pytest.fixture()
def telegram():
    return RecordingTelegram()


@pytest.fixture()
def make_user(temp_db):
    """Create an active, verified account: make_user("alice_01", role="seller")."""
    repo = SQLRepository()
    password_hash = hash_password("secret123")

    def _make(username: str, *, role: str = "user", credits: int = 20, days: int = 7, is_active: bool = True):
        return repo.create_user(
            username,
            password_hash,
            role=role,
            credits=credits,
            days_remaining=days,
            is_active=is_active,
        )

    return _make


@pytest.fixture()
def failing_telegram():
    return RecordingTelegram(fail=True)
