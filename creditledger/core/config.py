"""
Configuration helpers for the creditledger backend.

Routers and services read settings through get_settings() instead of touching
os.environ directly.
"""

from dataclasses import dataclass
from functools import lru_cache
import logging
import os


@dataclass(frozen=True)
class Settings:
    """Typed view of environment variables."""

    app_env: str
    database_url: str
    allowed_origins: tuple[str, ...]
    session_ttl_seconds: int
    verification_code_ttl_seconds: int
    password_reset_ttl_seconds: int
    default_credits: int
    default_days: int
    telegram_bot_token: str
    telegram_api_base: str
    admin_username: str
    admin_password: str
    log_level: str


_DEFAULT_ORIGINS = "http://localhost:3000,http://localhost:5500,http://127.0.0.1:3000"


@lru_cache
def get_settings() -> Settings:
    """Read the current environment and build a Settings instance."""
    def _int(value: str, default: int = 0) -> int:
        try:
            return int(value)
        except (TypeError, ValueError):
            return default

    def _list(value: str | None) -> tuple[str, ...]:
        return tuple(item.strip().rstrip("/") for item in (value or "").split(",") if item.strip())

    return Settings(
        app_env=(os.getenv("APP_ENV") or "dev").lower(),
        database_url=os.getenv("DATABASE_URL", ""),
        allowed_origins=_list(os.getenv("ALLOWED_ORIGINS", _DEFAULT_ORIGINS)),
        session_ttl_seconds=_int(os.getenv("SESSION_TTL_SECONDS", "2592000"), 2592000),
        verification_code_ttl_seconds=_int(os.getenv("VERIFICATION_CODE_TTL_SECONDS", "600"), 600),
        password_reset_ttl_seconds=_int(os.getenv("PASSWORD_RESET_TTL_SECONDS", "900"), 900),
        default_credits=_int(os.getenv("DEFAULT_CREDITS", "20"), 20),
        default_days=_int(os.getenv("DEFAULT_DAYS", "7"), 7),
        telegram_bot_token=os.getenv("TELEGRAM_BOT_TOKEN", ""),
        telegram_api_base=os.getenv("TELEGRAM_API_BASE", "https://api.telegram.org").rstrip("/"),
        admin_username=os.getenv("ADMIN_USERNAME", "admin"),
        admin_password=os.getenv("ADMIN_PASSWORD", ""),
        log_level=(os.getenv("LOG_LEVEL") or "INFO").upper(),
    )


def configure_logging() -> None:
    """Apply LOG_LEVEL to the root logger (idempotent)."""
    settings = get_settings()
    level = getattr(logging, settings.log_level, logging.INFO)
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    logging.getLogger().setLevel(level)
