"""
Telegram delivery adapter.

The default implementation calls the Bot API `sendMessage` method over HTTPS,
reading the bot token from Settings. Without a token nothing is sent and
send_message returns False.
"""

from __future__ import annotations

from functools import lru_cache
import logging

import httpx

from .config import get_settings

logger = logging.getLogger(__name__)


class TelegramDeliveryError(Exception):
    """Raised when the Bot API call fails (network or non-2xx)."""


def chat_handle(username: str) -> str:
    handle = (username or "").strip().lstrip("@")
    return f"@{handle}" if handle else ""


class TelegramClient:
    """Thin Bot API client; one instance is shared by the services."""

    def __init__(self, token: str, api_base: str = "https://api.telegram.org", timeout: float = 10.0) -> None:
        self.token = token
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout

    @property
    def enabled(self) -> bool:
        return bool(self.token)

    def send_message(self, username: str, text: str) -> bool:
        """
        Send a Markdown message. Returns False when the bot is not configured;
        raises TelegramDeliveryError when the Bot API call fails.
        """
        chat_id = chat_handle(username)
        if not self.enabled or not chat_id:
            logger.info("[telegram] bot not configured; skipping delivery to %s", chat_id or "?")
            return False
        url = f"{self.api_base}/bot{self.token}/sendMessage"
        payload = {"chat_id": chat_id, "text": text, "parse_mode": "Markdown"}
        try:
            response = httpx.post(url, json=payload, timeout=self.timeout)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning("[telegram] delivery to %s failed: %s", chat_id, exc)
            raise TelegramDeliveryError(str(exc)) from exc
        return True


def verification_message(code: str, ttl_minutes: int) -> str:
    return (
        "*Codigo de verificacion*\n\n"
        f"Tu codigo es: *{code}*\n"
        f"Valido por {ttl_minutes} minutos.\n\n"
        "No compartas este codigo con nadie."
    )


def password_reset_message(code: str, ttl_minutes: int) -> str:
    return (
        "*Recuperacion de contrasena*\n\n"
        f"Tu codigo de recuperacion es: *{code}*\n"
        f"Valido por {ttl_minutes} minutos.\n\n"
        "Si no solicitaste esto, ignora este mensaje."
    )


@lru_cache
def get_telegram_client() -> TelegramClient:
    settings = get_settings()
    return TelegramClient(settings.telegram_bot_token, settings.telegram_api_base)
