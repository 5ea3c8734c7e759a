"""
Authentication and identity related use cases.

Accounts register with their Telegram handle and stay inactive until the
six-digit code sent by the bot is confirmed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError

from creditledger.core.config import get_settings
from creditledger.core.security import hash_password, needs_rehash, new_numeric_code, verify_password
from creditledger.core.telegram import (
    TelegramClient,
    TelegramDeliveryError,
    get_telegram_client,
    password_reset_message,
    verification_message,
)
from creditledger.core.utils import is_expired, utcnow
from creditledger.db.models import User
from creditledger.domain.usernames import is_strong_password, is_valid_username, normalize_username
from creditledger.repositories.sql_repository import SQLRepository
from creditledger.services.session_service import delete_session, issue_session

logger = logging.getLogger(__name__)


class AuthError(Exception):
    """Base class for authentication-related exceptions."""

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message


class RegistrationError(AuthError):
    pass


class AccountExistsError(AuthError):
    pass


class AccountNotFoundError(AuthError):
    pass


class AlreadyVerifiedError(AuthError):
    pass


class InvalidCredentialsError(AuthError):
    pass


class VerificationRequiredError(AuthError):
    pass


class AccountDisabledError(AuthError):
    pass


class CodeInvalidError(AuthError):
    pass


class WeakPasswordError(AuthError):
    pass


@dataclass
class RegisterResult:
    user_id: int
    username: str
    code_sent: bool
    dev_code: Optional[str] = None


@dataclass
class CodeDelivery:
    username: str
    code_sent: bool
    dev_code: Optional[str] = None


@dataclass
class LoginSuccess:
    user: User
    session_token: str


@dataclass
class VerifyResult:
    user_id: int
    username: str
    session_token: str


@dataclass
class AuthService:
    """Handles registration, Telegram verification, login and password reset flows."""

    telegram: Optional[TelegramClient] = field(default=None)

    def __post_init__(self):
        self.settings = get_settings()
        self.repository = SQLRepository()
        if self.telegram is None:
            self.telegram = get_telegram_client()

    # -------------------------------------- helpers --------------------------------------
    def _deliver(self, user_id: int, username: str, code: str, text: str) -> bool:
        """Send text through Telegram and record the attempt. Never raises on delivery failure."""
        try:
            sent = self.telegram.send_message(username, text)
        except TelegramDeliveryError as exc:
            self.repository.add_verification_log(user_id, code, "failed", str(exc))
            return False
        self.repository.add_verification_log(user_id, code, "sent" if sent else "skipped")
        if self.settings.app_env != "prod":
            logger.info("[dev] code for @%s: %s", username, code)
        return sent

    def _dev_code(self, code: str) -> Optional[str]:
        return code if self.settings.app_env != "prod" else None

    def _ttl_minutes(self, seconds: int) -> int:
        return max(1, seconds // 60)

    def _active_user(self, username: str) -> Optional[User]:
        user = self.repository.get_user_by_username(normalize_username(username))
        if user is None or not user.is_active:
            return None
        return user

    # -------------------------------------- registro --------------------------------------
    def username_available(self, username: str) -> bool:
        value = normalize_username(username)
        return is_valid_username(value) and not self.repository.username_taken(value)

    def register(self, username: str, password: str, display_name: str = "") -> RegisterResult:
        handle = normalize_username(username)
        if not is_valid_username(handle):
            raise RegistrationError("Usuario invalido. Usa 5-32 caracteres: letras, numeros y guion bajo")
        if not is_strong_password(password):
            raise RegistrationError("La contrasena debe tener al menos 6 caracteres, una letra y un numero")
        if self.repository.username_taken(handle):
            raise AccountExistsError("El usuario ya existe")

        ttl = self.settings.verification_code_ttl_seconds
        code = new_numeric_code()
        try:
            user = self.repository.create_pending_user(
                handle,
                hash_password(password),
                display_name=(display_name or "").strip() or None,
                credits=self.settings.default_credits,
                days_remaining=self.settings.default_days,
                code=code,
                code_expires_at=utcnow() + timedelta(seconds=ttl),
            )
        except IntegrityError as exc:
            # Lost the race against a concurrent registration of the same handle.
            raise AccountExistsError("El usuario ya existe") from exc
        sent = self._deliver(user.id, handle, code, verification_message(code, self._ttl_minutes(ttl)))
        logger.info("registered user %s (@%s)", user.id, handle)
        return RegisterResult(user_id=user.id, username=handle, code_sent=sent, dev_code=self._dev_code(code))

    # -------------------------------------- verificacion --------------------------------------
    def request_verification(self, username: str) -> CodeDelivery:
        handle = normalize_username(username)
        user = self.repository.get_user_by_username(handle)
        if user is None:
            raise AccountNotFoundError("Usuario no encontrado")
        if user.telegram_verified:
            raise AlreadyVerifiedError("La cuenta ya esta verificada")
        ttl = self.settings.verification_code_ttl_seconds
        code = new_numeric_code()
        self.repository.replace_verification_code(user.id, code, utcnow() + timedelta(seconds=ttl))
        sent = self._deliver(user.id, user.username, code, verification_message(code, self._ttl_minutes(ttl)))
        return CodeDelivery(username=user.username, code_sent=sent, dev_code=self._dev_code(code))

    def verify_code(self, username: str, code: str) -> VerifyResult:
        handle = normalize_username(username)
        value = (code or "").strip()
        user = self.repository.get_user_by_username(handle)
        if user is None or not value:
            raise CodeInvalidError("Codigo invalido o expirado")
        if user.telegram_verified:
            raise AlreadyVerifiedError("La cuenta ya esta verificada")
        entity = self.repository.find_verification_code(user.id, value)
        if entity is None or is_expired(entity.expires_at):
            raise CodeInvalidError("Codigo invalido o expirado")
        self.repository.activate_user(user.id)
        self.repository.add_verification_log(user.id, value, "verified")
        token = issue_session(user.id)
        logger.info("user %s verified via telegram", user.id)
        return VerifyResult(user_id=user.id, username=user.username, session_token=token)

    # -------------------------------------- login --------------------------------------
    def login(self, username: str, password: str) -> LoginSuccess:
        handle = normalize_username(username)
        if not handle or not password:
            raise InvalidCredentialsError("Credenciales invalidas")
        user = self.repository.get_user_by_username(handle)
        if user is None or not verify_password(password, user.password_hash):
            raise InvalidCredentialsError("Credenciales invalidas")
        if not user.telegram_verified:
            raise VerificationRequiredError("Debes verificar tu cuenta por Telegram")
        if not user.is_active:
            raise AccountDisabledError("Cuenta desactivada")
        if needs_rehash(user.password_hash):
            self.repository.update_user_password(user.id, hash_password(password))
        self.repository.update_last_login(user.id)
        token = issue_session(user.id)
        return LoginSuccess(user=self.repository.get_user(user.id), session_token=token)

    def logout(self, session_token: Optional[str]) -> None:
        if not session_token:
            return
        delete_session(session_token)

    # -------------------------------------- reset de contrasena --------------------------------------
    def request_password_reset(self, username: str) -> Optional[CodeDelivery]:
        """Issue a reset code for an active account; None when there is nothing to send to."""
        user = self._active_user(username)
        if user is None:
            return None
        ttl = self.settings.password_reset_ttl_seconds
        code = new_numeric_code()
        self.repository.create_reset_code(user.id, code, utcnow() + timedelta(seconds=ttl))
        sent = self._deliver(user.id, user.username, code, password_reset_message(code, self._ttl_minutes(ttl)))
        return CodeDelivery(username=user.username, code_sent=sent, dev_code=self._dev_code(code))

    def reset_password(self, username: str, code: str, new_password: str) -> int:
        if not is_strong_password(new_password):
            raise WeakPasswordError("La contrasena debe tener al menos 6 caracteres, una letra y un numero")
        user = self._active_user(username)
        value = (code or "").strip()
        if user is None or not value:
            raise CodeInvalidError("Codigo invalido o expirado")
        entity = self.repository.find_reset_code(user.id, value)
        if entity is None or is_expired(entity.expires_at):
            raise CodeInvalidError("Codigo invalido o expirado")
        self.repository.consume_reset_code(entity.id, user.id, hash_password(new_password))
        self.repository.delete_user_sessions(user.id)
        logger.info("password reset for user %s", user.id)
        return user.id
