"""
Balance grants: the transactional unit that moves credits or days onto an
account and appends the matching ledger row.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import Callable, ContextManager, Optional

from sqlalchemy.orm import Session

from creditledger.core.utils import utcnow
from creditledger.db.session import transaction as default_transaction
from creditledger.domain.roles import GRANTING_ROLES, GrantKind, Role, parse_grant_kind, parse_role
from creditledger.repositories import ledger_writer

logger = logging.getLogger(__name__)


class LedgerError(Exception):
    """Base class for ledger failures. `code` is stable and exposed over HTTP."""

    code = "ledger_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotAuthorized(LedgerError):
    code = "not_authorized"


class InvalidTarget(LedgerError):
    code = "invalid_target"


class InvalidAmount(LedgerError):
    code = "invalid_amount"


class SelfGrant(LedgerError):
    code = "self_grant"


class InvalidRole(LedgerError):
    code = "invalid_role"


class NotFound(LedgerError):
    code = "not_found"


class InvalidKind(LedgerError):
    code = "invalid_kind"


# Upper bound of the INTEGER balance and counter columns.
MAX_BALANCE = 2**31 - 1


@dataclass
class GrantResult:
    previous_amount: int
    new_amount: int
    target_username: str
    kind: GrantKind
    amount: int
    entry_id: int


def _check_amount(amount) -> int:
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise InvalidAmount("La cantidad debe ser un numero entero")
    if amount <= 0:
        raise InvalidAmount("La cantidad debe ser positiva")
    if amount > MAX_BALANCE:
        raise InvalidAmount(f"La cantidad no puede superar {MAX_BALANCE}")
    return amount


@dataclass
class LedgerService:
    """Grants credits/days from a seller or admin to a regular user."""

    transaction: Callable[[], ContextManager[Session]] = field(default=default_transaction)

    def grant(
        self,
        caller_id: int,
        target_id: int,
        kind: GrantKind | str,
        amount: int,
        reason: str = "",
        *,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> GrantResult:
        grant_kind = parse_grant_kind(kind)
        if grant_kind is None:
            raise InvalidKind(f"Tipo de saldo invalido: {kind}")
        amount = _check_amount(amount)
        if caller_id == target_id:
            raise SelfGrant("No puedes agregarte saldo a ti mismo")

        with self.transaction() as session:
            caller_role = parse_role(ledger_writer.current_role(session, caller_id))
            if caller_role not in GRANTING_ROLES:
                raise NotAuthorized("No tienes permisos para realizar esta accion")

            target = ledger_writer.lock_account(session, target_id)
            if target is None or target.role != Role.USER.value:
                raise InvalidTarget("Usuario no encontrado o no es un usuario regular")

            now = utcnow()
            previous = ledger_writer.read_balance(target, grant_kind)
            new_amount = previous + amount
            if new_amount > MAX_BALANCE:
                raise InvalidAmount("El saldo resultante supera el maximo permitido")
            if caller_role is Role.SELLER:
                given = ledger_writer.seller_given(session, caller_id, grant_kind)
                if given + amount > MAX_BALANCE:
                    raise InvalidAmount("El total otorgado supera el maximo permitido")
            ledger_writer.write_balance(target, grant_kind, new_amount)
            target.last_credited_user_id = caller_id
            target.last_credited_date = now
            target.updated_at = now

            if caller_role is Role.SELLER:
                first_grant = not ledger_writer.has_granted_before(session, caller_id, target_id)
                ledger_writer.bump_seller_counters(
                    session, caller_id, grant_kind, amount, new_recipient=first_grant
                )

            entry = ledger_writer.append_grant_entry(
                session,
                source_id=caller_id,
                target_id=target_id,
                kind=grant_kind,
                amount=amount,
                previous_amount=previous,
                new_amount=new_amount,
                reason=reason or "",
                created_at=now,
                ip_address=ip_address,
                user_agent=user_agent,
            )
            ledger_writer.append_activity(
                session,
                actor_id=caller_id,
                action_type=f"add_{grant_kind.value}",
                target_id=target_id,
                details={"amount": amount, "previous": previous, "new": new_amount, "reason": reason or ""},
                created_at=now,
                ip_address=ip_address,
                user_agent=user_agent,
            )
            result = GrantResult(
                previous_amount=previous,
                new_amount=new_amount,
                target_username=target.username,
                kind=grant_kind,
                amount=amount,
                entry_id=entry.id,
            )

        logger.info(
            "grant %s +%s by user %s to user %s (%s -> %s)",
            grant_kind.value,
            amount,
            caller_id,
            target_id,
            result.previous_amount,
            result.new_amount,
        )
        return result
