"""Admin-only account changes: role assignment and activation."""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import Callable, ContextManager, Optional

from sqlalchemy.orm import Session

from creditledger.core.utils import utcnow
from creditledger.db.session import transaction as default_transaction
from creditledger.domain.roles import Role, parse_role
from creditledger.repositories import ledger_writer
from creditledger.services.ledger_service import InvalidRole, NotAuthorized, NotFound

logger = logging.getLogger(__name__)


@dataclass
class RoleChangeResult:
    old_role: Role
    new_role: Role
    target_username: str
    entry_id: int


@dataclass
class RoleService:
    transaction: Callable[[], ContextManager[Session]] = field(default=default_transaction)

    def _require_admin(self, session: Session, caller_id: int) -> None:
        if parse_role(ledger_writer.current_role(session, caller_id)) is not Role.ADMIN:
            raise NotAuthorized("Solo los administradores pueden realizar esta accion")

    def change_role(
        self,
        caller_id: int,
        target_id: int,
        new_role: Role | str,
        *,
        reason: Optional[str] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> RoleChangeResult:
        """
        Move target_id to new_role. Any role may become any role; re-applying
        the current role still appends a ledger row. seller_since is stamped
        only the first time the account becomes a seller.
        """
        role = parse_role(new_role)
        if role is None:
            raise InvalidRole(f"Rol invalido: {new_role}")

        with self.transaction() as session:
            self._require_admin(session, caller_id)
            target = ledger_writer.lock_account(session, target_id)
            if target is None:
                raise NotFound("Usuario no encontrado")

            now = utcnow()
            old_role = parse_role(target.role) or Role.USER
            target.role = role.value
            target.updated_at = now
            if role is Role.SELLER and target.seller_since is None:
                target.seller_since = now

            entry = ledger_writer.append_role_entry(
                session,
                source_id=caller_id,
                target_id=target_id,
                old_role=old_role,
                new_role=role,
                created_at=now,
                reason=reason,
                ip_address=ip_address,
                user_agent=user_agent,
            )
            ledger_writer.append_activity(
                session,
                actor_id=caller_id,
                action_type="role_change",
                target_id=target_id,
                details={"old_role": old_role.value, "new_role": role.value},
                created_at=now,
                ip_address=ip_address,
                user_agent=user_agent,
            )
            result = RoleChangeResult(
                old_role=old_role, new_role=role, target_username=target.username, entry_id=entry.id
            )

        logger.info("role change for user %s by admin %s: %s -> %s", target_id, caller_id, old_role.value, role.value)
        return result

    def set_active(
        self,
        caller_id: int,
        target_id: int,
        is_active: bool,
        *,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> bool:
        """Flip the is_active flag. Accounts are never deleted."""
        if caller_id == target_id and not is_active:
            raise NotAuthorized("No puedes desactivar tu propia cuenta")
        with self.transaction() as session:
            self._require_admin(session, caller_id)
            target = ledger_writer.lock_account(session, target_id)
            if target is None:
                raise NotFound("Usuario no encontrado")
            now = utcnow()
            target.is_active = bool(is_active)
            target.updated_at = now
            ledger_writer.append_activity(
                session,
                actor_id=caller_id,
                action_type="activate_user" if is_active else "deactivate_user",
                target_id=target_id,
                details={"is_active": bool(is_active)},
                created_at=now,
                ip_address=ip_address,
                user_agent=user_agent,
            )
        logger.info("user %s set active=%s by admin %s", target_id, bool(is_active), caller_id)
        return bool(is_active)
