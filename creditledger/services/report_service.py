"""Read-only views over the ledger and account tables."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from creditledger.domain.roles import GrantKind, Role, parse_grant_kind, parse_role
from creditledger.core.utils import page_offset
from creditledger.repositories.sql_repository import SQLRepository, entry_to_dict
from creditledger.services.ledger_service import InvalidKind, NotAuthorized, NotFound


@dataclass
class ReplayResult:
    """Balance recomputed from the ledger, plus any chain breaks found on the way."""

    kind: GrantKind
    initial: int
    replayed: int
    stored: int
    entries: int
    breaks: list[int] = field(default_factory=list)

    @property
    def consistent(self) -> bool:
        return not self.breaks and self.replayed == self.stored


@dataclass
class ReportService:
    def __post_init__(self):
        self.repository = SQLRepository()

    def seller_stats(self, seller_id: int) -> dict:
        return self.repository.seller_totals(seller_id)

    def seller_transactions(self, seller_id: int, page: int = 1, limit: int = 20) -> dict:
        limit, offset = page_offset(page, limit)
        rows = self.repository.list_entries_from_source(seller_id, limit=limit, offset=offset)
        return {"transactions": rows, "page": max(int(page or 1), 1), "limit": limit}

    def seller_transactions_all(self, page: int = 1, limit: int = 50) -> dict:
        limit, offset = page_offset(page, limit)
        rows = self.repository.list_seller_entries(limit=limit, offset=offset)
        return {"transactions": rows, "page": max(int(page or 1), 1), "limit": limit}

    def platform_stats(self) -> dict:
        stats = self.repository.user_totals()
        stats.update(self.repository.ledger_totals())
        return stats

    def ledger_history(self, target_id: int, kind: Optional[str] = None) -> list[dict]:
        if kind:
            if kind != "role_change" and parse_grant_kind(kind) is None:
                raise InvalidKind(f"Tipo invalido: {kind}")
        if self.repository.get_user(target_id) is None:
            raise NotFound("Usuario no encontrado")
        return [entry_to_dict(entry) for entry in self.repository.list_entries_for_target(target_id, kind)]

    def replay_balance(self, target_id: int, kind: GrantKind | str, initial: int) -> ReplayResult:
        """
        Fold the target's grant entries over `initial`. Each entry's
        previous_amount must equal the running value; mismatches are reported
        by entry id. The account row stays authoritative.
        """
        grant_kind = parse_grant_kind(kind)
        if grant_kind is None:
            raise InvalidKind(f"Tipo invalido: {kind}")
        account = self.repository.get_user(target_id)
        if account is None:
            raise NotFound("Usuario no encontrado")
        entries = self.repository.list_entries_for_target(target_id, grant_kind.value)
        running = initial
        breaks: list[int] = []
        for entry in entries:
            amount = int(entry.amount or 0)
            if entry.previous_amount != running or entry.new_amount != entry.previous_amount + amount:
                breaks.append(entry.id)
            running = int(entry.new_amount)
        stored = account.credits if grant_kind is GrantKind.CREDITS else account.days_remaining
        return ReplayResult(
            kind=grant_kind,
            initial=initial,
            replayed=running,
            stored=int(stored or 0),
            entries=len(entries),
            breaks=breaks,
        )

    def list_users(self, caller_role: Role | str, role: Optional[str] = None, page: int = 1, limit: int = 20) -> dict:
        """Admins may filter by any role; sellers only ever see regular users."""
        viewer = parse_role(caller_role)
        if viewer not in (Role.ADMIN, Role.SELLER):
            raise NotAuthorized("No tienes permisos para ver usuarios")
        if viewer is Role.SELLER:
            role = Role.USER.value
        elif role:
            parsed = parse_role(role)
            role = parsed.value if parsed else None
        limit, offset = page_offset(page, limit)
        users = self.repository.list_users(role, limit=limit, offset=offset)
        return {"users": [user_summary(user) for user in users], "page": max(int(page or 1), 1), "limit": limit}

    def search_users(self, username: str) -> list[dict]:
        term = (username or "").strip().lstrip("@")
        if not term:
            return []
        return [user_summary(user) for user in self.repository.search_users(term)]


def user_summary(user) -> dict:
    return {
        "id": user.id,
        "username": user.username,
        "display_name": user.display_name,
        "credits": user.credits,
        "days_remaining": user.days_remaining,
        "role": user.role,
        "is_active": bool(user.is_active),
        "telegram_verified": bool(user.telegram_verified),
        "last_login": user.last_login.isoformat() if user.last_login else None,
        "created_at": user.created_at.isoformat() if user.created_at else None,
    }
