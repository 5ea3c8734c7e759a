from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from creditledger.db.models import User
from creditledger.domain.roles import Role
from creditledger.routers.auth_scope import RequestMeta, request_meta, require_roles
from creditledger.routers.errors import ledger_http_error
from creditledger.services.ledger_service import LedgerError
from creditledger.services.report_service import ReportService
from creditledger.services.role_service import RoleService

router = APIRouter(prefix="/api/admin", tags=["admin"])
admin_only = require_roles(Role.ADMIN)
staff = require_roles(Role.ADMIN, Role.SELLER)


class RolePayload(BaseModel):
    role: str
    reason: Optional[str] = None


class StatusPayload(BaseModel):
    is_active: bool


@router.put("/users/{user_id}/role")
def change_role(
    user_id: int,
    payload: RolePayload,
    caller: User = Depends(admin_only),
    meta: RequestMeta = Depends(request_meta),
):
    try:
        result = RoleService().change_role(
            caller.id,
            user_id,
            payload.role,
            reason=payload.reason,
            ip_address=meta.ip_address,
            user_agent=meta.user_agent,
        )
    except LedgerError as exc:
        raise ledger_http_error(exc) from exc
    return {
        "success": True,
        "message": f"Rol de {result.target_username} cambiado a {result.new_role.value}",
        "data": {
            "user_id": user_id,
            "username": result.target_username,
            "old_role": result.old_role.value,
            "new_role": result.new_role.value,
            "transaction_id": result.entry_id,
        },
    }


@router.get("/users")
def list_users(
    role: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=200),
    caller: User = Depends(staff),
):
    try:
        data = ReportService().list_users(caller.role, role, page, limit)
    except LedgerError as exc:
        raise ledger_http_error(exc) from exc
    return {
        "success": True,
        "users": data["users"],
        "pagination": {"page": data["page"], "limit": data["limit"]},
    }


@router.get("/transactions/sellers")
def seller_transactions(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    caller: User = Depends(admin_only),
):
    data = ReportService().seller_transactions_all(page, limit)
    return {
        "success": True,
        "transactions": data["transactions"],
        "pagination": {"page": data["page"], "limit": data["limit"]},
    }


@router.get("/stats/platform")
def platform_stats(caller: User = Depends(admin_only)):
    return {"success": True, "stats": ReportService().platform_stats()}


@router.put("/users/{user_id}/status")
def set_status(
    user_id: int,
    payload: StatusPayload,
    caller: User = Depends(admin_only),
    meta: RequestMeta = Depends(request_meta),
):
    try:
        active = RoleService().set_active(
            caller.id, user_id, payload.is_active, ip_address=meta.ip_address, user_agent=meta.user_agent
        )
    except LedgerError as exc:
        raise ledger_http_error(exc) from exc
    return {"success": True, "user_id": user_id, "is_active": active}


@router.get("/users/{user_id}/ledger")
def user_ledger(user_id: int, kind: Optional[str] = None, caller: User = Depends(admin_only)):
    try:
        entries = ReportService().ledger_history(user_id, kind)
    except LedgerError as exc:
        raise ledger_http_error(exc) from exc
    return {"success": True, "user_id": user_id, "entries": entries}
