from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from creditledger.db.models import User
from creditledger.domain.roles import GrantKind, Role
from creditledger.routers.auth_scope import RequestMeta, request_meta, require_roles
from creditledger.routers.errors import ApiError, ledger_http_error
from creditledger.services.ledger_service import MAX_BALANCE, LedgerError, LedgerService
from creditledger.services.report_service import ReportService

router = APIRouter(prefix="/api/seller", tags=["seller"])
granting_user = require_roles(Role.SELLER, Role.ADMIN)

_LABELS = {GrantKind.CREDITS: "creditos", GrantKind.DAYS: "dias"}


class GrantPayload(BaseModel):
    user_id: int
    amount: int = Field(..., le=MAX_BALANCE)
    reason: str = ""


def _grant(kind: GrantKind, payload: GrantPayload, caller: User, meta: RequestMeta) -> dict:
    try:
        result = LedgerService().grant(
            caller.id,
            payload.user_id,
            kind,
            payload.amount,
            payload.reason,
            ip_address=meta.ip_address,
            user_agent=meta.user_agent,
        )
    except LedgerError as exc:
        raise ledger_http_error(exc) from exc
    return {
        "success": True,
        "message": f"Se agregaron {result.amount} {_LABELS[kind]} a {result.target_username}",
        "data": {
            "user_id": payload.user_id,
            "username": result.target_username,
            "type": kind.value,
            "amount": result.amount,
            "previous_amount": result.previous_amount,
            "new_amount": result.new_amount,
            "transaction_id": result.entry_id,
        },
    }


@router.post("/add-credits")
def add_credits(
    payload: GrantPayload,
    caller: User = Depends(granting_user),
    meta: RequestMeta = Depends(request_meta),
):
    return _grant(GrantKind.CREDITS, payload, caller, meta)


@router.post("/add-days")
def add_days(
    payload: GrantPayload,
    caller: User = Depends(granting_user),
    meta: RequestMeta = Depends(request_meta),
):
    return _grant(GrantKind.DAYS, payload, caller, meta)


@router.get("/stats")
def stats(caller: User = Depends(granting_user)):
    return {"success": True, "stats": ReportService().seller_stats(caller.id)}


@router.get("/transactions")
def transactions(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=200),
    caller: User = Depends(granting_user),
):
    data = ReportService().seller_transactions(caller.id, page, limit)
    return {
        "success": True,
        "transactions": data["transactions"],
        "pagination": {"page": data["page"], "limit": data["limit"]},
    }


@router.get("/search-user")
def search_user(username: str = "", caller: User = Depends(granting_user)):
    if not username.strip():
        raise ApiError(400, "username es requerido", "bad_request")
    return {"success": True, "users": ReportService().search_users(username)}
