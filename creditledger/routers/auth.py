from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel

from creditledger.core.rate_limiter import rate_limit_ip
from creditledger.db.models import User
from creditledger.routers.auth_scope import bearer_token, get_current_user
from creditledger.routers.errors import auth_http_error
from creditledger.services.auth_service import AuthError, AuthService
from creditledger.services.report_service import user_summary

router = APIRouter(prefix="/api/auth", tags=["auth"])


def get_auth_service() -> AuthService:
    return AuthService()


class RegisterPayload(BaseModel):
    username: str
    password: str
    display_name: Optional[str] = None


class UsernamePayload(BaseModel):
    username: str


class VerifyPayload(BaseModel):
    username: str
    code: str


class LoginPayload(BaseModel):
    username: str
    password: str


class ResetPayload(BaseModel):
    username: str
    code: str
    new_password: str


def _with_dev_code(body: dict, dev_code: Optional[str]) -> dict:
    if dev_code:
        body["dev_code"] = dev_code
    return body


@router.post("/register", status_code=201)
def register(payload: RegisterPayload, request: Request, service: AuthService = Depends(get_auth_service)):
    rate_limit_ip(request, "auth:register", limit=10, window_seconds=3600)
    try:
        result = service.register(payload.username, payload.password, payload.display_name or "")
    except AuthError as exc:
        raise auth_http_error(exc) from exc
    body = {
        "success": True,
        "message": "Usuario registrado. Revisa Telegram para el codigo de verificacion.",
        "user_id": result.user_id,
        "username": result.username,
        "code_sent": result.code_sent,
    }
    return _with_dev_code(body, result.dev_code)


@router.post("/request-verification")
def request_verification(payload: UsernamePayload, request: Request, service: AuthService = Depends(get_auth_service)):
    rate_limit_ip(request, "auth:verification", limit=5, window_seconds=600)
    try:
        delivery = service.request_verification(payload.username)
    except AuthError as exc:
        raise auth_http_error(exc) from exc
    body = {"success": True, "message": "Codigo enviado por Telegram", "code_sent": delivery.code_sent}
    return _with_dev_code(body, delivery.dev_code)


@router.post("/verify-code")
def verify_code(payload: VerifyPayload, request: Request, service: AuthService = Depends(get_auth_service)):
    rate_limit_ip(request, "auth:verify", limit=10, window_seconds=600)
    try:
        result = service.verify_code(payload.username, payload.code)
    except AuthError as exc:
        raise auth_http_error(exc) from exc
    return {
        "success": True,
        "message": "Cuenta verificada",
        "user_id": result.user_id,
        "username": result.username,
        "token": result.session_token,
    }


@router.post("/login")
def login(payload: LoginPayload, request: Request, service: AuthService = Depends(get_auth_service)):
    rate_limit_ip(request, "auth:login", limit=20, window_seconds=300)
    try:
        result = service.login(payload.username, payload.password)
    except AuthError as exc:
        raise auth_http_error(exc) from exc
    return {"success": True, "token": result.session_token, "user": user_summary(result.user)}


@router.post("/logout")
def logout(token: Optional[str] = Depends(bearer_token), service: AuthService = Depends(get_auth_service)):
    service.logout(token)
    return {"success": True}


@router.get("/me")
def me(user: User = Depends(get_current_user)):
    return {"success": True, "user": user_summary(user)}


@router.get("/check-username/{username}")
def check_username(username: str, service: AuthService = Depends(get_auth_service)):
    return {"success": True, "username": username, "available": service.username_available(username)}


@router.post("/forgot-password")
def forgot_password(payload: UsernamePayload, request: Request, service: AuthService = Depends(get_auth_service)):
    rate_limit_ip(request, "auth:forgot", limit=5, window_seconds=900)
    delivery = service.request_password_reset(payload.username)
    body = {"success": True, "message": "Si la cuenta existe, recibiras un codigo por Telegram"}
    return _with_dev_code(body, delivery.dev_code if delivery else None)


@router.post("/reset-password")
def reset_password(payload: ResetPayload, request: Request, service: AuthService = Depends(get_auth_service)):
    rate_limit_ip(request, "auth:reset", limit=10, window_seconds=900)
    try:
        service.reset_password(payload.username, payload.code, payload.new_password)
    except AuthError as exc:
        raise auth_http_error(exc) from exc
    return {"success": True, "message": "Contrasena actualizada"}
