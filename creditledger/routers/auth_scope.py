"""Authentication dependencies: bearer session lookup and role gates."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from creditledger.core.rate_limiter import client_ip
from creditledger.db.models import User
from creditledger.domain.roles import Role
from creditledger.routers.errors import ApiError
from creditledger.services.session_service import resolve_session

auth_scheme = HTTPBearer(auto_error=False)


@dataclass
class RequestMeta:
    ip_address: str
    user_agent: Optional[str]


def request_meta(request: Request) -> RequestMeta:
    agent = request.headers.get("user-agent")
    return RequestMeta(ip_address=client_ip(request)[:64], user_agent=agent)


def bearer_token(credentials: Optional[HTTPAuthorizationCredentials] = Depends(auth_scheme)) -> Optional[str]:
    if not credentials or credentials.scheme.lower() != "bearer":
        return None
    return credentials.credentials


def get_current_user(token: Optional[str] = Depends(bearer_token)) -> User:
    """Resolve the authenticated account from the Bearer session token."""
    if not token:
        raise ApiError(401, "Token de sesion requerido", "unauthorized")
    user = resolve_session(token)
    if user is None:
        raise ApiError(401, "Sesion invalida o expirada", "unauthorized")
    return user


def require_roles(*roles: Role):
    allowed = {role.value for role in roles}

    def _dependency(user: User = Depends(get_current_user)) -> User:
        if user.role not in allowed:
            raise ApiError(403, "No tienes permisos para realizar esta accion", "not_authorized")
        return user

    return _dependency
