"""Map service exceptions to HTTP errors with a `{success, error, code}` body."""
from __future__ import annotations

from fastapi import HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from creditledger.services.auth_service import (
    AccountDisabledError,
    AccountExistsError,
    AccountNotFoundError,
    AlreadyVerifiedError,
    AuthError,
    CodeInvalidError,
    InvalidCredentialsError,
    RegistrationError,
    VerificationRequiredError,
    WeakPasswordError,
)
from creditledger.services.ledger_service import LedgerError

LEDGER_STATUS = {
    "not_authorized": 403,
    "invalid_target": 404,
    "not_found": 404,
    "invalid_amount": 400,
    "self_grant": 400,
    "invalid_role": 400,
    "invalid_kind": 400,
}

AUTH_STATUS: dict[type[AuthError], tuple[int, str]] = {
    RegistrationError: (400, "invalid_registration"),
    AccountExistsError: (409, "account_exists"),
    AccountNotFoundError: (404, "not_found"),
    AlreadyVerifiedError: (400, "already_verified"),
    InvalidCredentialsError: (401, "invalid_credentials"),
    VerificationRequiredError: (403, "verification_required"),
    AccountDisabledError: (403, "account_disabled"),
    CodeInvalidError: (400, "invalid_code"),
    WeakPasswordError: (400, "weak_password"),
}

_DEFAULT_CODES = {
    400: "bad_request",
    401: "unauthorized",
    403: "forbidden",
    404: "not_found",
    409: "conflict",
    422: "validation_error",
    429: "rate_limited",
}


class ApiError(HTTPException):
    def __init__(self, status_code: int, message: str, code: str):
        super().__init__(status_code, message)
        self.code = code


def ledger_http_error(exc: LedgerError) -> ApiError:
    return ApiError(LEDGER_STATUS.get(exc.code, 400), exc.message, exc.code)


def auth_http_error(exc: AuthError) -> ApiError:
    status, code = AUTH_STATUS.get(type(exc), (400, "auth_error"))
    return ApiError(status, exc.message or "Error de autenticacion", code)


async def http_exception_handler(_request: Request, exc: StarletteHTTPException) -> JSONResponse:
    code = getattr(exc, "code", None) or _DEFAULT_CODES.get(exc.status_code, "error")
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": exc.detail, "code": code},
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=422,
        content={
            "success": False,
            "error": "Datos invalidos",
            "code": "validation_error",
            "details": jsonable_encoder(exc.errors()),
        },
    )
