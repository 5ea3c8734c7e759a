from __future__ import annotations

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from creditledger import __version__
from creditledger.core.config import configure_logging, get_settings
from creditledger.db.create_tables import create_all, seed_admin
from creditledger.routers import admin as admin_router
from creditledger.routers import auth as auth_router
from creditledger.routers import health as health_router
from creditledger.routers import seller as seller_router
from creditledger.routers.errors import http_exception_handler, validation_exception_handler

logger = logging.getLogger(__name__)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Inject baseline security headers (anti clickjacking, no sniffing, referrer policy)."""

    def __init__(self, app, *, enforce_hsts: bool) -> None:
        super().__init__(app)
        self._enforce_hsts = enforce_hsts

    async def dispatch(self, request, call_next):
        response = await call_next(request)
        response.headers.setdefault("X-Frame-Options", "DENY")
        response.headers.setdefault("X-Content-Type-Options", "nosniff")
        response.headers.setdefault("Referrer-Policy", "no-referrer")
        response.headers.setdefault("Cache-Control", "no-store")
        if self._enforce_hsts:
            response.headers.setdefault("Strict-Transport-Security", "max-age=31536000; includeSubDomains")
        return response


@asynccontextmanager
async def lifespan(_app: FastAPI):
    configure_logging()
    create_all()
    seed_admin()
    logger.info("creditledger %s started (env=%s)", __version__, get_settings().app_env)
    yield


def create_app() -> FastAPI:
    """Factory compatible with uvicorn/gunicorn (`uvicorn creditledger.app:app`)."""
    settings = get_settings()
    application = FastAPI(title="creditledger API", version=__version__, lifespan=lifespan)
    if settings.allowed_origins:
        application.add_middleware(
            CORSMiddleware,
            allow_origins=list(settings.allowed_origins),
            allow_credentials=True,
            allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
            allow_headers=["*"],
        )
    application.add_middleware(SecurityHeadersMiddleware, enforce_hsts=settings.app_env == "prod")
    application.add_exception_handler(StarletteHTTPException, http_exception_handler)
    application.add_exception_handler(RequestValidationError, validation_exception_handler)

    application.include_router(health_router.router)
    application.include_router(auth_router.router)
    application.include_router(seller_router.router)
    application.include_router(admin_router.router)
    return application


app = create_app()
