from __future__ import annotations

from fastapi import APIRouter

from creditledger import __version__
from creditledger.core.config import get_settings
from creditledger.core.utils import utcnow

router = APIRouter(prefix="/api", tags=["health"])


@router.get("/health")
def health():
    return {
        "success": True,
        "status": "healthy",
        "service": "creditledger",
        "environment": get_settings().app_env,
        "version": __version__,
        "timestamp": utcnow().isoformat(),
    }
