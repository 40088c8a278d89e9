"""
Health check endpoints
"""

from typing import Any
import logging
from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from cinego.core.database import get_session, ping_db
from cinego.config import settings

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/live")
async def liveness() -> Any:
    """
    Kubernetes liveness probe
    """
    return {"status": "alive", "service": "cinego-api"}


@router.get("/ready")
async def readiness(
    response: Response,
    db: AsyncSession = Depends(get_session)
) -> Any:
    """
    Kubernetes readiness probe - checks the database
    """
    checks = {
        "database": False,
        "api": True
    }

    try:
        checks["database"] = await ping_db(db)
    except Exception as e:
        logger.warning(f"Readiness check: database unavailable: {e}")

    all_healthy = all(checks.values())
    if not all_healthy:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return {
        "status": "ready" if all_healthy else "not ready",
        "checks": checks,
        "version": settings.APP_VERSION
    }
