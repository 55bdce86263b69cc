"""
Health check endpoints.
Provides basic and detailed health status of the service and its dependencies.
"""

import asyncio

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy import text

from shared.config.settings import settings
from shared.config.logging import get_logger
from shared.infrastructure.db import SessionLocal
from shared.infrastructure.events import check_redis_health

logger = get_logger(__name__)

router = APIRouter(prefix="/api", tags=["health"])


@router.get("/health")
def health_check():
    """
    Basic health check endpoint.
    Returns service status without checking dependencies.
    """
    return {
        "status": "healthy",
        "service": "storefront-api",
        "environment": settings.environment,
    }


def _check_database() -> bool:
    try:
        with SessionLocal() as db:
            db.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.warning("Database health check failed", error=str(e))
        return False


@router.get("/health/detailed")
async def detailed_health_check():
    """
    Verify connectivity to the database and Redis.

    Returns 503 if the database is down. Redis only carries change events,
    so a Redis outage degrades the service instead of failing it.
    """
    database_ok = await asyncio.to_thread(_check_database)
    try:
        redis_ok = await asyncio.wait_for(check_redis_health(), timeout=3.0)
    except asyncio.TimeoutError:
        redis_ok = False

    if not database_ok:
        overall = "unhealthy"
    elif not redis_ok:
        overall = "degraded"
    else:
        overall = "healthy"

    body = {
        "status": overall,
        "service": "storefront-api",
        "environment": settings.environment,
        "dependencies": {
            "database": "healthy" if database_ok else "unhealthy",
            "redis": "healthy" if redis_ok else "unhealthy",
        },
    }
    return JSONResponse(content=body, status_code=200 if database_ok else 503)
