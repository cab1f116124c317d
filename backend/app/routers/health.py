"""
Health Check Endpoints

Liveness and readiness checks.

Endpoints:
- GET /api/health - Process is up
- GET /api/health/ready - Database answers and the course catalog is loaded
"""

import logging

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.db.base import get_db
from app.dependencies import get_catalog
from app.services.course_catalog import CourseCatalog

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/health", tags=["health"])


@router.get("")
async def health_check():
    """Liveness check; does not touch the database."""
    return {"status": "healthy", "service": settings.APP_NAME}


@router.get("/ready")
async def readiness_check(
    db: AsyncSession = Depends(get_db),
    catalog: CourseCatalog = Depends(get_catalog),
):
    """
    Readiness check for orchestration systems.

    Returns 503 with the failing checks when the database does not answer
    or the catalog has no items.
    """
    checks = {"database": True, "catalog": catalog.item_count > 0}

    try:
        await db.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(f"Readiness check failed: database unavailable: {e}")
        checks["database"] = False

    ready = all(checks.values())
    return JSONResponse(
        status_code=status.HTTP_200_OK if ready else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"ready": ready, "checks": checks},
    )
