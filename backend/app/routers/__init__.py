"""API Routers package."""

from app.routers import health as health_router
from app.routers import practice as practice_router
from app.routers import progress as progress_router

__all__ = ["health_router", "practice_router", "progress_router"]
