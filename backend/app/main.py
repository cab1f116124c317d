"""
LingoFlow API

FastAPI application for adaptive language practice sessions.

Startup:
    - Configures logging from LOG_LEVEL
    - Creates tables when AUTO_CREATE_TABLES is set (Alembic in production)
    - Loads the course catalog once so a broken corpus fails fast

Run:
    uvicorn app.main:app --reload
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import settings
from app.db.base import init_db
from app.middleware import setup_error_handling, setup_rate_limiting
from app.routers import health_router, practice_router, progress_router
from app.services.course_catalog import get_course_catalog

logger = logging.getLogger(__name__)


def setup_logging() -> None:
    """Configure root logging from settings.LOG_LEVEL."""
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.AUTO_CREATE_TABLES:
        await init_db()
        logger.info("Database tables ensured")

    catalog = get_course_catalog()
    logger.info(
        f"{settings.APP_NAME} ready: {len(catalog.languages)} languages, "
        f"{catalog.item_count} course items"
    )

    yield

    logger.info(f"{settings.APP_NAME} shutting down")


def create_app() -> FastAPI:
    """Build the FastAPI application with middleware and routers."""
    setup_logging()

    app = FastAPI(title=f"{settings.APP_NAME} API", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    setup_error_handling(app, debug=settings.DEBUG)
    setup_rate_limiting(app, enabled=settings.RATE_LIMIT_ENABLED)

    app.include_router(health_router.router)
    app.include_router(practice_router.router)
    app.include_router(progress_router.router)

    return app


app = create_app()
