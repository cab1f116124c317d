"""
Database Engine and Sessions

Async SQLAlchemy engine, session factory and declarative Base.

PostgreSQL (asyncpg) is the production backend; setting DATABASE_URL to a
``sqlite+aiosqlite`` URL runs the service and the integration tests
without a database server. Pool sizing comes from the ``database``
section of config/default.yaml.

Usage:
    from app.db.base import get_db

    @router.get("/progress")
    async def progress(db: AsyncSession = Depends(get_db)):
        ...
"""

from collections.abc import AsyncGenerator
from typing import Any, Optional

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from app.config import settings, yaml_config


def pool_options() -> dict[str, Any]:
    """Connection pool arguments from the YAML ``database`` section."""
    db_config: dict[str, Any] = yaml_config.get("database", {})
    return {
        "pool_size": db_config.get("pool_size", 5),
        "max_overflow": db_config.get("max_overflow", 10),
        "pool_timeout": db_config.get("pool_timeout", 30),
    }


def build_engine(url: str) -> AsyncEngine:
    """
    Create an async engine for ``url``.

    SQLite URLs get no pool arguments (aiosqlite manages its own
    connection); server databases get the configured pool.
    """
    if url.startswith("sqlite"):
        return create_async_engine(url, echo=settings.DEBUG)
    return create_async_engine(url, echo=settings.DEBUG, **pool_options())


engine = build_engine(settings.DATABASE_URL_RESOLVED)

async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    """Declarative base for the learning tables."""


# Models register themselves on Base.metadata; imported after Base exists.
from app.db import models  # noqa: F401, E402


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency yielding one session per request.

    Commits when the request handler returns and rolls back when it
    raises, so a failed request never leaves partial writes behind.
    """
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_db(target: Optional[AsyncEngine] = None) -> None:
    """
    Create missing tables on ``target`` (defaults to the app engine).

    Used at startup when AUTO_CREATE_TABLES is set; deployments run the
    Alembic migration instead.
    """
    async with (target or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
