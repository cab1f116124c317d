"""
Integration Test Fixtures

Runs the SQL repository and the HTTP API against a real database. Each test
gets its own SQLite file (sqlite+aiosqlite) under pytest's tmp_path, so the
configured DATABASE_URL is never touched.

The async_test_client fixture overrides get_db and get_catalog so requests
use the per-test database and the small sample catalog from the parent
conftest.py.
"""

from collections.abc import AsyncGenerator

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.db.base import build_engine, init_db

pytestmark = pytest.mark.integration


# =============================================================================
# Database
# =============================================================================


@pytest_asyncio.fixture(scope="function")
async def session_maker(tmp_path) -> AsyncGenerator[async_sessionmaker, None]:
    """
    Session factory bound to a fresh SQLite database with all tables.

    The engine is disposed after the test.
    """
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'lingoflow.db'}")

    await init_db(engine)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(session_maker) -> AsyncGenerator[AsyncSession, None]:
    """Single database session for repository-level tests."""
    async with session_maker() as session:
        yield session


# =============================================================================
# HTTP Client
# =============================================================================


@pytest_asyncio.fixture
async def async_test_client(session_maker, catalog) -> AsyncGenerator[httpx.AsyncClient, None]:
    """
    Async HTTP client for the API.

    Every request opens its own session, mirroring the production get_db
    dependency (commit on success, rollback on error).

    Note: As of httpx 0.28+, ASGITransport must be used instead of passing
    `app` directly to AsyncClient.
    """
    from app.db.base import get_db
    from app.dependencies import get_catalog
    from app.main import app

    async def get_test_db():
        async with session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = get_test_db
    app.dependency_overrides[get_catalog] = lambda: catalog

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.pop(get_db, None)
    app.dependency_overrides.pop(get_catalog, None)


@pytest.fixture
def learner_headers() -> dict[str, str]:
    return {"X-Learner-Id": "learner-1"}
