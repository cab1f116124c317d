"""
Integration Tests for Health Check Endpoints

Run with: pytest tests/integration/test_health.py -v
"""

import pytest

pytestmark = pytest.mark.integration


class TestBasicHealthEndpoint:
    """Test the basic health check endpoint."""

    @pytest.mark.asyncio
    async def test_health_returns_healthy_status(self, async_test_client) -> None:
        response = await async_test_client.get("/api/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "service": "LingoFlow"}

    @pytest.mark.asyncio
    async def test_health_needs_no_learner_id(self, async_test_client) -> None:
        """Health checks are not scoped to a learner."""
        response = await async_test_client.get("/api/health", headers={})

        assert response.status_code == 200


class TestReadinessEndpoint:
    """Test the readiness endpoint."""

    @pytest.mark.asyncio
    async def test_ready_with_database(self, async_test_client) -> None:
        """Readiness should report ready when the database answers."""
        response = await async_test_client.get("/api/health/ready")

        assert response.status_code == 200
        assert response.json() == {"ready": True, "checks": {"database": True, "catalog": True}}

    @pytest.mark.asyncio
    async def test_not_ready_with_empty_catalog(self, async_test_client) -> None:
        """An empty course catalog should fail readiness with 503."""
        from app.dependencies import get_catalog
        from app.main import app
        from app.services.course_catalog import CourseCatalog

        app.dependency_overrides[get_catalog] = lambda: CourseCatalog([], [], {})
        response = await async_test_client.get("/api/health/ready")

        assert response.status_code == 503
        assert response.json()["checks"]["catalog"] is False
