"""
OpenAPI Contract Tests

These tests ensure the API contract is stable and changes are intentional.
They check that the session and progress endpoints exist with the expected
request bodies, parameters and documented error responses.

Run with: pytest tests/unit/test_openapi_contract.py -v
"""

from typing import Any

import pytest
from fastapi.testclient import TestClient

from app.main import app


@pytest.fixture
def client():
    """Test client for the FastAPI app."""
    return TestClient(app)


@pytest.fixture
def openapi_schema(client) -> dict[str, Any]:
    """Get the current OpenAPI schema."""
    response = client.get("/openapi.json")
    assert response.status_code == 200
    return response.json()


# =============================================================================
# Critical Endpoint Existence Tests
# =============================================================================


class TestCriticalEndpoints:
    """Verify critical endpoints exist in the schema."""

    CRITICAL_ENDPOINTS = [
        ("GET", "/api/health"),
        ("GET", "/api/health/ready"),
        ("POST", "/api/session/start"),
        ("POST", "/api/session/complete"),
        ("GET", "/api/languages"),
        ("GET", "/api/course"),
        ("GET", "/api/progress"),
        ("GET", "/api/stats"),
        ("GET", "/api/settings"),
        ("PUT", "/api/settings"),
    ]

    @pytest.mark.parametrize("method,path", CRITICAL_ENDPOINTS)
    def test_endpoint_exists(self, openapi_schema, method, path):
        assert path in openapi_schema["paths"], f"Missing path: {path}"
        assert method.lower() in openapi_schema["paths"][path], f"Missing {method} {path}"


# =============================================================================
# Request / Response Contract Tests
# =============================================================================


class TestSessionContract:
    """Verify the session endpoints' bodies and error responses."""

    def test_start_request_fields(self, openapi_schema):
        schema = openapi_schema["components"]["schemas"]["SessionStartRequest"]

        assert set(schema["required"]) == {"language", "category"}
        assert "count" in schema["properties"]

    def test_complete_request_fields(self, openapi_schema):
        schema = openapi_schema["components"]["schemas"]["SessionCompleteRequest"]

        assert set(schema["required"]) == {"session_id", "language", "category"}
        assert {"attempts", "hints_used", "revealed_answers"} <= set(schema["properties"])

    def test_complete_documents_error_codes(self, openapi_schema):
        """Completion errors should be documented with the shared error body."""
        responses = openapi_schema["paths"]["/api/session/complete"]["post"]["responses"]

        for code in ("400", "404", "409", "410"):
            assert code in responses
            assert "ErrorDetail" in str(responses[code])

    def test_question_union_has_all_variants(self, openapi_schema):
        schemas = openapi_schema["components"]["schemas"]

        for name in (
            "MultipleChoiceQuestion",
            "SentenceBuildQuestion",
            "ClozeQuestion",
            "DictationQuestion",
            "DialogueQuestion",
        ):
            assert name in schemas, f"Missing question schema: {name}"


class TestReadEndpointParameters:
    """Verify query parameters on the read endpoints."""

    @pytest.mark.parametrize("path", ["/api/course", "/api/progress", "/api/stats"])
    def test_language_is_optional_query(self, openapi_schema, path):
        params = openapi_schema["paths"][path]["get"].get("parameters", [])
        language = next(p for p in params if p["name"] == "language")

        assert language["in"] == "query"
        assert language.get("required", False) is False

    @pytest.mark.parametrize("path", ["/api/progress", "/api/settings"])
    def test_learner_header_is_declared(self, openapi_schema, path):
        params = openapi_schema["paths"][path]["get"].get("parameters", [])

        assert any(p["name"] == "X-Learner-Id" and p["in"] == "header" for p in params)
