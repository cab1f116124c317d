"""
Error Handling Middleware

Provides consistent, informative error responses across the API.

Features:
- Standardized error response format
- Correlation IDs for log tracking
- Sanitized responses (hides internal details in production)
- Custom exception classes for the practice engine's error taxonomy

Usage:
    from app.middleware.error_handling import ErrorHandlingMiddleware, ConflictError

    # Add middleware to app
    app.add_middleware(ErrorHandlingMiddleware)

    # Raise custom exceptions from services
    raise ConflictError("Session already completed")

Exception handling hierarchy:
    - HTTPException: Re-raised for FastAPI's built-in handler
    - ServiceError: Custom exceptions → structured JSON response
    - Exception: Catch-all for unexpected errors → sanitized response

Error taxonomy (practice engine):
    InvalidRequestError   400  malformed/oversized attempt batch, metadata mismatch
    UnknownQuestionError  400  attempt references a question absent from the session
    NotFoundError         404  unknown session, empty corpus
    ConflictError         409  session already completed
    GoneError             410  session past its expiry date
"""

import logging
import traceback
from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)


# =============================================================================
# Custom Exceptions
# =============================================================================


class ServiceError(Exception):
    """
    Base class for errors the practice engine reports to API callers.

    Subclasses pin ``status_code`` and ``error_code``; ``details`` carries
    identifiers (session id, expected/received values) for debugging and is
    only echoed to clients in debug mode.
    """

    status_code: int = 500
    error_code: str = "service_error"

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        error_code: Optional[str] = None,
        details: Optional[dict] = None,
    ):
        super().__init__(message)
        self.message = message
        if status_code:
            self.status_code = status_code
        if error_code:
            self.error_code = error_code
        self.details = details


class InvalidRequestError(ServiceError):
    """
    Request failed validation before any state was touched.

    Raised for empty or oversized attempt batches and for completion
    requests whose language/category do not match the stored session.
    """

    status_code = 400
    error_code = "bad_request"


class UnknownQuestionError(InvalidRequestError):
    """
    An attempt references a question id that is not part of the session.

    The whole completion is rejected; nothing is scored.
    """

    error_code = "unknown_question"


class NotFoundError(ServiceError):
    """
    Unknown session (or one owned by another learner), unknown language,
    or a language/category pair with no course items.
    """

    status_code = 404
    error_code = "not_found"


class ConflictError(ServiceError):
    """
    Session already completed.

    The result was delivered once; retries never credit XP again.
    """

    status_code = 409
    error_code = "conflict"


class GoneError(ServiceError):
    """Session expired before it was completed."""

    status_code = 410
    error_code = "gone"


class SessionPayloadError(ServiceError):
    """Stored session questions could not be decoded."""

    status_code = 500
    error_code = "session_payload_error"


# =============================================================================
# Error Handling Middleware
# =============================================================================


def error_body(
    error_code: str, message: str, error_id: str, details: Optional[dict] = None
) -> dict:
    """JSON body shared by every error response (see models.base.ErrorDetail)."""
    return {
        "error": error_code,
        "message": message,
        "error_id": error_id,
        "details": details,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """
    Renders ServiceError subclasses and unexpected exceptions as JSON.

    Each failure is logged under a short correlation id that is also
    returned to the client. Client errors (4xx) log at WARNING, server
    errors at ERROR. HTTPException passes through to FastAPI.
    """

    def __init__(self, app, debug: bool = False):
        """
        Args:
            app: FastAPI/Starlette application
            debug: Echo error details and tracebacks in responses
        """
        super().__init__(app)
        self.debug = debug

    async def dispatch(self, request: Request, call_next):
        error_id = uuid4().hex[:8]

        try:
            return await call_next(request)
        except HTTPException:
            raise
        except ServiceError as e:
            return self._render_service_error(request, e, error_id)
        except Exception as e:
            return self._render_unexpected_error(request, e, error_id)

    def _render_service_error(
        self, request: Request, error: ServiceError, error_id: str
    ) -> JSONResponse:
        log = logger.warning if error.status_code < 500 else logger.error
        log(
            f"[{error_id}] {request.method} {request.url.path} -> "
            f"{error.status_code} {error.error_code}: {error.message}",
            extra={"error_id": error_id, "details": error.details},
        )
        return JSONResponse(
            status_code=error.status_code,
            content=error_body(
                error.error_code,
                error.message,
                error_id,
                error.details if self.debug else None,
            ),
        )

    def _render_unexpected_error(
        self, request: Request, error: Exception, error_id: str
    ) -> JSONResponse:
        logger.error(
            f"[{error_id}] {request.method} {request.url.path} -> "
            f"unhandled {type(error).__name__}: {error}",
            extra={"error_id": error_id, "traceback": traceback.format_exc()},
        )

        details = None
        if self.debug:
            details = {
                "exception": type(error).__name__,
                "message": str(error),
                "traceback": traceback.format_exc(),
            }

        return JSONResponse(
            status_code=500,
            content=error_body(
                "internal_server_error", "An unexpected error occurred", error_id, details
            ),
        )


def setup_error_handling(app: FastAPI, debug: bool = False) -> None:
    """
    Install the error handling middleware.

    Args:
        app: FastAPI application instance
        debug: Echo error details in responses
    """
    app.add_middleware(ErrorHandlingMiddleware, debug=debug)
    logger.info(f"Error handling middleware enabled (debug={debug})")
