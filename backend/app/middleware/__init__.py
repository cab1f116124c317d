"""
Middleware Package

Provides FastAPI middleware for:
- Rate limiting
- Error handling
"""

from app.middleware.error_handling import (
    ConflictError,
    ErrorHandlingMiddleware,
    GoneError,
    InvalidRequestError,
    NotFoundError,
    ServiceError,
    SessionPayloadError,
    UnknownQuestionError,
    setup_error_handling,
)
from app.middleware.rate_limit import limiter, setup_rate_limiting

__all__ = [
    "setup_rate_limiting",
    "limiter",
    "setup_error_handling",
    "ErrorHandlingMiddleware",
    "ServiceError",
    "InvalidRequestError",
    "UnknownQuestionError",
    "NotFoundError",
    "ConflictError",
    "GoneError",
    "SessionPayloadError",
]
