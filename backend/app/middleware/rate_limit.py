"""
Rate Limiting Middleware

Global request limit for the API using SlowAPI.

Every route shares RATE_LIMIT_DEFAULT, counted per client address. The
X-Learner-Id header is not part of the key: it is chosen by the client,
so keying on it would hand out a fresh budget per invented id.

Usage:
    from app.middleware.rate_limit import setup_rate_limiting

    setup_rate_limiting(app, enabled=settings.RATE_LIMIT_ENABLED)
"""

import logging

from fastapi import FastAPI, Request
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address

from app.config import settings

logger = logging.getLogger(__name__)


def get_rate_limit_key(request: Request) -> str:
    """
    Bucket key for a request.

    Uses the first X-Forwarded-For hop when behind a proxy, otherwise the
    direct client address.

    Returns:
        ``ip:<address>``
    """
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return f"ip:{forwarded_for.split(',')[0].strip()}"

    return f"ip:{get_remote_address(request)}"


limiter = Limiter(
    key_func=get_rate_limit_key,
    default_limits=[settings.RATE_LIMIT_DEFAULT],
)


def setup_rate_limiting(app: FastAPI, enabled: bool = True) -> None:
    """
    Attach the limiter to the app.

    Args:
        app: FastAPI application instance
        enabled: When False the app runs without limits
    """
    if not enabled:
        logger.info("Rate limiting disabled")
        return

    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)

    logger.info(f"Rate limiting enabled ({settings.RATE_LIMIT_DEFAULT} per client)")
