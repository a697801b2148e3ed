"""
Rate Limiting Middleware for FastAPI.

Per-endpoint rate limits, overridable through environment variables:
- Default: 100 requests/minute for standard endpoints
- Payment calculation: 30 requests/minute (writes an immutable record)
- Health/discovery: 300 requests/minute
"""

from slowapi import Limiter
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from fastapi import Request, FastAPI
from fastapi.responses import JSONResponse
import os
import logging

logger = logging.getLogger(__name__)

RATE_LIMITS = {
    # Default rate limit for most endpoints
    "default": os.getenv("RATE_LIMIT_DEFAULT", "100/minute"),

    # Payment calculation stores a record per period
    "calculate": os.getenv("RATE_LIMIT_CALCULATE", "30/minute"),

    # API discovery/health endpoints (more lenient)
    "health": os.getenv("RATE_LIMIT_HEALTH", "300/minute"),
}


def get_client_identifier(request: Request) -> str:
    """
    Get a unique identifier for the client.

    Priority:
    1. X-Real-IP header (from reverse proxy)
    2. X-Forwarded-For header (from load balancer)
    3. Client IP address
    """
    x_real_ip = request.headers.get("X-Real-IP")
    if x_real_ip:
        return x_real_ip

    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        # First IP in the chain is the original client
        return forwarded_for.split(",")[0].strip()

    return get_remote_address(request)


limiter = Limiter(
    key_func=get_client_identifier,
    default_limits=[RATE_LIMITS["default"]],
    storage_uri=os.getenv("REDIS_URL", "memory://"),  # Use Redis in production
    strategy="fixed-window",
)


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """
    Custom handler for rate limit exceeded errors.

    Returns a structured JSON response with retry information.
    """
    logger.warning(
        f"Rate limit exceeded for {get_client_identifier(request)} "
        f"on {request.url.path}"
    )

    return JSONResponse(
        status_code=429,
        content={
            "success": False,
            "error": "RateLimitExceeded",
            "message": "Too many requests. Please slow down and try again later.",
            "detail": str(exc.detail) if hasattr(exc, 'detail') else "Rate limit exceeded",
        },
        headers={"Retry-After": "60"},
    )


def setup_rate_limiting(app: FastAPI) -> None:
    """
    Configure rate limiting for the FastAPI application.

    Args:
        app: FastAPI application instance
    """
    app.state.limiter = limiter
    app.add_middleware(SlowAPIMiddleware)
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

    logger.info(
        f"Rate limiting configured: "
        f"default={RATE_LIMITS['default']}, "
        f"calculate={RATE_LIMITS['calculate']}, "
        f"health={RATE_LIMITS['health']}"
    )


# Decorator shortcuts for common rate limits
def limit_default(func):
    """Apply default rate limit (100/minute)."""
    return limiter.limit(RATE_LIMITS["default"])(func)


def limit_calculate(func):
    """Apply payment calculation rate limit (30/minute)."""
    return limiter.limit(RATE_LIMITS["calculate"])(func)


def limit_health(func):
    """Apply health check rate limit (300/minute)."""
    return limiter.limit(RATE_LIMITS["health"])(func)
