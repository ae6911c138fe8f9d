"""
Rate Limiting for the Travel Back Office API
============================================
Implements rate limiting using slowapi, backed by Redis when REDIS_URL is set
and by process memory otherwise.

Special endpoints have their own limits:
- /auth/login: 5 req/min (brute force protection)
- /auth/register: 3 req/min
- /auth/oauth/{provider}/callback: 10 req/min
- API reads / writes: RATE_LIMIT_READ / RATE_LIMIT_WRITE
"""

from slowapi import Limiter
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from fastapi import Request
from fastapi.responses import JSONResponse

from app.core.config import settings
from app.core.logging_config import logger


def get_user_identifier(request: Request) -> str:
    """
    Get rate limit key based on user authentication.

    Priority:
    1. Authenticated user ID (set on request.state by the auth dependency)
    2. IP address (for anonymous users)
    """
    user_id = getattr(request.state, 'user_id', None)
    if user_id:
        return f"user:{user_id}"

    return f"ip:{get_remote_address(request)}"


def get_storage_uri() -> str:
    """Redis when configured, in-process memory otherwise"""
    return settings.REDIS_URL or "memory://"


# Create limiter instance
limiter = Limiter(
    key_func=get_user_identifier,
    default_limits=[f"{settings.RATE_LIMIT_PER_MINUTE}/minute"],
    storage_uri=get_storage_uri(),
    strategy="fixed-window",
    enabled=settings.RATE_LIMIT_ENABLED,
)


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded):
    """
    Custom handler for rate limit exceeded errors.

    Returns the standard error envelope with a Retry-After header.
    """
    # Length of the exceeded window
    retry_after = str(exc.limit.limit.get_expiry())

    logger.warning(
        f"[RateLimit] Exceeded for {get_user_identifier(request)}: {exc.detail}",
        extra={"event_type": "rate_limited", "http_path": request.url.path}
    )

    return JSONResponse(
        status_code=429,
        content={
            "success": False,
            "error": {
                "code": "RATE_LIMIT_EXCEEDED",
                "message": "Too many requests. Please try again later.",
                "details": {
                    "limit": str(exc.detail),
                    "retry_after_seconds": int(retry_after),
                }
            }
        },
        headers={"Retry-After": retry_after}
    )


# Pre-configured rate limiters for common use cases
def register_rate_limit():
    """Registration (3/min)"""
    return limiter.limit("3/minute")


def auth_rate_limit():
    """Rate limit for login (5/min)"""
    return limiter.limit("5/minute")


def oauth_rate_limit():
    """Rate limit for OAuth callbacks (10/min)"""
    return limiter.limit("10/minute")


def read_rate_limit():
    """Rate limit for API reads"""
    return limiter.limit(settings.RATE_LIMIT_READ)


def write_rate_limit():
    """Rate limit for API writes"""
    return limiter.limit(settings.RATE_LIMIT_WRITE)
