"""Per-caller rate limiting and error responses for API routes.

Callers are identified by user id when an upstream auth layer has set
`request.state.user_id`, otherwise by client IP.
"""
import logging
import math

from fastapi import Request
from fastapi.responses import JSONResponse

from reframe.config import Settings
from reframe.services.rate_limiter import RateLimiter, get_client_ip

logger = logging.getLogger(__name__)


class RateLimitExceeded(Exception):
    """Raised when a caller's bucket is empty or cooling down."""

    def __init__(self, retry_after_ms: int):
        self.retry_after_ms = retry_after_ms
        self.message = "Too many requests. Please try again in a moment."
        super().__init__(self.message)


def request_client_ip(request: Request, settings: Settings) -> str:
    peer = request.client.host if request.client else None
    return get_client_ip(request.headers, peer, trust_forwarded=settings.trust_forwarded_headers)


def request_user_id(request: Request) -> str | None:
    return getattr(request.state, "user_id", None)


async def check_rate_limit(
    request: Request,
    limiter: RateLimiter,
    settings: Settings,
    prefix: str,
    rpm: int,
) -> None:
    """Consume one token for the caller. Raises RateLimitExceeded if denied."""
    caller = request_user_id(request) or request_client_ip(request, settings)
    result = await limiter.check(f"{prefix}:{caller}", rpm)
    if not result.allowed:
        raise RateLimitExceeded(result.retry_after_ms)


def error_response(
    status_code: int,
    message: str,
    headers: dict[str, str] | None = None,
    **extra,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"status": "error", "code": status_code, "message": message, **extra},
        headers=headers,
    )


def rate_limited_response(retry_after_ms: int, message: str) -> JSONResponse:
    return error_response(
        429,
        message,
        headers={"Retry-After": str(max(1, math.ceil(retry_after_ms / 1000)))},
        retryAfterMs=retry_after_ms,
    )
