"""
Rate limiting middleware.

Provides per-client request rate limiting with an in-process fixed-window
limiter. Limits are per gateway instance.
"""

from typing import Callable

from fastapi import Request, Response, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from gateway.logic.rate_limiter import RateLimiter, RateLimitResult
from gateway.middleware.error_handler import error_body


def get_client_identity(request: Request) -> str:
    """
    Get client identifier for rate limiting.

    Order: first X-Forwarded-For address, X-Real-IP, socket peer, "unknown".
    """
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        ip = forwarded.split(",")[0].strip()
        if ip:
            return ip

    real_ip = request.headers.get("X-Real-IP")
    if real_ip and real_ip.strip():
        return real_ip.strip()

    return request.client.host if request.client else "unknown"


def rate_limit_headers(result: RateLimitResult) -> dict[str, str]:
    """Build X-RateLimit-* headers; reset is in epoch seconds."""
    headers = {
        "X-RateLimit-Limit": str(result.limit),
        "X-RateLimit-Remaining": str(result.remaining),
        "X-RateLimit-Reset": str(result.reset_at // 1000),
    }
    if not result.allowed:
        headers["Retry-After"] = str(result.retry_after)
    return headers


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Rate limiting middleware using a fixed window per client.

    Only paths starting with one of the configured prefixes are limited.
    """

    def __init__(
        self,
        app,
        limiter: RateLimiter,
        paths: tuple[str, ...] = ("/api/chat",),
    ):
        """
        Initialize rate limiter.

        Args:
            app: FastAPI application
            limiter: Shared fixed-window limiter
            paths: Path prefixes to limit
        """
        super().__init__(app)
        self.limiter = limiter
        self.paths = paths

    async def dispatch(
        self,
        request: Request,
        call_next: Callable,
    ) -> Response:
        """Process request with rate limiting."""
        if not request.url.path.startswith(self.paths):
            return await call_next(request)

        identity = get_client_identity(request)
        request.state.client_identity = identity
        result = self.limiter.check(identity)
        headers = rate_limit_headers(result)

        if not result.allowed:
            return JSONResponse(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                content=error_body(
                    "RATE_LIMIT_EXCEEDED",
                    "Too many requests, please try again later.",
                    retryAfter=result.retry_after,
                ),
                headers=headers,
            )

        response = await call_next(request)
        for name, value in headers.items():
            response.headers[name] = value
        return response
