"""
Request logging middleware.

Logs one line per request once the response is ready: method, path, client
address, status, duration and user agent. Server errors log at ERROR,
client errors at WARNING, everything else at INFO.
"""

import logging
import time
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from gateway.middleware.rate_limit import get_client_identity

logger = logging.getLogger(__name__)


def status_log_level(status_code: int) -> int:
    """Map a response status to the level it is logged at."""
    if status_code >= 500:
        return logging.ERROR
    if status_code >= 400:
        return logging.WARNING
    return logging.INFO


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log every request with its outcome and duration."""

    def __init__(self, app, skip_paths: tuple[str, ...] = ()):
        """
        Initialize request logger.

        Args:
            app: FastAPI application
            skip_paths: Exact paths not logged, e.g. health checks
        """
        super().__init__(app)
        self.skip_paths = skip_paths

    async def dispatch(
        self,
        request: Request,
        call_next: Callable,
    ) -> Response:
        if request.url.path in self.skip_paths:
            return await call_next(request)

        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            duration_ms = (time.perf_counter() - started) * 1000
            logger.exception(
                "💥 %s %s - IP: %s - failed after %.1fms",
                request.method,
                request.url.path,
                get_client_identity(request),
                duration_ms,
            )
            raise

        duration_ms = (time.perf_counter() - started) * 1000
        logger.log(
            status_log_level(response.status_code),
            "➡️ %s %s - IP: %s - Status: %d - Duration: %.1fms - User-Agent: %s",
            request.method,
            request.url.path,
            get_client_identity(request),
            response.status_code,
            duration_ms,
            request.headers.get("user-agent", "unknown"),
        )
        return response
