"""
Security headers middleware.

Adds a fixed set of browser hardening headers to every response.
"""

from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

DEFAULT_SECURITY_HEADERS: dict[str, str] = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Permissions-Policy": "geolocation=(), microphone=(), camera=()",
}


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Set security headers on every response, error responses included."""

    def __init__(self, app, headers: dict[str, str] | None = None):
        """
        Initialize security headers.

        Args:
            app: FastAPI application
            headers: Extra or overriding headers merged over the defaults
        """
        super().__init__(app)
        self.headers = {**DEFAULT_SECURITY_HEADERS, **(headers or {})}

    async def dispatch(
        self,
        request: Request,
        call_next: Callable,
    ) -> Response:
        response = await call_next(request)
        for name, value in self.headers.items():
            response.headers[name] = value
        return response
