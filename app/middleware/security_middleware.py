"""Security middleware for FastAPI application."""

from collections.abc import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

_DOCS_PATHS = frozenset({"/docs", "/redoc"})

# The lookup page carries one inline script with the injected control id.
_PAGE_CSP = (
    "default-src 'self'; "
    "script-src 'self' 'unsafe-inline'; "
    "style-src 'self' 'unsafe-inline'; "
    "img-src 'self' data:; "
    "font-src 'self'; "
    "connect-src 'self'; "
    "frame-src 'none'"
)

_DOCS_CSP = (
    "default-src 'self'; "
    "script-src 'self' 'unsafe-inline' 'unsafe-eval' "
    "https://cdn.jsdelivr.net https://unpkg.com; "
    "style-src 'self' 'unsafe-inline' "
    "https://cdn.jsdelivr.net https://unpkg.com; "
    "img-src 'self' data: https:; "
    "font-src 'self' https://cdn.jsdelivr.net https://unpkg.com; "
    "connect-src 'self'; "
    "frame-src 'none'"
)

_API_CSP = (
    "default-src 'self'; "
    "script-src 'self'; "
    "style-src 'self'; "
    "img-src 'self' data:; "
    "font-src 'self'; "
    "connect-src 'self'; "
    "frame-src 'none'"
)


def _content_security_policy(path: str) -> str:
    if path in _DOCS_PATHS:
        return _DOCS_CSP
    if path == "/" or path.endswith(".html"):
        return _PAGE_CSP
    return _API_CSP


class SecurityMiddleware(BaseHTTPMiddleware):
    """Security headers middleware (equivalent to helmet.js)."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Add security headers to response."""
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Content-Security-Policy"] = _content_security_policy(request.url.path)

        return response
