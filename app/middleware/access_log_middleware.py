"""Access log middleware for FastAPI application."""

import time

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from app.logger import get_logger

logger = get_logger(__name__)

_SKIP_PATHS = frozenset({"/health", "/favicon.ico"})


class AccessLogMiddleware(BaseHTTPMiddleware):
    """
    Access log middleware that logs HTTP requests with timing and content length.

    Produces logs like:
    INFO:     [hostname:pid] http_request client=10.0.0.4:33194 request="GET /api/certificate/ABC123 HTTP/1.1" status=200 size=57B duration=3.2ms
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        """Process request and log access details."""
        start_time = time.perf_counter()

        path = request.url.path
        if path in _SKIP_PATHS:
            return await call_next(request)

        client_host = request.client.host if request.client else "-"
        client_port = request.client.port if request.client else "-"
        method = request.method
        query = request.url.query
        full_path = f"{path}?{query}" if query else path
        http_version = request.scope.get("http_version", "1.1")

        response: Response = await call_next(request)

        duration_ms = (time.perf_counter() - start_time) * 1000

        content_length = response.headers.get("content-length", "-")
        if content_length != "-":
            content_length = f"{content_length}B"

        logger.info(
            "http_request",
            client=f"{client_host}:{client_port}",
            request=f'"{method} {full_path} HTTP/{http_version}"',
            status=response.status_code,
            size=content_length,
            duration=f"{duration_ms:.1f}ms",
        )

        return response
