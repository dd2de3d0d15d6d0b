"""Performance instrumentation middleware.

Captures request latency and the cache counter delta for each request and
emits a structured performance log event. Log-only: no response changes.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from uuid import uuid4

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from app.core.cache import stats as cache_stats
from app.logger import log_request_performance

_SKIP_PATHS = frozenset({"/health", "/favicon.ico"})


class PerformanceMiddleware(BaseHTTPMiddleware):
    """Logs request timing + cache deltas for performance visibility."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        path = request.url.path

        if path in _SKIP_PATHS:
            return await call_next(request)

        request_id = (
            request.headers.get("x-request-id")
            or request.headers.get("x-correlation-id")
            or str(uuid4())
        )

        start = time.perf_counter()
        before = cache_stats.snapshot()

        status_code: int = 500
        # Every log line emitted while serving this request carries its id.
        with structlog.contextvars.bound_contextvars(request_id=request_id):
            try:
                response: Response = await call_next(request)
                status_code = response.status_code
                return response
            finally:
                duration_ms = (time.perf_counter() - start) * 1000.0
                delta = cache_stats.diff(before, cache_stats.snapshot())

                log_request_performance(
                    request_id=request_id,
                    method=request.method,
                    path=path,
                    status_code=status_code,
                    duration_ms=duration_ms,
                    cache_delta=delta,
                )
