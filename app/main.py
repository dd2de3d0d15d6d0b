"""
FastAPI application for the certificate lookup proxy.

Serves certificate records from a third-party API behind an in-process
cache and a bounded, deduplicating fetch pipeline.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Annotated

import psutil
from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse, Response
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.config import settings
from app.errors import ApiError, CertificateLookupError, Overloaded, error_payload
from app.http_client import close_http_client
from app.logger import get_logger, setup_logging
from app.middleware.access_log_middleware import AccessLogMiddleware
from app.middleware.performance_middleware import PerformanceMiddleware
from app.middleware.security_middleware import SecurityMiddleware
from app.routers import api_router
from app.routers.frontend import router as frontend_router
from app.routers.frontend import static_page_response
from app.services.certificate_service import (
    CertificateService,
    get_certificate_service,
    shutdown_certificate_service,
)

logger = get_logger(__name__)

_SERVER_ERROR_BODY = {"error": "Unexpected server error"}
_NOT_FOUND_BODY = {"error": "Not found"}
_METHOD_NOT_ALLOWED_BODY = {"error": "Method not allowed"}


def _format_bytes(num: float) -> str:
    """Return a human-friendly string for a byte count."""
    for unit in ["B", "KB", "MB", "GB", "TB"]:
        if num < 1024:
            return f"{num:.2f} {unit}"
        num /= 1024
    return f"{num:.2f} PB"


def _collect_process_metrics() -> dict:
    """Gather CPU and memory metrics for the current Python process only."""
    proc = psutil.Process()

    cpu_percent = proc.cpu_percent(interval=None)
    mem_info = proc.memory_info()

    return {
        "pid": proc.pid,
        "cpu_percent": cpu_percent,
        "num_threads": proc.num_threads(),
        "memory": {
            "rss_bytes": mem_info.rss,
            "rss_human": _format_bytes(mem_info.rss),
            "vms_bytes": mem_info.vms,
            "vms_human": _format_bytes(mem_info.vms),
            "memory_percent": proc.memory_percent(),
        },
    }


_HTML_MEDIA_RANGES = frozenset({"text/html", "text/*", "*/*"})


def _wants_html(request: Request) -> bool:
    """True when the client accepts HTML, including a missing Accept header."""
    accept = request.headers.get("accept", "").strip()
    if not accept:
        return True
    media_ranges = {part.split(";", 1)[0].strip().lower() for part in accept.split(",")}
    return not media_ranges.isdisjoint(_HTML_MEDIA_RANGES)


def _server_error_response(request: Request) -> Response:
    if _wants_html(request):
        return static_page_response("500.html", status_code=500, fallback=_SERVER_ERROR_BODY)
    return JSONResponse(status_code=500, content=_SERVER_ERROR_BODY)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan handler for startup and shutdown."""
    logger.info("Starting up certificate lookup proxy", tls=settings.tls_enabled)

    service = get_certificate_service()
    logger.info("service_initialized", service="certificate", **service.snapshot())

    yield

    logger.info("Shutting down certificate lookup proxy")

    # Cancel outstanding upstream calls before closing their connections.
    await shutdown_certificate_service()
    await close_http_client()

    logger.info("Certificate lookup proxy shutdown complete")


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ApiError)
    async def _api_error_handler(_request: Request, exc: ApiError) -> Response:
        return JSONResponse(
            status_code=exc.status_code,
            content=exc.to_payload(),
            headers=exc.headers,
        )

    @app.exception_handler(Overloaded)
    async def _overloaded_handler(request: Request, exc: Overloaded) -> Response:
        return JSONResponse(
            status_code=503,
            content=error_payload(error=str(exc), code=exc.code),
            headers={"Retry-After": "1"},
        )

    @app.exception_handler(CertificateLookupError)
    async def _lookup_error_handler(request: Request, exc: CertificateLookupError) -> Response:
        logger.error(
            "certificate_lookup_failed",
            path=request.url.path,
            code=exc.code,
            error_type=type(exc).__name__,
            error=str(exc),
        )
        return _server_error_response(request)

    @app.exception_handler(StarletteHTTPException)
    async def _http_error_handler(request: Request, exc: StarletteHTTPException) -> Response:
        # Unknown paths: GET gets the 404 page, anything else is a 405.
        if exc.status_code == 404 and request.method in ("GET", "HEAD"):
            return static_page_response("404.html", status_code=404, fallback=_NOT_FOUND_BODY)
        if exc.status_code in (404, 405):
            return JSONResponse(status_code=405, content=_METHOD_NOT_ALLOWED_BODY)
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": str(exc.detail)},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def _unhandled_error_handler(request: Request, exc: Exception) -> Response:
        logger.error(
            "unhandled_server_error",
            path=request.url.path,
            error_type=type(exc).__name__,
            error=str(exc),
        )
        return _server_error_response(request)


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    setup_logging()

    app = FastAPI(
        title=settings.app_name,
        description="Cached, rate-limited proxy for certificate lookups",
        version="0.1.0",
        lifespan=lifespan,
    )

    _register_exception_handlers(app)

    # Access log middleware - logs requests with timing and content length
    # Note: This must be added first so it wraps all other middleware
    app.add_middleware(AccessLogMiddleware)
    app.add_middleware(PerformanceMiddleware)
    app.add_middleware(SecurityMiddleware)

    @app.get("/health")
    async def health(
        service: Annotated[CertificateService, Depends(get_certificate_service)],
    ):
        """Health check endpoint."""
        return {
            "status": "healthy",
            "fetch": service.snapshot(),
            "process": _collect_process_metrics(),
        }

    @app.get("/api/health")
    async def api_health(
        service: Annotated[CertificateService, Depends(get_certificate_service)],
    ):
        """Health check endpoint."""
        return {"status": "healthy", "fetch": service.snapshot()}

    app.include_router(api_router, prefix="/api")
    app.include_router(frontend_router)

    # Static assets last so API and page routes take precedence.
    static_dir = Path(settings.static_dir)
    if static_dir.is_dir():
        app.mount("/", StaticFiles(directory=static_dir), name="static")
    else:
        logger.warning("static_dir_missing", static_dir=str(static_dir))

    return app


app = create_app()


def run() -> None:
    """Serve the application with uvicorn, over TLS when PEM files are present."""
    import uvicorn

    ssl_options: dict[str, str] = {}
    if settings.tls_enabled:
        ssl_options = {"ssl_certfile": settings.ssl_certfile, "ssl_keyfile": settings.ssl_keyfile}
    else:
        logger.warning(
            "tls_disabled",
            ssl_certfile=settings.ssl_certfile,
            ssl_keyfile=settings.ssl_keyfile,
        )

    uvicorn.run(
        "app.main:app",
        host=settings.host,
        port=settings.port,
        log_level="debug" if settings.debug else "info",
        **ssl_options,
    )


if __name__ == "__main__":
    run()
