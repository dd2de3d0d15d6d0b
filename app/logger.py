"""Structured logging configuration using structlog.

Every line is rendered as ``LEVEL:     [host:pid] event key=value ...`` so
application events read like uvicorn's own output. Values that may carry the
upstream shared secret are masked before rendering.
"""

import logging
import os
import re
import socket
from collections.abc import Mapping

import structlog
from structlog.processors import CallsiteParameter, CallsiteParameterAdder

from app.config import settings

_HOSTNAME = socket.gethostname()
_PID = os.getpid()

_REDACTED = "***"
_SENSITIVE_KEYS = frozenset({"secret", "gas_secret_key", "authorization"})
# Upstream URLs carry the secret as a query parameter.
_SECRET_QUERY = re.compile(r"(secret=)[^&\s\"']+", re.IGNORECASE)

_QUIET_PATHS = ("/health", "/favicon.ico")

_CALLSITE_KEYS = ("filename", "func_name", "lineno")

# Requests slower than the upstream budget are logged at warning level.
_SLOW_REQUEST_MS = settings.upstream_timeout_seconds * 1000.0


def _redact_secrets(logger: logging.Logger, method_name: str, event_dict: dict) -> dict:
    """Mask secret-bearing keys and `secret=` query values in string fields."""
    for key, value in event_dict.items():
        if key in _SENSITIVE_KEYS:
            event_dict[key] = _REDACTED
        elif isinstance(value, str) and "secret=" in value.lower():
            event_dict[key] = _SECRET_QUERY.sub(rf"\g<1>{_REDACTED}", value)
    return event_dict


def _collapse_callsite(logger: logging.Logger, method_name: str, event_dict: dict) -> dict:
    """Fold structlog's callsite fields into one `file:function:line` value."""
    parts = [event_dict.pop(key, None) for key in _CALLSITE_KEYS]
    if all(part is not None for part in parts):
        event_dict["caller"] = ":".join(str(part) for part in parts)
    return event_dict


def _render_line(logger: logging.Logger, method_name: str, event_dict: dict) -> str:
    level = str(event_dict.pop("level", method_name)).upper()
    event = event_dict.pop("event", "")
    caller = event_dict.pop("caller", None)

    head = f"{level}:     [{_HOSTNAME}:{_PID}]"
    if caller:
        head += f" [{caller}]"
    fields = " ".join(f"{key}={value}" for key, value in event_dict.items())
    return f"{head} {event} {fields}".rstrip()


class _UvicornAccessFilter(logging.Filter):
    """Drop uvicorn access lines for endpoints polled by health checks."""

    def filter(self, record: logging.LogRecord) -> bool:  # pragma: no cover - trivial
        try:
            msg = record.getMessage()
        except Exception:
            return True
        return not any(f"GET {path}" in msg for path in _QUIET_PATHS)


def _processors(debug: bool) -> list:
    processors: list = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        _redact_secrets,
    ]
    if debug:
        # Stack inspection on every call; debug only.
        processors += [
            CallsiteParameterAdder(
                [CallsiteParameter.FILENAME, CallsiteParameter.FUNC_NAME, CallsiteParameter.LINENO],
                additional_ignores=["app.logger", "app.core.cache.logging"],
            ),
            _collapse_callsite,
        ]
    processors.append(_render_line)
    return processors


def setup_logging() -> None:
    """
    Configure structlog for the application.

    Request context comes from contextvars bound by the performance
    middleware. DEBUG lowers the level to debug and adds the caller.
    """
    log_level = logging.DEBUG if settings.debug else logging.INFO

    # AccessLogMiddleware writes access lines; silence uvicorn's.
    uvicorn_access = logging.getLogger("uvicorn.access")
    uvicorn_access.addFilter(_UvicornAccessFilter())
    uvicorn_access.handlers = []
    uvicorn_access.propagate = False
    uvicorn_access.disabled = True

    structlog.configure(
        processors=_processors(settings.debug),
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False,
    )


def get_logger(name: str | None = None) -> structlog.BoundLogger:
    """Return a structlog logger, conventionally named after the module."""
    return structlog.get_logger(name)


def _status_class(status_code: int) -> str:
    if status_code >= 500:
        return "server_error"
    if status_code >= 400:
        return "client_error"
    return "success"


def _certificate_cache_result(cache_delta: Mapping[str, Mapping[str, int]]) -> str | None:
    events = cache_delta.get("certificate", {})
    if events.get("hit"):
        return "hit"
    if events.get("miss"):
        return "miss"
    return None


def log_request_performance(
    *,
    request_id: str,
    method: str,
    path: str,
    status_code: int,
    duration_ms: float,
    cache_delta: dict | None = None,
) -> None:
    """Emit one `request_perf` event per request.

    `cache` is `hit` or `miss` when the request touched the certificate
    cache. Requests slower than the upstream timeout are logged at warning.
    """
    fields: dict[str, object] = {
        "request_id": request_id,
        "method": method,
        "path": path,
        "status": status_code,
        "outcome": _status_class(status_code),
        "duration_ms": round(duration_ms, 3),
    }
    if cache_delta:
        cache_result = _certificate_cache_result(cache_delta)
        if cache_result is not None:
            fields["cache"] = cache_result
        fields["cache_delta"] = cache_delta

    logger = get_logger("app.performance")
    if duration_ms >= _SLOW_REQUEST_MS:
        logger.warning("request_perf", slow=True, **fields)
    else:
        logger.info("request_perf", **fields)
