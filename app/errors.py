"""Error types for certificate lookups.

Domain errors (`CertificateLookupError` and subclasses) are raised by the
fetch pipeline and never carry response formatting. `ApiError` is the
boundary exception with a stable code and timestamped payload.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime

from fastapi import HTTPException


def _utc_now_iso() -> str:
    return datetime.now(UTC).isoformat()


class CertificateLookupError(Exception):
    """Base class for failures of the fetch pipeline."""

    code = "lookup_error"


class UpstreamError(CertificateLookupError):
    """Network failure, timeout or non-success status from the upstream API."""

    code = "upstream_error"

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class CertificateNotFound(UpstreamError):
    """Upstream answered with an empty payload for the control number."""

    code = "certificate_not_found"

    def __init__(self, control_number: str) -> None:
        super().__init__("No certificate found")
        self.control_number = control_number


class Overloaded(CertificateLookupError):
    """The admission queue is full; the fetch was not started."""

    code = "overloaded"

    def __init__(self, queued: int) -> None:
        super().__init__(f"Too many pending certificate lookups ({queued} queued)")
        self.queued = queued


@dataclass(frozen=True)
class ApiErrorBody:
    error: str
    code: str
    timestamp: str

    def to_dict(self) -> dict[str, str]:
        return {"error": self.error, "code": self.code, "timestamp": self.timestamp}


class ApiError(HTTPException):
    """HTTPException with a stable error code and timestamped payload."""

    def __init__(
        self,
        *,
        status_code: int,
        detail: str,
        code: str,
        headers: dict[str, str] | None = None,
    ) -> None:
        super().__init__(status_code=status_code, detail=detail, headers=headers)
        self.code = code
        self.timestamp = _utc_now_iso()

    def to_payload(self) -> dict[str, str]:
        return ApiErrorBody(
            error=str(self.detail), code=self.code, timestamp=self.timestamp
        ).to_dict()


class ValidationError(ApiError):
    """Caller supplied an empty or missing control number."""

    def __init__(self, detail: str = "Control number required") -> None:
        super().__init__(status_code=400, detail=detail, code="validation_error")


def error_payload(*, error: str, code: str) -> dict[str, str]:
    """Create a structured error payload for handler-built responses."""

    return ApiErrorBody(error=error, code=code, timestamp=_utc_now_iso()).to_dict()
