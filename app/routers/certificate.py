"""Certificate router - lookup of certificate records by control number."""

from typing import Annotated, Any

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from app.errors import ValidationError
from app.services.certificate_service import CertificateService, get_certificate_service

router = APIRouter()


@router.get("/certificate/", include_in_schema=False)
async def missing_control_number() -> JSONResponse:
    raise ValidationError()


@router.get(
    "/certificate/{control_number}",
    summary="Look up a certificate",
    responses={
        400: {"description": "Control number missing or blank"},
        500: {"description": "Upstream lookup failed"},
        503: {"description": "Too many pending lookups"},
    },
)
async def get_certificate(
    control_number: str,
    service: Annotated[CertificateService, Depends(get_certificate_service)],
) -> JSONResponse:
    """
    Return the raw upstream record for a control number.

    Served from the in-process cache when fresh; otherwise fetched through
    the coordinator, which collapses concurrent lookups of the same number.
    """
    record: dict[str, Any] = await service.lookup(control_number)
    return JSONResponse(content=record)
