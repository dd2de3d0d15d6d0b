"""Observability endpoints.

Exposes fetch pipeline and cache metrics in Prometheus text format.
"""

from typing import Annotated

from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse

from app.core.cache import stats as cache_stats
from app.observability.fetch_metrics import get_fetch_metrics
from app.services.certificate_service import CertificateService, get_certificate_service

router = APIRouter()


@router.get(
    "/metrics",
    response_class=PlainTextResponse,
    summary="Fetch metrics (Prometheus)",
)
async def fetch_metrics(
    service: Annotated[CertificateService, Depends(get_certificate_service)],
) -> PlainTextResponse:
    metrics_text = get_fetch_metrics().render_prometheus(
        cache_counts=cache_stats.snapshot(),
        gauges=service.snapshot(),
    )
    # Prometheus text format.
    return PlainTextResponse(content=metrics_text, media_type="text/plain; version=0.0.4")
