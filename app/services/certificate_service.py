"""Certificate lookup orchestration: validate, read cache, fetch on miss."""

from __future__ import annotations

from app.config import Settings, settings
from app.core.cache import CERTIFICATE_NAMESPACE, Cache, CertificateRecord, get_cache
from app.core.fetch import FetchCoordinator
from app.errors import ValidationError
from app.logger import get_logger
from app.observability.fetch_metrics import get_fetch_metrics
from app.services.certificate_client import CertificateClient

logger = get_logger(__name__)


def normalize_control_number(raw: str | None) -> str:
    """Trim the identifier; reject empty or missing values."""
    control_number = (raw or "").strip()
    if not control_number:
        raise ValidationError()
    return control_number


class CertificateService:
    """Serves lookups from the cache and funnels misses through the coordinator."""

    def __init__(self, *, cache: Cache, coordinator: FetchCoordinator) -> None:
        self._cache = cache
        self._coordinator = coordinator

    @property
    def cache(self) -> Cache:
        return self._cache

    @property
    def coordinator(self) -> FetchCoordinator:
        return self._coordinator

    async def lookup(self, control_number: str | None) -> CertificateRecord:
        """
        Return the certificate record for a control number.

        On a miss the coordinator stores the fetched record in the cache
        before resuming any caller. Upstream failures propagate untouched
        and are never cached.

        Raises:
            ValidationError: empty or missing control number.
            UpstreamError / CertificateNotFound / Overloaded: from the coordinator.
        """
        key = normalize_control_number(control_number)

        cached = self._cache.get(key)
        if cached is not None:
            return cached

        return await self._coordinator.fetch(key)

    def snapshot(self) -> dict[str, int]:
        return {"cached": len(self._cache), **self._coordinator.snapshot()}

    async def aclose(self) -> None:
        await self._coordinator.aclose()


def build_certificate_service(config: Settings = settings) -> CertificateService:
    """Wire cache, upstream client and coordinator from startup settings."""
    cache = get_cache(CERTIFICATE_NAMESPACE)
    client = CertificateClient(config.upstream_config())
    coordinator = FetchCoordinator(
        client.fetch,
        max_concurrency=config.fetch_max_concurrency,
        max_queue=config.fetch_max_queue,
        on_result=cache.set,
        metrics=get_fetch_metrics(),
    )
    if not config.gas_api_url:
        logger.warning("upstream_not_configured", setting="GAS_API_URL")
    return CertificateService(cache=cache, coordinator=coordinator)


# Global service instance
_certificate_service: CertificateService | None = None


def get_certificate_service() -> CertificateService:
    """Get or create the global certificate service."""
    global _certificate_service
    if _certificate_service is None:
        _certificate_service = build_certificate_service()
    return _certificate_service


async def shutdown_certificate_service() -> None:
    """Cancel outstanding fetches and drop the global service."""
    global _certificate_service
    if _certificate_service is not None:
        await _certificate_service.aclose()
        _certificate_service = None
