"""Test fixtures and configuration."""

import asyncio
import time
from collections.abc import Callable, Iterator

import httpx
import pytest
from fastapi.testclient import TestClient

from app.config import UpstreamConfig
from app.core.cache import provider as cache_provider
from app.core.cache import stats as cache_stats
from app.core.cache.cache import Cache
from app.core.cache.memory_backend import MemoryCacheBackend
from app.core.cache.types import CachePolicy
from app.core.fetch import FetchCoordinator
from app.main import app
from app.observability.fetch_metrics import FetchMetrics
from app.services.certificate_client import CertificateClient
from app.services.certificate_service import CertificateService, get_certificate_service

UPSTREAM_URL = "https://gas.example.test/exec"
UPSTREAM_SECRET = "s3cr3t-value"


class FakeClock:
    """Manually advanced stand-in for time.monotonic."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class UpstreamTransport(httpx.AsyncBaseTransport):
    """Fake upstream API that counts calls and answers with a canned response."""

    def __init__(
        self,
        *,
        json_body: object = None,
        status_code: int = 200,
        content: bytes | None = None,
        delay: float = 0.0,
        exc: Exception | None = None,
    ) -> None:
        self.calls = 0
        self.requests: list[httpx.Request] = []
        self.json_body = json_body
        self.status_code = status_code
        self.content = content
        self.delay = delay
        self.exc = exc

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        self.calls += 1
        self.requests.append(request)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.exc is not None:
            raise self.exc
        if self.content is not None:
            return httpx.Response(self.status_code, content=self.content, request=request)
        return httpx.Response(self.status_code, json=self.json_body, request=request)


def make_client(transport: httpx.AsyncBaseTransport, *, timeout: float = 5.0) -> CertificateClient:
    http = httpx.AsyncClient(transport=transport)

    async def _factory() -> httpx.AsyncClient:
        return http

    config = UpstreamConfig(url=UPSTREAM_URL, secret=UPSTREAM_SECRET, timeout_seconds=timeout)
    return CertificateClient(config, client_factory=_factory)


def make_service(
    transport: httpx.AsyncBaseTransport,
    *,
    clock: Callable[[], float] | None = None,
    ttl_seconds: int = 600,
    max_entries: int = 1000,
    max_concurrency: int = 15,
    max_queue: int = 1000,
    metrics: FetchMetrics | None = None,
) -> CertificateService:
    backend = MemoryCacheBackend(
        max_entries=max_entries, namespace="certificate", clock=clock or time.monotonic
    )
    policy = CachePolicy(
        namespace="certificate", default_ttl_seconds=ttl_seconds, max_entries=max_entries
    )
    cache = Cache(backend=backend, policy=policy)
    coordinator = FetchCoordinator(
        make_client(transport).fetch,
        max_concurrency=max_concurrency,
        max_queue=max_queue,
        on_result=cache.set,
        metrics=metrics,
    )
    return CertificateService(cache=cache, coordinator=coordinator)


@pytest.fixture(autouse=True)
def _isolate_cache() -> Iterator[None]:
    cache_provider.clear_caches()
    cache_stats.reset()
    yield
    cache_provider.clear_caches()
    cache_stats.reset()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_upstream() -> type[UpstreamTransport]:
    return UpstreamTransport


@pytest.fixture
def certificate_client_factory() -> Callable[..., CertificateClient]:
    return make_client


@pytest.fixture
def service_factory() -> Callable[..., CertificateService]:
    return make_service


@pytest.fixture
def upstream() -> UpstreamTransport:
    return UpstreamTransport(json_body={"name": "Jane Doe", "id": "ABC123"})


@pytest.fixture
def service(upstream: UpstreamTransport) -> CertificateService:
    return make_service(upstream)


@pytest.fixture
def client(service: CertificateService) -> Iterator[TestClient]:
    """Create a test client whose lookups hit the fake upstream."""
    app.dependency_overrides[get_certificate_service] = lambda: service
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.pop(get_certificate_service, None)
