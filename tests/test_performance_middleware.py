import pytest
import structlog
from fastapi import FastAPI
from starlette.testclient import TestClient

from app.core.cache import CERTIFICATE_NAMESPACE, get_cache
from app.middleware.performance_middleware import PerformanceMiddleware


@pytest.fixture
def perf_calls(monkeypatch: pytest.MonkeyPatch) -> list[dict]:
    calls: list[dict] = []

    def _fake_log_request_performance(**kwargs):
        calls.append(kwargs)

    monkeypatch.setattr(
        "app.middleware.performance_middleware.log_request_performance",
        _fake_log_request_performance,
    )
    return calls


def test_performance_middleware_logs_perf(perf_calls):
    app = FastAPI()
    app.add_middleware(PerformanceMiddleware)

    @app.get("/ok")
    async def ok():
        return {"ok": True}

    client = TestClient(app)
    resp = client.get("/ok", headers={"x-request-id": "rid-1"})

    assert resp.status_code == 200
    assert len(perf_calls) == 1

    payload = perf_calls[0]
    assert payload["request_id"] == "rid-1"
    assert payload["method"] == "GET"
    assert payload["path"] == "/ok"
    assert payload["status_code"] == 200
    assert isinstance(payload["duration_ms"], float)
    assert payload["cache_delta"] == {}


def test_performance_middleware_reports_cache_delta(perf_calls):
    app = FastAPI()
    app.add_middleware(PerformanceMiddleware)

    @app.get("/lookup")
    async def lookup():
        cache = get_cache(CERTIFICATE_NAMESPACE)
        cache.get("ABC123")
        cache.set("ABC123", {"id": "ABC123"})
        cache.get("ABC123")
        return {"ok": True}

    TestClient(app).get("/lookup")

    assert perf_calls[0]["cache_delta"] == {"certificate": {"hit": 1, "miss": 1, "set": 1}}


def test_performance_middleware_binds_request_id(perf_calls):
    app = FastAPI()
    app.add_middleware(PerformanceMiddleware)
    seen: dict[str, object] = {}

    @app.get("/ok")
    async def ok():
        seen.update(structlog.contextvars.get_contextvars())
        return {"ok": True}

    TestClient(app).get("/ok", headers={"x-correlation-id": "corr-7"})

    assert seen["request_id"] == "corr-7"
    assert perf_calls[0]["request_id"] == "corr-7"


def test_performance_middleware_skips_health(perf_calls):
    app = FastAPI()
    app.add_middleware(PerformanceMiddleware)

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    client = TestClient(app)
    resp = client.get("/health")

    assert resp.status_code == 200
    assert perf_calls == []
