import httpx
import pytest

from app.config import UpstreamConfig
from app.errors import CertificateNotFound, UpstreamError
from app.services.certificate_client import CertificateClient

SECRET = "s3cr3t-value"


@pytest.mark.asyncio
async def test_fetch_sends_control_number_and_secret(make_upstream, certificate_client_factory):
    upstream = make_upstream(json_body={"name": "Jane Doe", "id": "ABC123"})
    client = certificate_client_factory(upstream)

    record = await client.fetch("ABC123")

    assert record == {"name": "Jane Doe", "id": "ABC123"}
    assert upstream.calls == 1
    request = upstream.requests[0]
    assert request.method == "GET"
    assert request.url.host == "gas.example.test"
    assert request.url.params["controlNumber"] == "ABC123"
    assert request.url.params["secret"] == SECRET


@pytest.mark.asyncio
@pytest.mark.parametrize("body", [{}, [], None])
async def test_empty_json_is_not_found(make_upstream, certificate_client_factory, body):
    client = certificate_client_factory(make_upstream(json_body=body))

    with pytest.raises(CertificateNotFound) as excinfo:
        await client.fetch("NOPE")

    assert excinfo.value.control_number == "NOPE"
    assert str(excinfo.value) == "No certificate found"


@pytest.mark.asyncio
async def test_empty_body_is_not_found(make_upstream, certificate_client_factory):
    client = certificate_client_factory(make_upstream(content=b""))

    with pytest.raises(CertificateNotFound):
        await client.fetch("NOPE")


@pytest.mark.asyncio
async def test_error_status_is_upstream_error(make_upstream, certificate_client_factory):
    client = certificate_client_factory(make_upstream(status_code=503, json_body={"x": 1}))

    with pytest.raises(UpstreamError) as excinfo:
        await client.fetch("ABC123")

    assert not isinstance(excinfo.value, CertificateNotFound)
    assert excinfo.value.status_code == 503
    assert SECRET not in str(excinfo.value)


@pytest.mark.asyncio
async def test_non_json_body_is_upstream_error(make_upstream, certificate_client_factory):
    client = certificate_client_factory(make_upstream(content=b"<html>oops</html>"))

    with pytest.raises(UpstreamError, match="non-JSON"):
        await client.fetch("ABC123")


@pytest.mark.asyncio
async def test_transport_error_is_upstream_error(make_upstream, certificate_client_factory):
    upstream = make_upstream(exc=httpx.ConnectError("connection refused"))
    client = certificate_client_factory(upstream)

    with pytest.raises(UpstreamError) as excinfo:
        await client.fetch("ABC123")

    assert "ConnectError" in str(excinfo.value)
    assert SECRET not in str(excinfo.value)


@pytest.mark.asyncio
async def test_slow_upstream_times_out(make_upstream, certificate_client_factory):
    upstream = make_upstream(json_body={"id": "ABC123"}, delay=1.0)
    client = certificate_client_factory(upstream, timeout=0.05)

    with pytest.raises(UpstreamError, match="timed out"):
        await client.fetch("ABC123")


@pytest.mark.asyncio
async def test_httpx_timeout_is_upstream_error(make_upstream, certificate_client_factory):
    upstream = make_upstream(exc=httpx.ReadTimeout("read timed out"))
    client = certificate_client_factory(upstream)

    with pytest.raises(UpstreamError, match="timed out"):
        await client.fetch("ABC123")


@pytest.mark.asyncio
async def test_missing_url_is_upstream_error():
    async def _no_client():
        raise AssertionError("no request expected")

    client = CertificateClient(
        UpstreamConfig(url="", secret=SECRET, timeout_seconds=5.0),
        client_factory=_no_client,
    )

    with pytest.raises(UpstreamError, match="not configured"):
        await client.fetch("ABC123")
