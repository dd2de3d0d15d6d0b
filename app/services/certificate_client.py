"""Client for the upstream certificate (GAS) API.

One call is one HTTP GET with the control number and the shared secret as
query parameters, bounded by a total time budget. Every failure surfaces as
``UpstreamError``; an empty payload surfaces as ``CertificateNotFound``.
Error messages never include the request URL, which carries the secret.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeAlias

import httpx

from app.config import UpstreamConfig
from app.core.cache.types import CertificateRecord
from app.errors import CertificateNotFound, UpstreamError
from app.http_client import get_http_client
from app.logger import get_logger

logger = get_logger(__name__)

ClientFactory: TypeAlias = Callable[[], Awaitable[httpx.AsyncClient]]


class CertificateClient:
    """Fetches certificate records from the upstream API."""

    def __init__(
        self,
        config: UpstreamConfig,
        *,
        client_factory: ClientFactory = get_http_client,
    ) -> None:
        self._config = config
        self._client_factory = client_factory

    async def fetch(self, control_number: str) -> CertificateRecord:
        """
        Fetch one certificate record.

        Args:
            control_number: The external identifier to look up.

        Returns:
            The upstream JSON payload, unmodified.

        Raises:
            CertificateNotFound: upstream answered with no body or an empty value.
            UpstreamError: timeout, transport failure, non-2xx status or invalid JSON.
        """
        if not self._config.url:
            raise UpstreamError("Upstream API URL is not configured")

        client = await self._client_factory()
        params = {"controlNumber": control_number, "secret": self._config.secret}

        try:
            response = await asyncio.wait_for(
                client.get(self._config.url, params=params, timeout=self._config.timeout_seconds),
                timeout=self._config.timeout_seconds,
            )
        except (TimeoutError, httpx.TimeoutException) as exc:
            raise UpstreamError(
                f"Upstream request timed out after {self._config.timeout_seconds:g}s"
            ) from exc
        except httpx.RequestError as exc:
            raise UpstreamError(f"Upstream request failed: {type(exc).__name__}") from exc

        if not response.is_success:
            raise UpstreamError(
                f"Upstream returned status {response.status_code}",
                status_code=response.status_code,
            )

        if not response.content:
            raise CertificateNotFound(control_number)

        try:
            data = response.json()
        except ValueError as exc:
            raise UpstreamError(
                "Upstream returned a non-JSON body", status_code=response.status_code
            ) from exc

        if not data:
            raise CertificateNotFound(control_number)

        logger.debug(
            "upstream_request_completed",
            control_number=control_number,
            status=response.status_code,
            size=len(response.content),
        )
        return data
