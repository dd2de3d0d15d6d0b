"""
Shared HTTP client with connection pooling.

This module provides a centralized httpx.AsyncClient instance
for efficient HTTP connection reuse across the application.
"""

from __future__ import annotations

import httpx

from app.logger import get_logger

logger = get_logger(__name__)

# Global shared HTTP client for outbound requests
_shared_client: httpx.AsyncClient | None = None

# Default configuration for connection pooling. Pool size covers the fetch
# coordinator's concurrency limit with headroom.
DEFAULT_TIMEOUT = httpx.Timeout(10.0, connect=5.0)
DEFAULT_LIMITS = httpx.Limits(
    max_connections=50,
    max_keepalive_connections=20,
    keepalive_expiry=30.0,
)


async def get_http_client() -> httpx.AsyncClient:
    """
    Get or create the shared HTTP client.

    This client is configured with connection pooling for efficient
    reuse of TCP connections across multiple requests.

    Returns:
        httpx.AsyncClient: The shared HTTP client instance
    """
    global _shared_client
    if _shared_client is None or _shared_client.is_closed:
        _shared_client = httpx.AsyncClient(
            timeout=DEFAULT_TIMEOUT,
            limits=DEFAULT_LIMITS,
            http2=True,  # Enable HTTP/2 for multiplexing
            follow_redirects=True,
        )
        logger.info(
            "http_client_created",
            max_connections=DEFAULT_LIMITS.max_connections,
            max_keepalive=DEFAULT_LIMITS.max_keepalive_connections,
        )
    return _shared_client


async def close_http_client() -> None:
    """
    Close the shared HTTP client.

    Should be called during application shutdown to properly
    release all connections.
    """
    global _shared_client
    if _shared_client is not None and not _shared_client.is_closed:
        await _shared_client.aclose()
        logger.info("http_client_closed")
    _shared_client = None
