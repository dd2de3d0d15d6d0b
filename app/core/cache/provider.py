from __future__ import annotations

from threading import Lock

from app.config import settings

from .cache import Cache
from .memory_backend import MemoryCacheBackend
from .noop_backend import NoOpCacheBackend
from .types import CachePolicy

CERTIFICATE_NAMESPACE = "certificate"

_provider_lock = Lock()
_caches: dict[str, Cache] = {}


def get_cache(namespace: str) -> Cache:
    with _provider_lock:
        existing = _caches.get(namespace)
        if existing is not None:
            return existing

        policy = _policy_for_namespace(namespace)
        backend = (
            MemoryCacheBackend(max_entries=policy.max_entries, namespace=namespace)
            if settings.cache_enabled
            else NoOpCacheBackend()
        )
        cache = Cache(backend=backend, policy=policy)
        _caches[namespace] = cache
        return cache


def clear_caches() -> None:
    """Drop every namespace so the next get_cache() re-reads settings."""
    with _provider_lock:
        _caches.clear()


def _policy_for_namespace(namespace: str) -> CachePolicy:
    if namespace == CERTIFICATE_NAMESPACE:
        ttl = settings.cache_certificate_ttl_seconds
    else:
        ttl = settings.cache_default_ttl_seconds

    return CachePolicy(
        namespace=namespace,
        default_ttl_seconds=ttl,
        max_entries=settings.cache_max_entries,
    )
