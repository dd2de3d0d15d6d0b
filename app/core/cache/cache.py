from __future__ import annotations

from dataclasses import dataclass

from .logging import CacheTimer, log_cache_event
from .types import CacheBackend, CachePolicy, CertificateRecord


@dataclass(frozen=True, slots=True)
class Cache:
    backend: CacheBackend
    policy: CachePolicy

    def __len__(self) -> int:
        return len(self.backend)

    def get(self, key: str) -> CertificateRecord | None:
        timer = CacheTimer()
        value = self.backend.get(key)
        log_cache_event(
            namespace=self.policy.namespace,
            cache_event="hit" if value is not None else "miss",
            duration_ms=timer.elapsed_ms(),
        )
        return value

    def set(self, key: str, value: CertificateRecord, *, ttl_seconds: float | None = None) -> None:
        ttl = self.policy.default_ttl_seconds if ttl_seconds is None else ttl_seconds
        timer = CacheTimer()
        self.backend.set(key, value, ttl_seconds=ttl)
        log_cache_event(
            namespace=self.policy.namespace,
            cache_event="set",
            duration_ms=timer.elapsed_ms(),
        )

    def delete(self, key: str) -> None:
        timer = CacheTimer()
        self.backend.delete(key)
        log_cache_event(
            namespace=self.policy.namespace,
            cache_event="delete",
            duration_ms=timer.elapsed_ms(),
        )
