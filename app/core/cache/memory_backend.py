from __future__ import annotations

import time
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass
from threading import Lock

from .logging import log_cache_event
from .types import CacheBackend, CertificateRecord


@dataclass(frozen=True, slots=True)
class CacheEntry:
    key: str
    value: CertificateRecord
    inserted_at: float
    ttl_seconds: float

    def is_expired(self, now: float) -> bool:
        return now - self.inserted_at >= self.ttl_seconds


class MemoryCacheBackend(CacheBackend):
    """LRU-ordered store with per-entry TTL, enforced on read and swept on write."""

    def __init__(
        self,
        *,
        max_entries: int,
        namespace: str | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_entries <= 0:
            raise ValueError("max_entries must be > 0")
        self._max_entries = max_entries
        self._namespace = namespace
        self._clock = clock
        # The event loop owns this store; the lock only matters if a sync
        # route ever reaches it from the threadpool.
        self._lock = Lock()
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: str) -> CertificateRecord | None:
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if not entry.is_expired(now):
                self._entries.move_to_end(key, last=True)
                return entry.value
            del self._entries[key]

        if self._namespace:
            log_cache_event(namespace=self._namespace, cache_event="evict", detail="reason=expired")
        return None

    def set(self, key: str, value: CertificateRecord, *, ttl_seconds: float) -> None:
        if ttl_seconds <= 0:
            # Non-positive TTL means the entry would never be readable.
            self.delete(key)
            return

        now = self._clock()
        with self._lock:
            self._entries[key] = CacheEntry(
                key=key, value=value, inserted_at=now, ttl_seconds=float(ttl_seconds)
            )
            self._entries.move_to_end(key, last=True)
            expired = self._evict_expired_locked(now=now)
            evicted = self._evict_lru_locked()

        if self._namespace:
            if expired:
                log_cache_event(
                    namespace=self._namespace,
                    cache_event="evict",
                    detail="reason=expired",
                    count=expired,
                )
            if evicted:
                log_cache_event(
                    namespace=self._namespace,
                    cache_event="evict",
                    detail="reason=lru",
                    count=evicted,
                )

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def _evict_expired_locked(self, *, now: float) -> int:
        # Expired entries can sit anywhere in LRU order; O(n) over a bounded map.
        expired_keys = [k for k, entry in self._entries.items() if entry.is_expired(now)]
        for k in expired_keys:
            del self._entries[k]
        return len(expired_keys)

    def _evict_lru_locked(self) -> int:
        evicted = 0
        while len(self._entries) > self._max_entries:
            self._entries.popitem(last=False)
            evicted += 1
        return evicted
