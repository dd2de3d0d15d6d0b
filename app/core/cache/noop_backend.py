from __future__ import annotations

from .types import CacheBackend, CertificateRecord


class NoOpCacheBackend(CacheBackend):
    def get(self, key: str) -> CertificateRecord | None:
        return None

    def set(self, key: str, value: CertificateRecord, *, ttl_seconds: float) -> None:
        pass

    def delete(self, key: str) -> None:
        pass

    def __len__(self) -> int:
        return 0
