from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol, TypeAlias

CacheNamespace: TypeAlias = str

# Opaque key-value map returned by the upstream API.
CertificateRecord: TypeAlias = dict[str, Any]


class CacheBackend(Protocol):
    def get(self, key: str) -> CertificateRecord | None: ...

    def set(self, key: str, value: CertificateRecord, *, ttl_seconds: float) -> None: ...

    def delete(self, key: str) -> None: ...

    def __len__(self) -> int: ...


@dataclass(frozen=True, slots=True)
class CachePolicy:
    namespace: CacheNamespace
    default_ttl_seconds: int
    max_entries: int
