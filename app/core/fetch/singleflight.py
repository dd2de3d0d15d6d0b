from __future__ import annotations

import asyncio
from dataclasses import dataclass

from app.core.cache.types import CertificateRecord


@dataclass(slots=True)
class InFlightFetch:
    key: str
    future: asyncio.Future[CertificateRecord]
    waiters: int = 1


class SingleFlight:
    """Table of upstream calls currently running, at most one per key.

    All mutation happens on the event loop thread between awaits, so a
    `join()` miss followed by `start()` is atomic without a lock.
    """

    def __init__(self) -> None:
        self._calls: dict[str, InFlightFetch] = {}

    def __len__(self) -> int:
        return len(self._calls)

    def __contains__(self, key: object) -> bool:
        return key in self._calls

    def join(self, key: str) -> InFlightFetch | None:
        """Attach one more waiter to the running call for `key`, if any."""
        call = self._calls.get(key)
        if call is not None:
            call.waiters += 1
        return call

    def start(self, key: str) -> InFlightFetch:
        if key in self._calls:
            raise RuntimeError(f"fetch already in flight for key {key!r}")
        call = InFlightFetch(key=key, future=asyncio.get_running_loop().create_future())
        self._calls[key] = call
        return call

    def discard(self, call: InFlightFetch) -> None:
        # Only drop the entry if it is still this call.
        if self._calls.get(call.key) is call:
            del self._calls[call.key]
