from __future__ import annotations

import asyncio
from collections import deque

from app.errors import Overloaded


class AdmissionQueue:
    """FIFO gate bounding the number of outstanding upstream calls.

    `enqueue()` hands out a ticket future that resolves once a slot is free.
    A released slot passes directly to the oldest queued ticket, so admission
    order is the order in which tickets were issued.
    """

    def __init__(self, *, max_active: int, max_pending: int) -> None:
        if max_active <= 0:
            raise ValueError("max_active must be > 0")
        if max_pending < 0:
            raise ValueError("max_pending must be >= 0")
        self._max_active = max_active
        self._max_pending = max_pending
        self._active = 0
        self._pending: deque[asyncio.Future[None]] = deque()

    @property
    def active(self) -> int:
        return self._active

    @property
    def pending(self) -> int:
        return len(self._pending)

    @property
    def max_active(self) -> int:
        return self._max_active

    def enqueue(self) -> asyncio.Future[None]:
        """Issue a ticket, or raise `Overloaded` when the queue is full."""
        ticket: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        if self._active < self._max_active and not self._pending:
            self._active += 1
            ticket.set_result(None)
            return ticket

        if len(self._pending) >= self._max_pending:
            raise Overloaded(queued=len(self._pending))

        self._pending.append(ticket)
        return ticket

    def release(self) -> None:
        """Free the caller's slot, handing it to the next live ticket."""
        while self._pending:
            ticket = self._pending.popleft()
            if not ticket.done():
                ticket.set_result(None)
                return
        self._active -= 1

    def withdraw(self, ticket: asyncio.Future[None]) -> None:
        """Give back a ticket whose holder will never run its call."""
        try:
            self._pending.remove(ticket)
        except ValueError:
            if ticket.done() and not ticket.cancelled():
                self.release()
