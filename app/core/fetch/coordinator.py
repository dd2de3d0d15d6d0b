"""Bounded, deduplicating scheduler for upstream certificate calls.

Concurrent lookups for the same control number share one upstream call
(single-flight). Distinct keys run at most ``max_concurrency`` at a time and
are admitted in FIFO order; beyond ``max_queue`` waiting fetches new keys are
rejected with ``Overloaded``.

Each upstream call runs in its own task, so a caller that goes away does not
cancel the call: the record is still stored for later readers.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from typing import TypeAlias

from app.core.cache.types import CertificateRecord
from app.errors import CertificateNotFound, Overloaded
from app.logger import get_logger
from app.observability.fetch_metrics import FetchMetrics

from .admission import AdmissionQueue
from .singleflight import InFlightFetch, SingleFlight

logger = get_logger(__name__)

CertificateFetcher: TypeAlias = Callable[[str], Awaitable[CertificateRecord]]
ResultHook: TypeAlias = Callable[[str, CertificateRecord], None]

DEFAULT_MAX_CONCURRENCY = 15
DEFAULT_MAX_QUEUE = 1000


def _outcome_for(exc: BaseException) -> str:
    if isinstance(exc, CertificateNotFound):
        return "not_found"
    if isinstance(exc, asyncio.CancelledError):
        return "cancelled"
    return "error"


class FetchCoordinator:
    def __init__(
        self,
        fetcher: CertificateFetcher,
        *,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
        max_queue: int = DEFAULT_MAX_QUEUE,
        on_result: ResultHook | None = None,
        metrics: FetchMetrics | None = None,
    ) -> None:
        self._fetcher = fetcher
        self._on_result = on_result
        self._metrics = metrics
        self._admission = AdmissionQueue(max_active=max_concurrency, max_pending=max_queue)
        self._flights = SingleFlight()
        self._tasks: dict[asyncio.Task[None], tuple[InFlightFetch, asyncio.Future[None]]] = {}

    async def fetch(self, key: str) -> CertificateRecord:
        """Return the upstream record for `key`, sharing any call already running.

        Raises:
            UpstreamError: the upstream call failed (every waiter gets the same error).
            CertificateNotFound: upstream returned an empty payload.
            Overloaded: no call was running for `key` and the queue is full.
        """
        call = self._flights.join(key)
        if call is not None:
            if self._metrics is not None:
                self._metrics.inc_coalesced()
            logger.debug("certificate_fetch_joined", control_number=key, waiters=call.waiters)
        else:
            call = self._start(key)

        # Shielded so a departing caller never cancels the shared call.
        return await asyncio.shield(call.future)

    def snapshot(self) -> dict[str, int]:
        return {
            "in_flight": len(self._flights),
            "active": self._admission.active,
            "queued": self._admission.pending,
            "max_concurrency": self._admission.max_active,
        }

    async def aclose(self) -> None:
        """Cancel outstanding upstream calls (application shutdown)."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.info("certificate_fetches_cancelled", count=len(tasks))

    def _start(self, key: str) -> InFlightFetch:
        try:
            ticket = self._admission.enqueue()
        except Overloaded as exc:
            if self._metrics is not None:
                self._metrics.inc_rejected()
            logger.warning("certificate_fetch_rejected", control_number=key, queued=exc.queued)
            raise

        call = self._flights.start(key)
        task = asyncio.create_task(self._run(call, ticket), name=f"certificate-fetch:{key}")
        self._tasks[task] = (call, ticket)
        task.add_done_callback(self._on_task_done)
        if ticket.done():
            logger.debug("certificate_fetch_admitted", control_number=key)
        else:
            logger.debug(
                "certificate_fetch_queued", control_number=key, queued=self._admission.pending
            )
        return call

    def _on_task_done(self, task: asyncio.Task[None]) -> None:
        call, ticket = self._tasks.pop(task)
        if call.future.done():
            return
        # Cancelled before its first step: _run never ran its own cleanup.
        self._admission.withdraw(ticket)
        self._flights.discard(call)
        call.future.cancel()
        logger.debug("certificate_fetch_dropped", control_number=call.key)

    async def _run(self, call: InFlightFetch, ticket: asyncio.Future[None]) -> None:
        key = call.key
        try:
            await ticket
        except asyncio.CancelledError:
            self._admission.withdraw(ticket)
            self._flights.discard(call)
            call.future.cancel()
            raise

        timer = time.perf_counter()
        try:
            try:
                record = await self._fetcher(key)
            finally:
                self._admission.release()
        except asyncio.CancelledError as exc:
            self._observe(exc, timer)
            self._flights.discard(call)
            call.future.cancel()
            raise
        except Exception as exc:
            duration_ms = self._observe(exc, timer)
            # Failures are never cached; the next lookup starts from scratch.
            self._flights.discard(call)
            logger.warning(
                "certificate_fetch_failed",
                control_number=key,
                error_type=type(exc).__name__,
                error=str(exc),
                waiters=call.waiters,
                duration_ms=round(duration_ms, 3),
            )
            call.future.set_exception(exc)
            # Mark retrieved in case every waiter has gone away.
            call.future.exception()
            return

        duration_ms = self._observe(None, timer)
        logger.info(
            "certificate_fetch_completed",
            control_number=key,
            waiters=call.waiters,
            duration_ms=round(duration_ms, 3),
        )
        try:
            if self._on_result is not None:
                self._on_result(key, record)
        finally:
            self._flights.discard(call)
            call.future.set_result(record)

    def _observe(self, exc: BaseException | None, started: float) -> float:
        duration_ms = (time.perf_counter() - started) * 1000.0
        if self._metrics is not None:
            outcome = "success" if exc is None else _outcome_for(exc)
            self._metrics.observe_upstream(outcome=outcome, duration_ms=duration_ms)
        return duration_ms
