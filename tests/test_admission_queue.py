import asyncio

import pytest

from app.core.fetch.admission import AdmissionQueue
from app.errors import Overloaded


@pytest.mark.asyncio
async def test_tickets_granted_immediately_below_limit() -> None:
    queue = AdmissionQueue(max_active=2, max_pending=10)

    first = queue.enqueue()
    second = queue.enqueue()
    third = queue.enqueue()

    assert first.done() and second.done()
    assert not third.done()
    assert queue.active == 2
    assert queue.pending == 1


@pytest.mark.asyncio
async def test_release_hands_slot_to_oldest_ticket() -> None:
    queue = AdmissionQueue(max_active=1, max_pending=10)
    queue.enqueue()
    waiting = [queue.enqueue() for _ in range(3)]

    queue.release()
    assert [t.done() for t in waiting] == [True, False, False]
    assert queue.active == 1

    queue.release()
    assert [t.done() for t in waiting] == [True, True, False]


@pytest.mark.asyncio
async def test_full_queue_raises_overloaded() -> None:
    queue = AdmissionQueue(max_active=1, max_pending=2)
    queue.enqueue()
    queue.enqueue()
    queue.enqueue()

    with pytest.raises(Overloaded) as excinfo:
        queue.enqueue()

    assert excinfo.value.queued == 2


@pytest.mark.asyncio
async def test_release_skips_cancelled_tickets() -> None:
    queue = AdmissionQueue(max_active=1, max_pending=10)
    queue.enqueue()
    abandoned = queue.enqueue()
    live = queue.enqueue()
    abandoned.cancel()

    queue.release()

    assert live.done() and not live.cancelled()
    assert queue.pending == 0


@pytest.mark.asyncio
async def test_withdraw_pending_and_granted_tickets() -> None:
    queue = AdmissionQueue(max_active=1, max_pending=10)
    granted = queue.enqueue()
    pending = queue.enqueue()

    queue.withdraw(pending)
    assert queue.pending == 0
    assert queue.active == 1

    queue.withdraw(granted)
    assert queue.active == 0


def test_rejects_invalid_limits() -> None:
    with pytest.raises(ValueError):
        AdmissionQueue(max_active=0, max_pending=1)
    with pytest.raises(ValueError):
        AdmissionQueue(max_active=1, max_pending=-1)


@pytest.mark.asyncio
async def test_waiting_ticket_resolves_after_release() -> None:
    queue = AdmissionQueue(max_active=1, max_pending=1)
    queue.enqueue()
    ticket = queue.enqueue()

    asyncio.get_running_loop().call_soon(queue.release)
    await asyncio.wait_for(ticket, timeout=1)

    assert queue.active == 1
