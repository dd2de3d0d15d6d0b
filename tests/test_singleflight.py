import asyncio

import pytest

from app.core.fetch.singleflight import SingleFlight


@pytest.mark.asyncio
async def test_join_attaches_to_running_call() -> None:
    flights = SingleFlight()
    assert flights.join("k") is None

    call = flights.start("k")
    joined = flights.join("k")

    assert joined is call
    assert call.waiters == 2
    assert "k" in flights
    assert len(flights) == 1


@pytest.mark.asyncio
async def test_start_rejects_duplicate_key() -> None:
    flights = SingleFlight()
    flights.start("k")

    with pytest.raises(RuntimeError):
        flights.start("k")


@pytest.mark.asyncio
async def test_discard_only_removes_same_call() -> None:
    flights = SingleFlight()
    first = flights.start("k")
    flights.discard(first)
    second = flights.start("k")

    # A late discard of the finished call must not drop the fresh one.
    flights.discard(first)

    assert flights.join("k") is second
    assert isinstance(second.future, asyncio.Future)
