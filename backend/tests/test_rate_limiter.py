"""
Tests for the FIFO rate-limited call queue.
"""

import asyncio

import pytest

from conftest import FakeClock
from core.errors import ProviderError
from core.rate_limiter import RateLimiter


def make_limiter(clock: FakeClock, **kwargs) -> RateLimiter:
    kwargs.setdefault("max_calls_per_minute", 60)
    kwargs.setdefault("min_interval_seconds", 1.0)
    kwargs.setdefault("call_timeout_seconds", None)
    return RateLimiter(clock=clock, sleep=clock.sleep, name="test", **kwargs)


def recording_call(clock: FakeClock, log: list, value):
    async def call():
        log.append((value, clock()))
        return value
    return call


@pytest.mark.asyncio
async def test_calls_are_spaced_by_min_interval():
    clock = FakeClock()
    limiter = make_limiter(clock)
    log = []

    results = await asyncio.gather(*(limiter.submit(recording_call(clock, log, i)) for i in range(5)))

    assert results == [0, 1, 2, 3, 4]
    times = [t for _, t in log]
    assert all(b - a >= 1.0 for a, b in zip(times, times[1:]))


@pytest.mark.asyncio
async def test_calls_dispatch_in_submission_order():
    clock = FakeClock()
    limiter = make_limiter(clock, min_interval_seconds=0.0)
    log = []

    await asyncio.gather(*(limiter.submit(recording_call(clock, log, c)) for c in "abcdef"))

    assert [v for v, _ in log] == list("abcdef")


@pytest.mark.asyncio
async def test_per_window_budget_is_never_exceeded():
    clock = FakeClock()
    limiter = make_limiter(clock, max_calls_per_minute=3, min_interval_seconds=0.0)
    log = []

    await asyncio.gather(*(limiter.submit(recording_call(clock, log, i)) for i in range(7)))

    times = [t for _, t in log]
    assert len(times) == 7
    for i, start in enumerate(times):
        in_window = [t for t in times[i:] if t - start < 60]
        assert len(in_window) <= 3
    assert times[3] - times[0] >= 60


@pytest.mark.asyncio
async def test_default_budget_allows_sixty_calls_per_window():
    clock = FakeClock()
    limiter = make_limiter(clock, min_interval_seconds=0.0)
    log = []

    await asyncio.gather(*(limiter.submit(recording_call(clock, log, i)) for i in range(61)))

    times = [t for _, t in log]
    assert times[59] == times[0]
    assert times[60] - times[0] >= 60


@pytest.mark.asyncio
async def test_failed_call_resolves_to_none_and_queue_continues():
    clock = FakeClock()
    limiter = make_limiter(clock)

    async def boom():
        raise ProviderError("Finnhub", "/quote returned 429", 429)

    async def ok():
        return "ok"

    results = await asyncio.gather(limiter.submit(boom), limiter.submit(ok))
    assert results == [None, "ok"]


@pytest.mark.asyncio
async def test_failure_is_reraised_when_not_swallowed():
    clock = FakeClock()
    limiter = make_limiter(clock)

    async def boom():
        raise ProviderError("FMP", "access forbidden (403)", 403)

    async def ok():
        return 42

    failing = asyncio.ensure_future(limiter.submit(boom, swallow_errors=False))
    following = asyncio.ensure_future(limiter.submit(ok))

    with pytest.raises(ProviderError):
        await failing
    assert await following == 42


@pytest.mark.asyncio
async def test_only_one_call_runs_at_a_time():
    clock = FakeClock()
    limiter = make_limiter(clock, min_interval_seconds=0.0)
    active = 0
    peak = 0

    async def call():
        nonlocal active, peak
        active += 1
        peak = max(peak, active)
        await asyncio.sleep(0)
        active -= 1
        return True

    results = await asyncio.gather(*(limiter.submit(call) for _ in range(10)))

    assert all(results)
    assert peak == 1
    assert not limiter.is_draining()
    assert limiter.stats()["total_dispatched"] == 10


@pytest.mark.asyncio
async def test_drain_restarts_after_queue_empties():
    clock = FakeClock()
    limiter = make_limiter(clock)
    log = []

    assert await limiter.submit(recording_call(clock, log, 1)) == 1
    assert not limiter.is_draining()
    assert await limiter.submit(recording_call(clock, log, 2)) == 2
    assert log[1][1] - log[0][1] >= 1.0


@pytest.mark.asyncio
async def test_hung_call_times_out_to_none():
    clock = FakeClock()
    limiter = make_limiter(clock, call_timeout_seconds=0.01)

    async def hang():
        await asyncio.sleep(10)

    async def ok():
        return "next"

    results = await asyncio.gather(limiter.submit(hang), limiter.submit(ok))
    assert results == [None, "next"]


@pytest.mark.asyncio
async def test_shutdown_resolves_in_flight_and_queued_calls():
    clock = FakeClock()
    limiter = make_limiter(clock, min_interval_seconds=0.0)
    blocker = asyncio.Event()

    async def wait_forever():
        await blocker.wait()
        return "never"

    futures = [asyncio.ensure_future(limiter.submit(wait_forever)) for _ in range(3)]
    for _ in range(5):
        await asyncio.sleep(0)
    assert limiter.stats()["queued"] == 2

    await limiter.shutdown()

    assert await asyncio.gather(*futures) == [None, None, None]
    assert limiter.stats()["queued"] == 0
    assert not limiter.is_draining()
