"""
Tests for the background refresh jobs.
"""

import asyncio
from datetime import timedelta

import pytest

from conftest import FakeClock
from core.cache import CacheCategory, TimedCache
from core.scheduler import create_scheduler


class FakeMarketData:
    def __init__(self):
        self.clock = FakeClock()
        self.cache = TimedCache(clock=self.clock)
        self.featured_calls = 0
        self.index_calls = 0
        self.release = asyncio.Event()

    async def get_featured_stocks(self, force_refresh=False):
        assert force_refresh
        self.featured_calls += 1
        await self.release.wait()
        return []

    async def refresh_market_indices(self):
        self.index_calls += 1
        raise RuntimeError("provider down")


def test_jobs_are_registered_with_intervals():
    scheduler = create_scheduler(FakeMarketData())

    featured = scheduler.get_job("featured_refresh")
    indices = scheduler.get_job("indices_refresh")
    sweep = scheduler.get_job("cache_sweep")

    assert featured.trigger.interval == timedelta(minutes=60)
    assert indices.trigger.interval == timedelta(minutes=5)
    assert sweep.trigger.interval == timedelta(minutes=15)
    assert featured.max_instances == 1


@pytest.mark.asyncio
async def test_overlapping_featured_refresh_is_skipped():
    market_data = FakeMarketData()
    job = create_scheduler(market_data).get_job("featured_refresh").func

    first = asyncio.ensure_future(job())
    await asyncio.sleep(0)
    await job()
    assert market_data.featured_calls == 1

    market_data.release.set()
    await first
    market_data.release = asyncio.Event()
    market_data.release.set()
    await job()
    assert market_data.featured_calls == 2


@pytest.mark.asyncio
async def test_failing_job_is_logged_not_raised():
    market_data = FakeMarketData()
    job = create_scheduler(market_data).get_job("indices_refresh").func

    await job()
    await job()
    assert market_data.index_calls == 2


@pytest.mark.asyncio
async def test_sweep_job_drops_expired_entries():
    market_data = FakeMarketData()
    market_data.cache.put(CacheCategory.PRICE, "price_AAPL", 1)
    market_data.clock.advance(120)

    await create_scheduler(market_data).get_job("cache_sweep").func()
    assert market_data.cache.stats()["price"] == 0
