"""
Tests for the categorized timed cache.
"""

from conftest import FakeClock
from core.cache import CacheCategory, TimedCache


def test_fresh_entry_is_returned_until_timeout():
    clock = FakeClock()
    cache = TimedCache(clock=clock)
    cache.put(CacheCategory.PRICE, "price_AAPL", 189.5)

    clock.advance(59)
    assert cache.get_valid(CacheCategory.PRICE, "price_AAPL") == 189.5

    clock.advance(1)
    assert cache.get_valid(CacheCategory.PRICE, "price_AAPL") is None


def test_stale_entry_stays_readable_via_get():
    clock = FakeClock()
    cache = TimedCache(clock=clock)
    cache.put(CacheCategory.FUNDAMENTAL, "essential_KO", {"price": 60})

    clock.advance(2 * 24 * 3600)
    entry = cache.get(CacheCategory.FUNDAMENTAL, "essential_KO")
    assert entry is not None
    assert entry.data == {"price": 60}
    assert not cache.is_valid(entry, cache.timeouts[CacheCategory.FUNDAMENTAL])
    assert cache.age_seconds(entry) == 2 * 24 * 3600


def test_categories_have_independent_timeouts():
    clock = FakeClock()
    cache = TimedCache(clock=clock)
    cache.put(CacheCategory.PRICE, "price_MSFT", 1)
    cache.put(CacheCategory.PROFILE, "profile_MSFT", 2)

    clock.advance(120)
    assert cache.get_valid(CacheCategory.PRICE, "price_MSFT") is None
    assert cache.get_valid(CacheCategory.PROFILE, "profile_MSFT") == 2


def test_entry_with_future_timestamp_is_invalid():
    clock = FakeClock()
    cache = TimedCache(clock=clock)
    entry = cache.put(CacheCategory.PRICE, "price_X", 1)
    clock.advance(-5)
    assert not cache.is_valid(entry, 60)


def test_put_overwrites_and_refreshes_timestamp():
    clock = FakeClock()
    cache = TimedCache(clock=clock)
    cache.put(CacheCategory.PRICE, "price_AAPL", 1)
    clock.advance(50)
    cache.put(CacheCategory.PRICE, "price_AAPL", 2)
    clock.advance(50)
    assert cache.get_valid(CacheCategory.PRICE, "price_AAPL") == 2


def test_size_bound_evicts_least_recently_used():
    cache = TimedCache(max_entries=2, clock=FakeClock())
    cache.put(CacheCategory.PRICE, "a", 1)
    cache.put(CacheCategory.PRICE, "b", 2)
    cache.get(CacheCategory.PRICE, "a")
    cache.put(CacheCategory.PRICE, "c", 3)

    assert cache.get(CacheCategory.PRICE, "b") is None
    assert cache.get(CacheCategory.PRICE, "a").data == 1
    assert cache.get(CacheCategory.PRICE, "c").data == 3


def test_sweep_removes_only_stale_entries():
    clock = FakeClock()
    cache = TimedCache(clock=clock)
    cache.put(CacheCategory.PRICE, "price_AAPL", 1)
    cache.put(CacheCategory.HISTORICAL, "historical_AAPL", 2)

    clock.advance(61)
    assert cache.sweep() == 1
    assert cache.stats()["price"] == 0
    assert cache.stats()["historical"] == 1


def test_clear_single_category_and_all():
    cache = TimedCache(clock=FakeClock())
    cache.put(CacheCategory.PRICE, "p", 1)
    cache.put(CacheCategory.PROFILE, "q", 2)

    cache.clear(CacheCategory.PRICE)
    assert cache.stats()["price"] == 0
    assert cache.stats()["profile"] == 1

    cache.clear()
    assert all(count == 0 for count in cache.stats().values())


def test_timeouts_can_be_overridden():
    clock = FakeClock()
    cache = TimedCache(timeouts={CacheCategory.PRICE: 5}, clock=clock)
    cache.put(CacheCategory.PRICE, "p", 1)
    clock.advance(5)
    assert cache.get_valid(CacheCategory.PRICE, "p") is None
    assert cache.timeouts[CacheCategory.PROFILE] == 3600
