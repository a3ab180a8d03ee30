import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

from config import (
    CACHE_MAX_ENTRIES_PER_CATEGORY,
    COMPREHENSIVE_CACHE_TTL_SECONDS,
    FEATURED_CACHE_TTL_SECONDS,
    FUNDAMENTAL_CACHE_TTL_SECONDS,
    HISTORICAL_CACHE_TTL_SECONDS,
    PRESCREEN_CACHE_TTL_SECONDS,
    PRICE_CACHE_TTL_SECONDS,
    PROFILE_CACHE_TTL_SECONDS,
)

logger = logging.getLogger(__name__)


class CacheCategory(str, Enum):
    PRICE = "price"
    PROFILE = "profile"
    HISTORICAL = "historical"
    FEATURED = "featured"
    COMPREHENSIVE = "comprehensive"
    FUNDAMENTAL = "fundamental"
    PRESCREEN = "prescreen"


DEFAULT_TIMEOUTS: dict[CacheCategory, float] = {
    CacheCategory.PRICE: PRICE_CACHE_TTL_SECONDS,
    CacheCategory.PROFILE: PROFILE_CACHE_TTL_SECONDS,
    CacheCategory.HISTORICAL: HISTORICAL_CACHE_TTL_SECONDS,
    CacheCategory.FEATURED: FEATURED_CACHE_TTL_SECONDS,
    CacheCategory.COMPREHENSIVE: COMPREHENSIVE_CACHE_TTL_SECONDS,
    CacheCategory.FUNDAMENTAL: FUNDAMENTAL_CACHE_TTL_SECONDS,
    CacheCategory.PRESCREEN: PRESCREEN_CACHE_TTL_SECONDS,
}


@dataclass(frozen=True)
class CacheEntry:
    data: Any
    timestamp: float


class TimedCache:
    """
    In-memory cache split into categories, each with its own timeout.

    Freshness is checked lazily at read time; stale entries stay readable via
    get() until overwritten, swept, or pushed out by the per-category LRU bound.
    """

    def __init__(
        self,
        timeouts: Optional[dict[CacheCategory, float]] = None,
        max_entries: int = CACHE_MAX_ENTRIES_PER_CATEGORY,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.timeouts = dict(DEFAULT_TIMEOUTS)
        if timeouts:
            self.timeouts.update(timeouts)
        self.max_entries = max_entries
        self._clock = clock
        self._maps: dict[CacheCategory, OrderedDict[str, CacheEntry]] = {
            category: OrderedDict() for category in CacheCategory
        }
        self._lock = threading.RLock()

    # ---- Public API ----

    def get(self, category: CacheCategory, key: str) -> Optional[CacheEntry]:
        with self._lock:
            entries = self._maps[category]
            entry = entries.get(key)
            if entry is not None:
                entries.move_to_end(key)
            return entry

    def put(self, category: CacheCategory, key: str, data: Any) -> CacheEntry:
        entry = CacheEntry(data=data, timestamp=self._clock())
        with self._lock:
            entries = self._maps[category]
            entries[key] = entry
            entries.move_to_end(key)
            while len(entries) > self.max_entries:
                evicted, _ = entries.popitem(last=False)
                logger.debug(f"Evicted {category.value}:{evicted} (size bound {self.max_entries})")
        return entry

    def is_valid(self, entry: Optional[CacheEntry], timeout: float) -> bool:
        if entry is None:
            return False
        age = self._clock() - entry.timestamp
        return 0 <= age < timeout

    def get_valid(self, category: CacheCategory, key: str) -> Optional[Any]:
        """Return cached data if it is still fresh for its category, else None."""
        entry = self.get(category, key)
        if self.is_valid(entry, self.timeouts[category]):
            return entry.data
        return None

    def age_seconds(self, entry: CacheEntry) -> float:
        return max(0.0, self._clock() - entry.timestamp)

    def sweep(self) -> int:
        """Drop every stale entry. Returns the number removed."""
        removed = 0
        with self._lock:
            for category, entries in self._maps.items():
                timeout = self.timeouts[category]
                stale = [k for k, e in entries.items() if not self.is_valid(e, timeout)]
                for key in stale:
                    del entries[key]
                removed += len(stale)
        if removed:
            logger.info(f"Cache sweep removed {removed} stale entries.")
        return removed

    def clear(self, category: Optional[CacheCategory] = None) -> None:
        with self._lock:
            if category is not None:
                self._maps[category].clear()
                return
            for entries in self._maps.values():
                entries.clear()
        logger.info("All caches cleared.")

    def stats(self) -> dict[str, int]:
        with self._lock:
            return {category.value: len(entries) for category, entries in self._maps.items()}
