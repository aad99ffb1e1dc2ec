"""
Location Query Cache

In-process, time-bounded cache in front of the store's full-set aggregation.

- Keys are canonical filter signatures ("{start}_{end}" or "all")
- An entry is served while its age is below the TTL; expired entries are
  bypassed and overwritten on the next populate, never evicted on read
- Invalidation is wholesale: clear() after imports and manual refreshes

The cache is a plain object injected into the API, so tests get independent
instances and can drive the clock.
"""

import time
from dataclasses import dataclass
from datetime import date
from typing import Awaitable, Callable, Dict, List, Optional, Union

import structlog

from txsales.schemas import LocationSummary

logger = structlog.get_logger(__name__)

DEFAULT_TTL_SECONDS = 3600
UNFILTERED_KEY = "all"

Clock = Callable[[], float]


@dataclass
class CacheEntry:
    data: List[LocationSummary]
    stored_at: float


class QueryCache:
    """
    TTL cache for location lists.

    Example:
        cache = QueryCache(ttl_seconds=3600)
        key = QueryCache.key_for(start, end)
        locations = await cache.get_or_load(key, lambda: store.get_all(start, end))
    """

    def __init__(
        self,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        clock: Clock = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self.hits = 0
        self.misses = 0

    @staticmethod
    def key_for(
        start_date: Optional[Union[date, str]] = None,
        end_date: Optional[Union[date, str]] = None,
    ) -> str:
        """Literal concatenation of the bounds, or the unfiltered sentinel"""
        if start_date is None and end_date is None:
            return UNFILTERED_KEY
        return f"{start_date or ''}_{end_date or ''}"

    def get(self, key: str) -> Optional[List[LocationSummary]]:
        """Cached value if younger than the TTL, else None"""
        entry = self._entries.get(key)
        if entry is None or self._clock() - entry.stored_at >= self.ttl_seconds:
            self.misses += 1
            return None
        self.hits += 1
        return entry.data

    def set(self, key: str, data: List[LocationSummary]) -> None:
        """Store value with the current time"""
        self._entries[key] = CacheEntry(data=data, stored_at=self._clock())

    def clear(self) -> int:
        """Drop every entry regardless of key or age"""
        dropped = len(self._entries)
        self._entries.clear()
        logger.info("Query cache cleared", entries=dropped)
        return dropped

    async def get_or_load(
        self,
        key: str,
        loader: Callable[[], Awaitable[List[LocationSummary]]],
    ) -> List[LocationSummary]:
        """
        Get from cache or load and cache.

        Args:
            key: Cache key from key_for()
            loader: Async function producing the value on a miss

        Returns:
            Cached or freshly loaded value
        """
        value = self.get(key)
        if value is not None:
            logger.debug("Query cache hit", key=key)
            return value

        logger.debug("Query cache miss", key=key)
        value = await loader()
        self.set(key, value)
        return value

    def stats(self) -> Dict[str, int]:
        return {
            "entries": len(self._entries),
            "ttl_seconds": self.ttl_seconds,
            "hits": self.hits,
            "misses": self.misses,
        }
