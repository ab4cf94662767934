from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import Any, Callable, Dict, Optional, Tuple

from src.schemas.search import CacheStats

logger = logging.getLogger(__name__)

CACHE_TTL_SECONDS = 300
MAX_CACHE_SIZE = 100


class SearchCache:
    """
    In-process TTL cache for serialized search results.

    Values must be JSON-ready (dicts/lists), never ORM objects. When the cache is full,
    the oldest half of the entries is evicted before inserting.
    """

    def __init__(
        self,
        ttl_seconds: int = CACHE_TTL_SECONDS,
        max_size: int = MAX_CACHE_SIZE,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self.max_size = max_size
        self._clock = clock
        self._entries: Dict[str, Tuple[float, Any]] = {}
        self._lock = asyncio.Lock()
        self._hits = 0
        self._misses = 0

    # PUBLIC_INTERFACE
    @staticmethod
    def make_key(params: Any) -> str:
        """Deterministic key for a parameter mapping."""
        return json.dumps(params, sort_keys=True, default=str)

    def _is_fresh(self, stored_at: float) -> bool:
        return self._clock() - stored_at < self.ttl_seconds

    # PUBLIC_INTERFACE
    async def get(self, key: str) -> Optional[Any]:
        """Return the cached value, or None when missing or expired."""
        async with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return None
            stored_at, value = entry
            if not self._is_fresh(stored_at):
                del self._entries[key]
                self._misses += 1
                return None
            self._hits += 1
            return value

    # PUBLIC_INTERFACE
    async def set(self, key: str, value: Any) -> None:
        async with self._lock:
            if key not in self._entries and len(self._entries) >= self.max_size:
                oldest = sorted(self._entries.items(), key=lambda item: item[1][0])
                for stale_key, _ in oldest[: max(1, len(oldest) // 2)]:
                    del self._entries[stale_key]
                logger.debug("Search cache full; evicted %d entries", len(oldest) - len(self._entries))
            self._entries[key] = (self._clock(), value)

    # PUBLIC_INTERFACE
    async def clear(self) -> None:
        async with self._lock:
            self._entries.clear()
            self._hits = 0
            self._misses = 0

    # PUBLIC_INTERFACE
    def stats(self) -> CacheStats:
        """Snapshot of cache occupancy and hit ratio."""
        valid = sum(1 for stored_at, _ in self._entries.values() if self._is_fresh(stored_at))
        lookups = self._hits + self._misses
        return CacheStats(
            total_entries=len(self._entries),
            valid_entries=valid,
            cache_hit_rate=round(self._hits / lookups, 4) if lookups else 0.0,
            cache_ttl_seconds=self.ttl_seconds,
            max_cache_size=self.max_size,
        )


# Shared caches for search results and similar-listing lookups
search_cache = SearchCache()
similar_cache = SearchCache()
