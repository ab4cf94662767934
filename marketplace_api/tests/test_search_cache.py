import unittest

from src.services.search_cache import SearchCache


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class SearchCacheTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.clock = FakeClock()
        self.cache = SearchCache(ttl_seconds=60, max_size=4, clock=self.clock)

    async def test_entries_expire_after_ttl(self):
        await self.cache.set("a", {"listings": []})
        self.clock.now += 59
        self.assertEqual(await self.cache.get("a"), {"listings": []})
        self.clock.now += 2
        self.assertIsNone(await self.cache.get("a"))
        self.assertEqual(self.cache.stats().total_entries, 0)

    async def test_full_cache_evicts_oldest_half(self):
        for i in range(4):
            await self.cache.set(f"k{i}", i)
            self.clock.now += 1
        await self.cache.set("k4", 4)

        self.assertIsNone(await self.cache.get("k0"))
        self.assertIsNone(await self.cache.get("k1"))
        self.assertEqual(await self.cache.get("k2"), 2)
        self.assertEqual(await self.cache.get("k4"), 4)
        self.assertEqual(self.cache.stats().total_entries, 3)

    async def test_hit_rate_is_a_ratio(self):
        await self.cache.set("a", 1)
        await self.cache.get("a")
        await self.cache.get("a")
        await self.cache.get("a")
        await self.cache.get("missing")
        stats = self.cache.stats()
        self.assertEqual(stats.cache_hit_rate, 0.75)
        self.assertEqual(stats.cache_ttl_seconds, 60)
        self.assertEqual(stats.max_cache_size, 4)

    async def test_stats_count_stale_entries_separately(self):
        await self.cache.set("a", 1)
        self.clock.now += 30
        await self.cache.set("b", 2)
        self.clock.now += 31
        stats = self.cache.stats()
        self.assertEqual(stats.total_entries, 2)
        self.assertEqual(stats.valid_entries, 1)

    async def test_clear_resets_counters(self):
        await self.cache.set("a", 1)
        await self.cache.get("a")
        await self.cache.clear()
        stats = self.cache.stats()
        self.assertEqual(stats.total_entries, 0)
        self.assertEqual(stats.cache_hit_rate, 0.0)

    def test_make_key_ignores_ordering(self):
        self.assertEqual(SearchCache.make_key({"a": 1, "b": 2}), SearchCache.make_key({"b": 2, "a": 1}))


if __name__ == "__main__":
    unittest.main()
