"""
Result Cache Tests — TTL, capacity eviction, narrative attach.
"""

from __future__ import annotations

import pytest

from conftest import FakeClock
from vibescope.cache import CacheEntry, ResultCache
from vibescope.neighbors import Neighbor


def _entry(term: str = "punk") -> CacheEntry:
    return CacheEntry(
        term=term,
        axes={"positive_negative": 0.2},
        neighbors=[Neighbor("rebel", 0.4)],
    )


class TestResultCache:

    @pytest.mark.asyncio
    async def test_miss_returns_none(self):
        cache = ResultCache()
        assert await cache.get("punk") is None
        assert cache.stats["misses"] == 1

    @pytest.mark.asyncio
    async def test_put_then_get_normalizes_key(self):
        cache = ResultCache()
        stored = await cache.put("  PUNK ", _entry())
        hit = await cache.get("punk")
        assert hit == stored
        assert hit.term == "punk"
        assert hit.neighbors[0].term == "rebel"

    @pytest.mark.asyncio
    async def test_put_stamps_insertion_time(self):
        clock = FakeClock(now=42.0)
        cache = ResultCache(clock=clock)
        stored = await cache.put("punk", _entry())
        assert stored.inserted_at == 42.0

    @pytest.mark.asyncio
    async def test_no_ttl_never_expires(self):
        clock = FakeClock()
        cache = ResultCache(ttl_seconds=None, clock=clock)
        await cache.put("punk", _entry())
        clock.advance(10 ** 9)
        assert await cache.get("punk") is not None

    @pytest.mark.asyncio
    async def test_ttl_expiry(self):
        clock = FakeClock()
        cache = ResultCache(ttl_seconds=60, clock=clock)
        await cache.put("punk", _entry())
        clock.advance(59)
        assert await cache.get("punk") is not None
        clock.advance(2)
        assert await cache.get("punk") is None
        assert len(cache) == 0

    @pytest.mark.asyncio
    async def test_evicts_oldest_over_capacity(self):
        clock = FakeClock()
        cache = ResultCache(max_entries=2, clock=clock)
        for term in ("alpha", "beta", "gamma"):
            await cache.put(term, _entry(term))
            clock.advance(1)
        assert len(cache) == 2
        assert await cache.get("alpha") is None
        assert await cache.get("gamma") is not None
        assert cache.stats["evictions"] == 1

    @pytest.mark.asyncio
    async def test_reput_refreshes_age(self):
        clock = FakeClock()
        cache = ResultCache(max_entries=2, clock=clock)
        await cache.put("alpha", _entry("alpha"))
        clock.advance(1)
        await cache.put("beta", _entry("beta"))
        clock.advance(1)
        await cache.put("alpha", _entry("alpha"))
        clock.advance(1)
        await cache.put("gamma", _entry("gamma"))
        assert await cache.get("alpha") is not None
        assert await cache.get("beta") is None

    def test_rejects_zero_capacity(self):
        with pytest.raises(ValueError):
            ResultCache(max_entries=0)

    @pytest.mark.asyncio
    async def test_set_narrative(self):
        cache = ResultCache()
        assert await cache.set_narrative("punk", "loud") is False
        await cache.put("punk", _entry())
        assert await cache.set_narrative("Punk", "loud and fast") is True
        hit = await cache.get("punk")
        assert hit.narrative == "loud and fast"

    @pytest.mark.asyncio
    async def test_invalidate_and_clear(self):
        cache = ResultCache()
        await cache.put("punk", _entry())
        await cache.put("jazz", _entry("jazz"))
        await cache.invalidate("punk")
        assert await cache.get("punk") is None
        await cache.clear()
        assert len(cache) == 0
        assert cache.stats["hits"] == 0

    @pytest.mark.asyncio
    async def test_hit_rate(self):
        cache = ResultCache()
        await cache.put("punk", _entry())
        await cache.get("punk")
        await cache.get("jazz")
        assert cache.stats["hit_rate"] == 0.5
