"""
Narration Queue Tests — background narrative generation.
"""

from __future__ import annotations

import pytest

from conftest import FakeLLM
from vibescope.cache import CacheEntry, ResultCache
from vibescope.errors import ProviderError
from vibescope.narration import NarrationJob, NarrationQueue, build_prompt, fallback_narrative
from vibescope.neighbors import Neighbor
from vibescope.store import SQLiteVibeStore

AXES = {"positive_negative": 0.8, "intense_mild": -0.6, "future_past": 0.1}
NEIGHBORS = [Neighbor("rebel", 0.2), Neighbor("anarchy", 0.3), Neighbor("music", 0.5), Neighbor("calm", 0.9)]


async def _cached(term: str = "punk") -> ResultCache:
    cache = ResultCache()
    await cache.put(term, CacheEntry(term=term, axes=AXES, neighbors=NEIGHBORS))
    return cache


class TestBuildPrompt:

    def test_includes_strongest_axes_and_neighbors(self):
        prompt = build_prompt("punk", AXES, NEIGHBORS)
        assert '"punk"' in prompt
        assert "positive_negative (0.80)" in prompt
        assert "intense_mild (-0.60)" in prompt
        assert "rebel, anarchy, music" in prompt
        assert "calm" not in prompt

    def test_weak_axes_reported_as_none(self):
        prompt = build_prompt("beige", {"positive_negative": 0.1}, [])
        assert "Strongest positive trait: none" in prompt
        assert "Semantic neighbors: none" in prompt


class TestNarrationQueue:

    @pytest.mark.asyncio
    async def test_process_attaches_narrative(self, tmp_path):
        cache = await _cached()
        store = SQLiteVibeStore(db_path=str(tmp_path / "vibes.db"))
        store.upsert("punk", [0.1, 0.2], AXES, NEIGHBORS)
        llm = FakeLLM(text="  Loud, fast and unbothered.  ")
        queue = NarrationQueue(llm, cache, store)

        narrative = await queue.process(NarrationJob("punk", AXES, NEIGHBORS))

        assert narrative == "Loud, fast and unbothered."
        assert (await cache.get("punk")).narrative == narrative
        assert store.get("punk")["narrative"] == narrative
        assert llm.calls[0]["temperature"] == 0.8
        assert queue.stats["completed"] == 1

    @pytest.mark.asyncio
    async def test_blank_response_uses_fallback(self):
        cache = await _cached()
        queue = NarrationQueue(FakeLLM(text="   "), cache)
        narrative = await queue.process(NarrationJob("punk", AXES, NEIGHBORS))
        assert narrative == fallback_narrative("punk")
        assert narrative == '"punk" has a unique vibe that defies simple description.'

    @pytest.mark.asyncio
    async def test_failure_is_counted_not_raised(self):
        cache = await _cached()
        queue = NarrationQueue(FakeLLM(error=ProviderError("quota")), cache)
        assert await queue.process(NarrationJob("punk", AXES, NEIGHBORS)) is None
        assert queue.stats["failed"] == 1
        assert (await cache.get("punk")).narrative is None

    @pytest.mark.asyncio
    async def test_full_queue_drops(self):
        queue = NarrationQueue(FakeLLM(), ResultCache(), max_pending=1)
        assert queue.submit("punk", AXES, NEIGHBORS) is True
        assert queue.submit("jazz", AXES, NEIGHBORS) is False
        assert queue.stats["dropped"] == 1

    @pytest.mark.asyncio
    async def test_worker_drains_queue(self):
        cache = await _cached()
        await cache.put("jazz", CacheEntry(term="jazz", axes=AXES))
        queue = NarrationQueue(FakeLLM(), cache)
        queue.start()
        assert queue.running

        queue.submit("punk", AXES, NEIGHBORS)
        queue.submit("jazz", AXES, [])
        await queue.drain()

        assert queue.stats["completed"] == 2
        assert queue.stats["pending"] == 0
        assert (await cache.get("jazz")).narrative == "A bright, restless word."

        await queue.shutdown()
        assert not queue.running

    @pytest.mark.asyncio
    async def test_worker_survives_failures(self):
        cache = await _cached()
        queue = NarrationQueue(FakeLLM(error=RuntimeError("boom")), cache)
        queue.start()
        queue.submit("punk", AXES, NEIGHBORS)
        queue.submit("punk", AXES, NEIGHBORS)
        await queue.drain()
        assert queue.stats["failed"] == 2
        assert queue.running
        await queue.shutdown()
