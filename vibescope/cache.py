"""
Vibe Result Cache

In-memory cache of word-scoring results.
Key = normalized term. TTL = optional (None keeps entries until
evicted or invalidated). Capacity-bounded: inserting past
max_entries evicts the oldest entries first.

Prevents repeat embedding + neighbor calls for terms already scored.
Guarded by an asyncio lock.

Usage:
    cache = ResultCache(ttl_seconds=None, max_entries=5000)
    cached = await cache.get(term)
    if cached:
        return cached
    entry = CacheEntry(term=term, axes=axes, neighbors=neighbors)
    await cache.put(term, entry)
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field, replace
from typing import Callable, Optional

from vibescope.logging import get_logger
from vibescope.neighbors import Neighbor
from vibescope.validation import normalize_term

logger = get_logger("cache")


@dataclass(frozen=True)
class CacheEntry:
    """A computed word vibe."""
    term: str
    axes: dict[str, float]
    neighbors: list[Neighbor] = field(default_factory=list)
    narrative: Optional[str] = None
    embedding: Optional[tuple[float, ...]] = None
    inserted_at: float = 0.0


class ResultCache:
    """In-memory term → CacheEntry cache with TTL and size eviction."""

    def __init__(
        self,
        ttl_seconds: Optional[float] = None,
        max_entries: int = 5000,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self._cache: dict[str, CacheEntry] = {}
        self._ttl = ttl_seconds
        self._max_entries = max_entries
        self._clock = clock
        self._lock = asyncio.Lock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def _expired(self, entry: CacheEntry) -> bool:
        return self._ttl is not None and self._clock() - entry.inserted_at > self._ttl

    async def get(self, term: str) -> Optional[CacheEntry]:
        """Return the cached entry if it exists and has not expired."""
        key = normalize_term(term)
        async with self._lock:
            entry = self._cache.get(key)
            if entry is None:
                self._misses += 1
                return None

            if self._expired(entry):
                del self._cache[key]
                self._misses += 1
                return None

            self._hits += 1
            return entry

    async def put(self, term: str, entry: CacheEntry) -> CacheEntry:
        """Store an entry, stamping its insertion time. Evicts oldest if over max."""
        key = normalize_term(term)
        stored = replace(entry, term=key, inserted_at=self._clock())
        async with self._lock:
            self._cache.pop(key, None)
            self._cache[key] = stored
            self._evict_over_capacity()
        return stored

    async def set_narrative(self, term: str, narrative: str) -> bool:
        """Attach a narrative to an existing entry. Returns False on miss."""
        key = normalize_term(term)
        async with self._lock:
            entry = self._cache.get(key)
            if entry is None or self._expired(entry):
                return False
            self._cache[key] = replace(entry, narrative=narrative)
            return True

    async def invalidate(self, term: str) -> None:
        """Remove a specific entry."""
        key = normalize_term(term)
        async with self._lock:
            self._cache.pop(key, None)

    async def clear(self) -> None:
        async with self._lock:
            self._cache.clear()
            self._hits = 0
            self._misses = 0
            self._evictions = 0

    def _evict_over_capacity(self) -> None:
        overflow = len(self._cache) - self._max_entries
        if overflow <= 0:
            return
        # Snapshot before deleting
        oldest = sorted(self._cache.items(), key=lambda kv: kv[1].inserted_at)[:overflow]
        for key, _ in oldest:
            del self._cache[key]
        self._evictions += overflow
        logger.debug(
            "Result cache evicted oldest entries",
            extra={"evicted": overflow, "entries": len(self._cache)},
        )

    def __len__(self) -> int:
        return len(self._cache)

    @property
    def stats(self) -> dict:
        """Cache hit/miss statistics."""
        total = self._hits + self._misses
        return {
            "entries": len(self._cache),
            "max_entries": self._max_entries,
            "hits": self._hits,
            "misses": self._misses,
            "evictions": self._evictions,
            "hit_rate": round(self._hits / total, 3) if total > 0 else 0.0,
        }
