"""
Vibe Engine — Scoring Orchestrator

Coordinates the scoring modes:
  - word:     embedding → axis projection + lexicon neighbors. Cached.
  - sentence: propaganda detection + heuristic axes. No external calls.
  - compare:  cached or fresh embeddings for several terms → distance
              matrix + axis overlap (+ narrative when narration is on).

Order of operations for a word:
  validate → result cache → persistent store → provider config check
  → embed → anchors → score → neighbors → cache → store → narration

Validation and configuration errors are raised before any external
call. Provider errors propagate, except a failed neighbor lookup,
which degrades to an empty neighbor list (the result is marked
partial and is not cached).
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Optional, Sequence

from vibescope.axes import AnchorCache, score_axes, validate_embedding, vibe_distance
from vibescope.cache import CacheEntry, ResultCache
from vibescope.errors import ProviderError, ValidationError
from vibescope.llm import EmbeddingProvider
from vibescope.logging import get_logger
from vibescope.narration import NarrationQueue
from vibescope.neighbors import Neighbor, NeighborStore
from vibescope.scorer import ManipulationResult, analyze_propaganda
from vibescope.sentence import sentence_axes
from vibescope.store import PersistentStore
from vibescope.validation import resolve_mode, validate_term, validate_text

logger = get_logger("engine")

MAX_COMPARE_TERMS = 10


@dataclass
class WordVibe:
    term: str
    axes: dict[str, float]
    neighbors: list[Neighbor] = field(default_factory=list)
    narrative: Optional[str] = None
    cached: bool = False
    partial: bool = False

    def to_dict(self) -> dict:
        return {
            "term": self.term,
            "axes": self.axes,
            "neighbors": [n.to_dict() for n in self.neighbors],
            "narrative": self.narrative,
            "cached": self.cached,
            "partial": self.partial,
        }


@dataclass
class SentenceVibe:
    text: str
    axes: dict[str, float]
    propaganda: ManipulationResult

    def to_dict(self) -> dict:
        return {
            "text": self.text,
            "axes": self.axes,
            "propaganda": self.propaganda.to_dict(),
        }


@dataclass
class Comparison:
    terms: list[str]
    results: list[WordVibe]
    distance_matrix: dict[str, dict[str, float]]
    axes_overlap: dict[str, float]
    narrative: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "terms": self.terms,
            "results": [r.to_dict() for r in self.results],
            "distance_matrix": self.distance_matrix,
            "axes_overlap": self.axes_overlap,
            "narrative": self.narrative,
        }


class VibeEngine:
    """Stateful scoring engine. Build once per process, inject everywhere."""

    def __init__(
        self,
        embedder: EmbeddingProvider,
        anchors: AnchorCache,
        cache: ResultCache,
        neighbors: Optional[NeighborStore] = None,
        store: Optional[PersistentStore] = None,
        narrator: Optional[NarrationQueue] = None,
        neighbor_limit: int = 12,
        neighbor_min_frequency: Optional[float] = None,
    ):
        self.embedder = embedder
        self.anchors = anchors
        self.cache = cache
        self.neighbors = neighbors
        self.store = store
        self.narrator = narrator
        self.neighbor_limit = neighbor_limit
        self.neighbor_min_frequency = neighbor_min_frequency

    # ------------------------------------------------------------
    # WORD
    # ------------------------------------------------------------

    async def score_word(self, raw_term: str) -> WordVibe:
        term = validate_term(raw_term)

        entry = await self._cached_entry(term)
        if entry is not None:
            return self._from_entry(entry)

        self.embedder.check_configured()
        embedding = await self.embedder.embed(term)
        return await self._score_embedding(term, embedding)

    async def _cached_entry(self, term: str) -> Optional[CacheEntry]:
        """Result cache first, then the persistent store (which refills the cache)."""
        entry = await self.cache.get(term)
        if entry is None:
            entry = self._load_persisted(term)
            if entry is None:
                return None
            entry = await self.cache.put(term, entry)
        logger.debug("Result cache hit", extra={"term": term, "cached": True})
        return entry

    @staticmethod
    def _from_entry(entry: CacheEntry) -> WordVibe:
        return WordVibe(
            term=entry.term, axes=dict(entry.axes), neighbors=list(entry.neighbors),
            narrative=entry.narrative, cached=True,
        )

    async def _score_embedding(self, term: str, embedding: Sequence[float]) -> WordVibe:
        """Axes + neighbors for a freshly embedded term; caches complete results."""
        start = time.monotonic()
        validate_embedding(embedding)
        anchors = await self.anchors.get_anchors()
        try:
            axes = score_axes(embedding, anchors, self.anchors.axes)
        except ValueError as e:
            raise ProviderError(f"Embedding incompatible with axis anchors: {e}") from e

        neighbors, partial = await self._lookup_neighbors(term, embedding)

        if not partial:
            await self.cache.put(term, CacheEntry(
                term=term, axes=axes, neighbors=neighbors, embedding=tuple(embedding),
            ))
            self._persist(term, embedding, axes, neighbors)
            if self.narrator is not None:
                self.narrator.submit(term, axes, neighbors)

        logger.info(
            "Word scored",
            extra={
                "term": term,
                "cached": False,
                "partial": partial,
                "duration_ms": round((time.monotonic() - start) * 1000, 1),
            },
        )
        return WordVibe(term=term, axes=axes, neighbors=neighbors, partial=partial)

    async def _lookup_neighbors(
        self, term: str, embedding: Sequence[float],
    ) -> tuple[list[Neighbor], bool]:
        if self.neighbors is None:
            return [], False
        try:
            found = await self.neighbors.nearest_neighbors(
                embedding, self.neighbor_limit, self.neighbor_min_frequency,
            )
        except ProviderError as e:
            logger.warning(
                "Neighbor lookup failed — returning axes only",
                extra={"term": term, "error": e.message, "kind": e.kind},
            )
            return [], True
        return found, False

    def _load_persisted(self, term: str) -> Optional[CacheEntry]:
        if self.store is None:
            return None
        try:
            row = self.store.get(term)
        except ProviderError as e:
            logger.warning(
                "Persistent store read failed — treating as a miss",
                extra={"term": term, "error": e.message, "kind": e.kind},
            )
            return None
        if row is None:
            return None
        return CacheEntry(
            term=term, axes=row["axes"], neighbors=row["neighbors"], narrative=row["narrative"],
            embedding=tuple(row["embedding"]),
        )

    def _persist(self, term, embedding, axes, neighbors) -> None:
        if self.store is None:
            return
        try:
            self.store.upsert(term, embedding, axes, neighbors)
        except Exception as e:
            logger.warning(
                "Persistent store write failed",
                extra={"term": term, "error": str(e), "error_type": type(e).__name__},
            )

    # ------------------------------------------------------------
    # SENTENCE
    # ------------------------------------------------------------

    def score_sentence(self, raw_text: str) -> SentenceVibe:
        text = validate_text(raw_text)
        propaganda = analyze_propaganda(text)
        axes = sentence_axes(text, propaganda.overall_manipulation, self.anchors.axes)
        logger.info(
            "Sentence scored",
            extra={
                "overall_manipulation": round(propaganda.overall_manipulation, 2),
                "techniques": propaganda.techniques,
            },
        )
        return SentenceVibe(text=text, axes=axes, propaganda=propaganda)

    async def analyze(self, text: str, mode: str = "auto") -> WordVibe | SentenceVibe:
        resolved = resolve_mode(validate_text(text), mode)
        if resolved == "sentence":
            return self.score_sentence(text)
        return await self.score_word(text)

    # ------------------------------------------------------------
    # COMPARE
    # ------------------------------------------------------------

    async def compare(self, raw_terms: Sequence[str]) -> Comparison:
        terms: list[str] = []
        for raw in raw_terms:
            term = validate_term(raw)
            if term not in terms:
                terms.append(term)
        if len(terms) < 2:
            raise ValidationError("Provide at least 2 distinct terms")
        if len(terms) > MAX_COMPARE_TERMS:
            raise ValidationError(f"Compare at most {MAX_COMPARE_TERMS} terms")

        entries = await asyncio.gather(*(self._cached_entry(t) for t in terms))
        # Cached results carry their embedding; only the rest go to the provider.
        missing = [t for t, e in zip(terms, entries) if e is None or e.embedding is None]
        fresh: dict[str, Sequence[float]] = {}
        if missing:
            self.embedder.check_configured()
            vectors = await asyncio.gather(*(self.embedder.embed(t) for t in missing))
            fresh = dict(zip(missing, vectors))
            for vector in vectors:
                validate_embedding(vector)

        async def _vibe(term: str, entry: Optional[CacheEntry]) -> WordVibe:
            if entry is not None:
                return self._from_entry(entry)
            return await self._score_embedding(term, fresh[term])

        results = await asyncio.gather(*(_vibe(t, e) for t, e in zip(terms, entries)))
        embeddings = [
            fresh[t] if t in fresh else e.embedding for t, e in zip(terms, entries)
        ]

        matrix: dict[str, dict[str, float]] = {}
        for i, a in enumerate(terms):
            matrix[a] = {}
            for j, b in enumerate(terms):
                matrix[a][b] = 0.0 if i == j else vibe_distance(embeddings[i], embeddings[j])

        overlap: dict[str, float] = {}
        first = results[0].axes
        for axis_key in first:
            values = [r.axes[axis_key] for r in results]
            variance = sum((v - values[0]) ** 2 for v in values) / len(values)
            overlap[axis_key] = 1 - min(variance, 1.0)

        narrative = None
        if self.narrator is not None:
            average = sum(matrix[terms[0]][t] for t in terms[1:]) / (len(terms) - 1)
            narrative = await self.narrator.narrate_comparison(terms, average)

        return Comparison(
            terms=terms, results=list(results), distance_matrix=matrix,
            axes_overlap=overlap, narrative=narrative,
        )

    # ------------------------------------------------------------
    # LIFECYCLE
    # ------------------------------------------------------------

    async def shutdown(self) -> None:
        if self.narrator is not None:
            await self.narrator.shutdown()
        await self.cache.clear()
        self.anchors.clear()
