"""
Semantic Axes — Anchors and Cosine Projection

A term's vibe is its embedding projected onto a fixed set of bipolar
axes. Each axis is defined by two pole words; the direction of the
axis is the difference of the two pole embeddings, and the score is
the cosine between the term and that direction, clamped to [-1, 1].

    +1  → leans toward the positive pole
     0  → neutral / unrelated to the axis
    -1  → leans toward the negative pole

The pole embeddings ("anchors") are expensive to compute (two provider
calls per axis), so AnchorCache holds them for a TTL and refreshes them
single-flight.
"""

from __future__ import annotations

import asyncio
import math
import time
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

from vibescope.errors import ProviderError, ValidationError
from vibescope.llm import EmbeddingProvider
from vibescope.logging import get_logger

logger = get_logger("axes")


# ============================================================
# AXIS DEFINITIONS (static, process-wide)
# ============================================================

@dataclass(frozen=True)
class Axis:
    """A bipolar semantic dimension."""
    key: str
    label: str
    pos: str   # positive pole word
    neg: str   # negative pole word


AXES: tuple[Axis, ...] = (
    Axis("masculine_feminine", "Gender (masculine ↔ feminine)", "masculine", "feminine"),
    Axis("concrete_abstract", "Tangibility (concrete ↔ abstract)", "concrete", "abstract"),
    Axis("active_passive", "Energy (active ↔ passive)", "active", "passive"),
    Axis("positive_negative", "Valence (positive ↔ negative)", "positive", "negative"),
    Axis("serious_playful", "Tone (serious ↔ playful)", "serious", "playful"),
    Axis("complex_simple", "Complexity (complex ↔ simple)", "complex", "simple"),
    Axis("intense_mild", "Intensity (intense ↔ mild)", "intense", "mild"),
    Axis("natural_artificial", "Origin (natural ↔ artificial)", "natural", "artificial"),
    Axis("private_public", "Visibility (private ↔ public)", "private", "public"),
    Axis("high_status_low_status", "Status (high-status ↔ low-status)", "high-status", "low-status"),
    Axis("ordered_chaotic", "Structure (ordered ↔ chaotic)", "ordered", "chaotic"),
    Axis("future_past", "Time (future ↔ past)", "future", "past"),
)


@dataclass(frozen=True)
class AnchorPair:
    """Embeddings of an axis's two poles."""
    axis_key: str
    pos_embedding: tuple[float, ...]
    neg_embedding: tuple[float, ...]


# ============================================================
# VECTOR MATH
# ============================================================

def _dot(a: Sequence[float], b: Sequence[float]) -> float:
    return math.fsum(x * y for x, y in zip(a, b))


def _norm(a: Sequence[float]) -> float:
    return math.sqrt(math.fsum(x * x for x in a))


def _check_lengths(a: Sequence[float], b: Sequence[float]) -> None:
    if len(a) != len(b):
        raise ValueError(f"Embedding length mismatch: {len(a)} != {len(b)}")


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine of the angle between a and b; 0.0 when either is a zero vector."""
    _check_lengths(a, b)
    mag = _norm(a) * _norm(b)
    if mag == 0:
        return 0.0
    return max(-1.0, min(1.0, _dot(a, b) / mag))


def vibe_distance(a: Sequence[float], b: Sequence[float]) -> float:
    """1 - cosine, scaled to [0, 2]. 0 = identical direction, 2 = opposite."""
    return 2 * (1 - cosine_similarity(a, b))


def euclidean_distance(a: Sequence[float], b: Sequence[float]) -> float:
    _check_lengths(a, b)
    return math.sqrt(math.fsum((x - y) ** 2 for x, y in zip(a, b)))


def validate_embedding(embedding: Sequence[float]) -> None:
    """Reject empty vectors and NaN / infinite components."""
    if not embedding:
        raise ValidationError("Embedding is empty")
    if not all(isinstance(v, (int, float)) and math.isfinite(v) for v in embedding):
        raise ValidationError("Embedding contains NaN or non-finite values")


# ============================================================
# AXIS SCORER
# ============================================================

def score_axes(
    term_embedding: Sequence[float],
    anchors: dict[str, AnchorPair],
    axes: Sequence[Axis] = AXES,
) -> dict[str, float]:
    """
    Project a term embedding onto every configured axis.

    Returns a dict in axis declaration order, one score per axis,
    each clamped to [-1, 1]. A zero-magnitude term or pole difference
    scores 0 for that axis.

    Raises:
        ValidationError: the term embedding holds NaN / inf values.
        ValueError: an axis has no anchors, or vector lengths differ.
    """
    validate_embedding(term_embedding)
    term_norm = _norm(term_embedding)

    scores: dict[str, float] = {}
    for axis in axes:
        pair = anchors.get(axis.key)
        if pair is None:
            raise ValueError(f"No anchors for axis '{axis.key}'")
        _check_lengths(term_embedding, pair.pos_embedding)
        _check_lengths(pair.pos_embedding, pair.neg_embedding)

        diff = [p - n for p, n in zip(pair.pos_embedding, pair.neg_embedding)]
        diff_norm = _norm(diff)
        if term_norm == 0 or diff_norm == 0:
            scores[axis.key] = 0.0
            continue

        cos = _dot(term_embedding, diff) / (term_norm * diff_norm)
        scores[axis.key] = max(-1.0, min(1.0, cos))

    return scores


# ============================================================
# ANCHOR CACHE
# ============================================================

class AnchorCache:
    """
    TTL cache of AnchorPairs for every configured axis.

    get_anchors() returns fresh anchors, computing them on first use or
    after the TTL has elapsed. Concurrent callers during a refresh wait
    on the same lock and reuse its result instead of re-embedding.
    """

    def __init__(
        self,
        embedder: EmbeddingProvider,
        ttl_seconds: float = 3600,
        axes: Sequence[Axis] = AXES,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._embedder = embedder
        self._ttl = ttl_seconds
        self._axes = tuple(axes)
        self._clock = clock
        self._anchors: Optional[dict[str, AnchorPair]] = None
        self._computed_at: float = 0.0
        self._lock = asyncio.Lock()
        self.refresh_count = 0

    @property
    def axes(self) -> tuple[Axis, ...]:
        return self._axes

    def _is_fresh(self) -> bool:
        return (
            self._anchors is not None
            and self._clock() - self._computed_at <= self._ttl
        )

    async def get_anchors(self) -> dict[str, AnchorPair]:
        if self._is_fresh():
            return self._anchors  # type: ignore[return-value]

        async with self._lock:
            # Another caller may have refreshed while we waited
            if self._is_fresh():
                return self._anchors  # type: ignore[return-value]
            anchors = await self._compute()
            self._anchors = anchors
            self._computed_at = self._clock()
            self.refresh_count += 1
            return anchors

    async def _compute(self) -> dict[str, AnchorPair]:
        start = self._clock()
        words = [w for axis in self._axes for w in (axis.pos, axis.neg)]
        vectors = await asyncio.gather(*(self._embedder.embed(w) for w in words))

        dim = len(vectors[0]) if vectors else 0
        for word, vec in zip(words, vectors):
            if len(vec) != dim:
                raise ProviderError(
                    f"Anchor embedding for '{word}' has length {len(vec)}, expected {dim}"
                )

        anchors: dict[str, AnchorPair] = {}
        for i, axis in enumerate(self._axes):
            anchors[axis.key] = AnchorPair(
                axis_key=axis.key,
                pos_embedding=tuple(vectors[2 * i]),
                neg_embedding=tuple(vectors[2 * i + 1]),
            )

        logger.info(
            "Anchor embeddings refreshed",
            extra={
                "axes_count": len(anchors),
                "duration_ms": round((self._clock() - start) * 1000, 1),
            },
        )
        return anchors

    def clear(self) -> None:
        self._anchors = None
        self._computed_at = 0.0
