"""
Neighbor Lookup — nearest terms in the lexicon.

The lexicon search itself is an external collaborator. This module
defines its contract (NeighborStore) and a brute-force in-memory
implementation used for small lexicons and tests.

An empty result is a normal outcome (e.g. an empty lexicon), not an error.
"""

from __future__ import annotations

import heapq
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Sequence

from vibescope.axes import euclidean_distance


@dataclass(frozen=True)
class Neighbor:
    """A lexicon term and its distance from the query (0 = identical)."""
    term: str
    distance: float

    def __post_init__(self):
        if self.distance < 0:
            raise ValueError(f"Neighbor distance must be non-negative, got {self.distance}")

    def to_dict(self) -> dict:
        return {"term": self.term, "distance": self.distance}

    @classmethod
    def from_dict(cls, data: dict) -> "Neighbor":
        return cls(term=data["term"], distance=float(data["distance"]))


class NeighborStore(ABC):
    """Nearest-neighbor search over a term lexicon."""

    @abstractmethod
    async def nearest_neighbors(
        self,
        embedding: Sequence[float],
        limit: int,
        min_frequency: Optional[float] = None,
    ) -> list[Neighbor]:
        """Return up to ``limit`` neighbors, closest first."""
        ...


def rank_neighbors(
    embedding: Sequence[float],
    candidates,
    limit: int,
) -> list[Neighbor]:
    """L2-rank (term, vector) candidates against ``embedding``."""
    if limit <= 0:
        return []
    scored = (
        (euclidean_distance(embedding, vec), term)
        for term, vec in candidates
        if len(vec) == len(embedding)
    )
    return [Neighbor(term=term, distance=dist) for dist, term in heapq.nsmallest(limit, scored)]


class LexiconIndex(NeighborStore):
    """In-memory lexicon with brute-force L2 search."""

    def __init__(self):
        self._entries: dict[str, tuple[tuple[float, ...], float]] = {}

    def add(self, term: str, embedding: Sequence[float], frequency: float = 1.0) -> None:
        self._entries[term] = (tuple(embedding), frequency)

    def __len__(self) -> int:
        return len(self._entries)

    async def nearest_neighbors(
        self,
        embedding: Sequence[float],
        limit: int,
        min_frequency: Optional[float] = None,
    ) -> list[Neighbor]:
        candidates = (
            (term, vec)
            for term, (vec, freq) in self._entries.items()
            if min_frequency is None or freq >= min_frequency
        )
        return rank_neighbors(embedding, candidates, limit)
