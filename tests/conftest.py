"""
Shared test doubles — deterministic embedder, scripted LLM, fake clock.

No network calls anywhere in the suite.
"""

from __future__ import annotations

import hashlib
from typing import Optional

import pytest

from vibescope.axes import AnchorCache
from vibescope.cache import ResultCache
from vibescope.engine import VibeEngine
from vibescope.errors import ConfigurationError, ProviderError
from vibescope.llm import EmbeddingProvider, LLMProvider
from vibescope.neighbors import LexiconIndex

DIM = 8


def hashed_vector(text: str, dim: int = DIM) -> list[float]:
    """Stable pseudo-embedding: sha256 bytes scaled to [-1, 1]."""
    digest = hashlib.sha256(text.encode("utf-8")).digest()
    return [(digest[i] / 255) * 2 - 1 for i in range(dim)]


class FakeEmbedder(EmbeddingProvider):
    """Deterministic embedder. Records every call."""

    def __init__(
        self,
        vectors: Optional[dict[str, list[float]]] = None,
        configured: bool = True,
        fail_on: tuple[str, ...] = (),
        dim: int = DIM,
    ):
        self.vectors = dict(vectors or {})
        self.configured = configured
        self.fail_on = set(fail_on)
        self.dim = dim
        self.calls: list[str] = []

    def check_configured(self) -> None:
        if not self.configured:
            raise ConfigurationError("GEMINI_API_KEY not set.")

    async def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        if text in self.fail_on:
            raise ProviderError(f"embedding failed for '{text}'")
        if text in self.vectors:
            return list(self.vectors[text])
        return hashed_vector(text, self.dim)


class FakeLLM(LLMProvider):
    """Returns a scripted narrative, or raises if ``error`` is set."""

    def __init__(self, text: str = "A bright, restless word.", error: Optional[Exception] = None):
        self.text = text
        self.error = error
        self.calls: list[dict] = []

    async def generate(self, prompt, system_instruction=None, temperature=0.7, max_output_tokens=None):
        self.calls.append({
            "prompt": prompt,
            "temperature": temperature,
            "max_output_tokens": max_output_tokens,
        })
        if self.error is not None:
            raise self.error
        return self.text


class FailingNeighbors(LexiconIndex):
    """Neighbor store whose lookups always fail."""

    async def nearest_neighbors(self, embedding, limit, min_frequency=None):
        raise ProviderError("lexicon unavailable")


class FakeClock:
    """Manually advanced clock for TTL and window tests."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


LEXICON_TERMS = ("rebel", "anarchy", "music", "leather", "calm", "garden")


def build_lexicon() -> LexiconIndex:
    index = LexiconIndex()
    for i, term in enumerate(LEXICON_TERMS):
        index.add(term, hashed_vector(term), frequency=1.0 / (i + 1))
    return index


def build_engine(embedder: Optional[FakeEmbedder] = None, **kwargs) -> VibeEngine:
    embedder = embedder or FakeEmbedder()
    kwargs.setdefault("neighbors", build_lexicon())
    kwargs.setdefault("neighbor_limit", 3)
    return VibeEngine(
        embedder=embedder,
        anchors=AnchorCache(embedder),
        cache=ResultCache(),
        **kwargs,
    )


@pytest.fixture
def embedder():
    return FakeEmbedder()


@pytest.fixture
def engine(embedder):
    return build_engine(embedder)


@pytest.fixture
def clock():
    return FakeClock()
