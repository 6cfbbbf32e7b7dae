"""
VibeScope — Semantic Vibe Scoring Engine

Projects text embeddings onto bipolar semantic axes, finds nearby
lexicon terms, and scores longer text for propaganda techniques.

Public API:
  - score_axes:          Cosine projection of an embedding onto every axis
  - AnchorCache:         TTL cache of axis pole embeddings
  - detect / aggregate:  Propaganda pattern detection and scoring
  - analyze_propaganda:  detect + aggregate in one call
  - ResultCache:         TTL + size-bounded word result cache
  - RateLimiter:         Fixed-window per-client, per-endpoint admission
  - VibeEngine:          Orchestrates word, sentence and compare scoring

Usage:
    from vibescope import analyze_propaganda
    result = analyze_propaganda("Everyone knows this is the only way.")
"""

__version__ = "1.0.0"

from vibescope.axes import AXES, Axis, AnchorPair, AnchorCache, score_axes
from vibescope.cache import CacheEntry, ResultCache
from vibescope.engine import VibeEngine, WordVibe, SentenceVibe, Comparison
from vibescope.errors import (
    VibeError,
    ConfigurationError,
    ProviderError,
    ValidationError,
    RateLimitError,
)
from vibescope.llm import EmbeddingProvider, LLMProvider
from vibescope.narration import NarrationQueue
from vibescope.neighbors import Neighbor, NeighborStore, LexiconIndex
from vibescope.propaganda import PROPAGANDA_PATTERNS, PropagandaPattern, detect
from vibescope.rate_limit import RateLimiter, EndpointLimit, RateLimitDecision
from vibescope.scorer import ManipulationResult, aggregate, analyze_propaganda

__all__ = [
    "AXES",
    "Axis",
    "AnchorPair",
    "AnchorCache",
    "score_axes",
    "CacheEntry",
    "ResultCache",
    "VibeEngine",
    "WordVibe",
    "SentenceVibe",
    "Comparison",
    "VibeError",
    "ConfigurationError",
    "ProviderError",
    "ValidationError",
    "RateLimitError",
    "EmbeddingProvider",
    "LLMProvider",
    "NarrationQueue",
    "Neighbor",
    "NeighborStore",
    "LexiconIndex",
    "PROPAGANDA_PATTERNS",
    "PropagandaPattern",
    "detect",
    "RateLimiter",
    "EndpointLimit",
    "RateLimitDecision",
    "ManipulationResult",
    "aggregate",
    "analyze_propaganda",
]
