"""
Provider Interfaces — Embeddings and Text Generation

All external model calls go through these interfaces. Swap providers
by changing VIBESCOPE_PROVIDER in env.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional


class EmbeddingProvider(ABC):
    """Abstract base for text → vector providers.

    Implementations perform no caching and no retries. Failures are
    raised as ProviderError; missing credentials as ConfigurationError.
    """

    @abstractmethod
    async def embed(self, text: str) -> list[float]:
        """Return a single embedding vector for ``text``."""
        ...

    def check_configured(self) -> None:
        """Raise ConfigurationError if the provider cannot make calls."""
        return None


class LLMProvider(ABC):
    """Abstract base for text generation providers."""

    @abstractmethod
    async def generate(
        self,
        prompt: str,
        system_instruction: Optional[str] = None,
        temperature: float = 0.7,
        max_output_tokens: Optional[int] = None,
    ) -> str:
        """Generate a text response from the LLM."""
        ...
