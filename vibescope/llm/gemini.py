"""
Gemini Provider — Google Gemini API implementation.

Uses the google.genai SDK. Client is lazily initialized —
the app loads without an API key and only fails with a
ConfigurationError on the first call that needs the network.

Features:
- Embeddings via models.embed_content (axis poles, terms, lexicon)
- Short narrative generation via models.generate_content
- Every call bounded by a timeout; a timeout is a ProviderError
- Circuit breaker: after consecutive failures, fail fast for 60s

No retries happen here. Callers decide retry policy.
"""

from __future__ import annotations

import asyncio
import logging
import os
import time
from typing import Optional

import httpx
from google import genai
from google.genai import errors, types

from vibescope.errors import ConfigurationError, ProviderError
from vibescope.llm import EmbeddingProvider, LLMProvider

logger = logging.getLogger("vibescope.llm.gemini")

DEFAULT_EMBEDDING_MODEL = "gemini-embedding-001"
DEFAULT_NARRATION_MODEL = "gemini-2.5-flash"

# Circuit breaker settings
_CB_FAILURE_THRESHOLD = 3   # Open after this many consecutive failures
_CB_RECOVERY_TIMEOUT = 60   # Seconds before trying again (half-open)


class CircuitBreaker:
    """Simple circuit breaker: closed → open → half-open → closed.

    When open, calls raise ProviderError immediately so the request
    fails fast instead of waiting for the provider to time out.
    """

    def __init__(
        self,
        failure_threshold: int = _CB_FAILURE_THRESHOLD,
        recovery_timeout: float = _CB_RECOVERY_TIMEOUT,
    ):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self._failures = 0
        self._last_failure_time: float = 0
        self._state = "closed"  # closed | open | half-open

    @property
    def state(self) -> str:
        if self._state == "open":
            if time.monotonic() - self._last_failure_time >= self.recovery_timeout:
                self._state = "half-open"
        return self._state

    def record_success(self) -> None:
        self._failures = 0
        self._state = "closed"

    def record_failure(self) -> None:
        self._failures += 1
        self._last_failure_time = time.monotonic()
        if self._failures >= self.failure_threshold:
            self._state = "open"
            logger.warning(
                "Circuit breaker OPEN — %d consecutive provider failures. "
                "Failing fast for %ds.",
                self._failures, self.recovery_timeout,
            )

    @property
    def is_open(self) -> bool:
        return self.state == "open"


class GeminiProvider(EmbeddingProvider, LLMProvider):
    """Google Gemini embeddings + narration with timeout and circuit breaker."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        embedding_model: Optional[str] = None,
        narration_model: Optional[str] = None,
        output_dimensionality: Optional[int] = None,
        timeout: float = 30.0,
    ):
        self._api_key = api_key or os.getenv("GEMINI_API_KEY", "")
        self._embedding_model = embedding_model or DEFAULT_EMBEDDING_MODEL
        self._narration_model = narration_model or DEFAULT_NARRATION_MODEL
        self._output_dimensionality = output_dimensionality
        self._timeout = timeout
        self._client: Optional[genai.Client] = None
        self.circuit_breaker = CircuitBreaker()

    def check_configured(self) -> None:
        if not self._api_key:
            raise ConfigurationError(
                "GEMINI_API_KEY not set. Get one from "
                "https://aistudio.google.com/apikey"
            )

    def _get_client(self) -> genai.Client:
        if self._client is None:
            self.check_configured()
            self._client = genai.Client(api_key=self._api_key)
        return self._client

    async def _call(self, what: str, coro_factory):
        """Run one provider call under the breaker and the timeout."""
        if self.circuit_breaker.is_open:
            raise ProviderError(
                "Embedding provider circuit breaker is open — too many "
                "consecutive failures. Try again shortly."
            )
        client = self._get_client()
        try:
            result = await asyncio.wait_for(coro_factory(client), timeout=self._timeout)
        except asyncio.TimeoutError as e:
            self.circuit_breaker.record_failure()
            raise ProviderError(
                f"Gemini {what} timed out after {self._timeout:g}s"
            ) from e
        except errors.APIError as e:
            self.circuit_breaker.record_failure()
            raise ProviderError(
                f"Gemini {what} failed with status {e.code}: {e.message}"
            ) from e
        except (httpx.HTTPError, OSError) as e:
            self.circuit_breaker.record_failure()
            raise ProviderError(f"Gemini {what} unreachable: {e}") from e
        self.circuit_breaker.record_success()
        return result

    async def embed(self, text: str) -> list[float]:
        config = types.EmbedContentConfig(task_type="SEMANTIC_SIMILARITY")
        if self._output_dimensionality:
            config.output_dimensionality = self._output_dimensionality

        response = await self._call(
            "embedding",
            lambda client: client.aio.models.embed_content(
                model=self._embedding_model,
                contents=text,
                config=config,
            ),
        )
        if not response.embeddings or not response.embeddings[0].values:
            raise ProviderError("Gemini embedding response contained no vector")
        return list(response.embeddings[0].values)

    async def generate(
        self,
        prompt: str,
        system_instruction: Optional[str] = None,
        temperature: float = 0.7,
        max_output_tokens: Optional[int] = None,
    ) -> str:
        config = types.GenerateContentConfig(
            temperature=temperature,
            system_instruction=system_instruction,
            max_output_tokens=max_output_tokens,
        )
        response = await self._call(
            "generation",
            lambda client: client.aio.models.generate_content(
                model=self._narration_model,
                contents=prompt,
                config=config,
            ),
        )
        return response.text or ""
