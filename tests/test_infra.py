"""
Tests for logging, error taxonomy, validation and the Gemini provider wrapper.
"""

import asyncio
import json
import logging
from types import SimpleNamespace

import pytest

from vibescope.errors import (
    ConfigurationError,
    ProviderError,
    RateLimitError,
    ValidationError,
    VibeError,
)


class TestLogging:
    """Structured logging tests."""

    def _record(self, msg="Word scored"):
        return logging.LogRecord(
            name="vibescope.test",
            level=logging.INFO,
            pathname="test.py",
            lineno=1,
            msg=msg,
            args=(),
            exc_info=None,
        )

    def test_json_formatter(self):
        from vibescope.logging import JSONFormatter

        parsed = json.loads(JSONFormatter().format(self._record("Test message")))
        assert parsed["level"] == "INFO"
        assert parsed["message"] == "Test message"
        assert parsed["logger"] == "vibescope.test"
        assert "timestamp" in parsed

    def test_json_formatter_extra_fields(self):
        from vibescope.logging import JSONFormatter

        record = self._record()
        record.term = "punk"
        record.cached = False
        record.not_whitelisted = "hidden"
        parsed = json.loads(JSONFormatter().format(record))
        assert parsed["term"] == "punk"
        assert parsed["cached"] is False
        assert "not_whitelisted" not in parsed

    def test_get_logger(self):
        from vibescope.logging import get_logger
        log = get_logger("engine")
        assert log.name == "vibescope.engine"

    def test_setup_logging_is_idempotent(self):
        from vibescope.logging import setup_logging
        setup_logging()
        root = setup_logging()
        assert root.name == "vibescope"
        assert len(root.handlers) == 1

    def test_setup_logging_text_format(self):
        from vibescope.logging import TextFormatter, setup_logging
        root = setup_logging(level="debug", fmt="text")
        assert root.level == logging.DEBUG
        assert isinstance(root.handlers[0].formatter, TextFormatter)
        setup_logging()


class TestErrors:
    """Error kinds and HTTP status mapping."""

    @pytest.mark.parametrize("cls,kind,status", [
        (ConfigurationError, "configuration_error", 503),
        (ProviderError, "provider_error", 502),
        (ValidationError, "validation_error", 400),
    ])
    def test_kinds(self, cls, kind, status):
        err = cls("something went wrong")
        assert isinstance(err, VibeError)
        assert err.to_dict() == {"kind": kind, "message": "something went wrong"}
        assert err.status_code == status

    def test_rate_limit_error_carries_reset(self):
        err = RateLimitError("slow down", reset_at=0.0, retry_after=12, limit=5)
        data = err.to_dict()
        assert data["kind"] == "rate_limited"
        assert data["retry_after"] == 12
        assert data["reset_at"].startswith("1970-01-01T00:00:00")
        assert err.status_code == 429


class TestValidation:

    def test_normalize(self):
        from vibescope.validation import normalize_term
        assert normalize_term("  Punk   ROCK ") == "punk rock"

    def test_control_characters_rejected(self):
        from vibescope.validation import validate_term, validate_text
        with pytest.raises(ValidationError):
            validate_term("pu\x00nk")
        with pytest.raises(ValidationError):
            validate_text("hello\x07 world")

    def test_unicode_allowed(self):
        from vibescope.validation import validate_term
        assert validate_term("Café") == "café"

    def test_word_length_limit(self):
        from vibescope.validation import validate_term
        with pytest.raises(ValidationError):
            validate_term("x" * 51)

    def test_text_keeps_case(self):
        from vibescope.validation import validate_text
        assert validate_text("  Trust Me.  ") == "Trust Me."

    def test_non_string_rejected(self):
        from vibescope.validation import validate_term
        with pytest.raises(ValidationError):
            validate_term(42)

    def test_resolve_mode(self):
        from vibescope.validation import resolve_mode
        assert resolve_mode("one two three", "auto") == "word"
        assert resolve_mode("one two three four", "auto") == "sentence"
        assert resolve_mode("one", "sentence") == "sentence"
        with pytest.raises(ValidationError):
            resolve_mode("one", "essay")


class TestConfig:

    def test_optional_float(self, monkeypatch):
        from vibescope.config import _optional_float
        monkeypatch.setenv("VIBESCOPE_TEST_TTL", "none")
        assert _optional_float("VIBESCOPE_TEST_TTL", "60") is None
        monkeypatch.setenv("VIBESCOPE_TEST_TTL", "90")
        assert _optional_float("VIBESCOPE_TEST_TTL", "60") == 90.0
        monkeypatch.delenv("VIBESCOPE_TEST_TTL")
        assert _optional_float("VIBESCOPE_TEST_TTL", "60") == 60.0


class TestCircuitBreaker:

    def test_opens_after_threshold(self):
        from vibescope.llm.gemini import CircuitBreaker
        cb = CircuitBreaker(failure_threshold=3, recovery_timeout=60)
        for _ in range(2):
            cb.record_failure()
        assert cb.state == "closed"
        cb.record_failure()
        assert cb.is_open

    def test_half_open_after_recovery(self):
        from vibescope.llm.gemini import CircuitBreaker
        cb = CircuitBreaker(failure_threshold=1, recovery_timeout=0)
        cb.record_failure()
        assert cb.state == "half-open"
        cb.record_success()
        assert cb.state == "closed"


def _fake_client(embed=None, generate=None):
    return SimpleNamespace(aio=SimpleNamespace(models=SimpleNamespace(
        embed_content=embed, generate_content=generate,
    )))


class TestGeminiProvider:
    """Provider wrapper with a stubbed client — no network."""

    def _provider(self, client, **kwargs):
        from vibescope.llm.gemini import GeminiProvider
        provider = GeminiProvider(api_key="test-key", **kwargs)
        provider._client = client
        return provider

    def test_missing_key_is_configuration_error(self, monkeypatch):
        from vibescope.llm.gemini import GeminiProvider
        monkeypatch.delenv("GEMINI_API_KEY", raising=False)
        with pytest.raises(ConfigurationError):
            GeminiProvider(api_key="").check_configured()

    def test_factory_unknown_provider(self):
        from vibescope.llm.factory import get_provider
        with pytest.raises(ConfigurationError):
            get_provider("nonexistent")

    @pytest.mark.asyncio
    async def test_embed_returns_vector(self):
        async def embed(model, contents, config):
            return SimpleNamespace(embeddings=[SimpleNamespace(values=[0.1, 0.2, 0.3])])

        provider = self._provider(_fake_client(embed=embed))
        assert await provider.embed("punk") == [0.1, 0.2, 0.3]

    @pytest.mark.asyncio
    async def test_empty_embedding_is_provider_error(self):
        async def embed(model, contents, config):
            return SimpleNamespace(embeddings=[])

        provider = self._provider(_fake_client(embed=embed))
        with pytest.raises(ProviderError):
            await provider.embed("punk")

    @pytest.mark.asyncio
    async def test_timeout_is_provider_error(self):
        async def embed(model, contents, config):
            await asyncio.sleep(1)

        provider = self._provider(_fake_client(embed=embed), timeout=0.01)
        with pytest.raises(ProviderError, match="timed out"):
            await provider.embed("punk")

    @pytest.mark.asyncio
    async def test_open_breaker_fails_fast(self):
        calls = []

        async def embed(model, contents, config):
            calls.append(contents)
            raise OSError("connection reset")

        provider = self._provider(_fake_client(embed=embed))
        for _ in range(3):
            with pytest.raises(ProviderError):
                await provider.embed("punk")
        with pytest.raises(ProviderError, match="circuit breaker"):
            await provider.embed("punk")
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_generate_returns_text(self):
        async def generate(model, contents, config):
            return SimpleNamespace(text="Loud and fast.")

        provider = self._provider(_fake_client(generate=generate))
        assert await provider.generate("prompt", temperature=0.8) == "Loud and fast."
