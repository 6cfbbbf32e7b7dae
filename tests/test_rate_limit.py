"""
Rate Limiter Tests — fixed windows per identifier and endpoint class.
"""

from __future__ import annotations

import pytest

from conftest import FakeClock
from vibescope.errors import RateLimitError
from vibescope.rate_limit import (
    DEFAULT_LIMITS,
    EndpointLimit,
    RateLimiter,
    client_identifier,
)


def _limiter(clock=None, **overrides) -> RateLimiter:
    limits = {"api": EndpointLimit(10), "batch": EndpointLimit(2)}
    limits.update(overrides)
    return RateLimiter(limits=limits, clock=clock or FakeClock())


class TestRateLimiter:

    def test_default_classes(self):
        assert DEFAULT_LIMITS["api"].max_requests == 30
        assert DEFAULT_LIMITS["analyze"].max_requests == 15
        assert DEFAULT_LIMITS["batch"].max_requests == 5
        assert DEFAULT_LIMITS["read"].max_requests == 60

    def test_fifteen_requests_against_ten_per_minute(self):
        limiter = _limiter()
        allowed, rejected = 0, 0
        for _ in range(15):
            try:
                limiter.check("1.2.3.4", "api")
                allowed += 1
            except RateLimitError:
                rejected += 1
        assert allowed == 10
        assert rejected == 5

    def test_rejected_requests_are_not_counted(self):
        limiter = _limiter()
        for _ in range(14):
            limiter.admit("1.2.3.4", "api")
        assert limiter.get_usage("1.2.3.4", "api") == {"count": 10, "limit": 10}

    def test_remaining_counts_down(self):
        limiter = _limiter()
        first = limiter.check("1.2.3.4", "api")
        second = limiter.check("1.2.3.4", "api")
        assert first.remaining == 9
        assert second.remaining == 8

    def test_retry_after_reports_time_to_reset(self):
        clock = FakeClock(now=1000.0)
        limiter = _limiter(clock)
        for _ in range(10):
            limiter.check("1.2.3.4", "api")
        clock.advance(30)
        with pytest.raises(RateLimitError) as exc_info:
            limiter.check("1.2.3.4", "api")
        assert exc_info.value.retry_after == 30
        assert exc_info.value.reset_at == 1060.0
        assert exc_info.value.limit == 10

    def test_window_resets_after_period(self):
        clock = FakeClock()
        limiter = _limiter(clock)
        for _ in range(10):
            limiter.check("1.2.3.4", "api")
        clock.advance(60)
        decision = limiter.check("1.2.3.4", "api")
        assert decision.allowed
        assert decision.remaining == 9

    def test_identifiers_and_classes_are_independent(self):
        limiter = _limiter()
        for _ in range(2):
            limiter.check("1.2.3.4", "batch")
        with pytest.raises(RateLimitError):
            limiter.check("1.2.3.4", "batch")
        assert limiter.check("5.6.7.8", "batch").allowed
        assert limiter.check("1.2.3.4", "api").allowed

    def test_disabled_always_admits(self):
        limiter = _limiter()
        limiter.enabled = False
        for _ in range(50):
            assert limiter.check("1.2.3.4", "batch").allowed

    def test_unknown_class(self):
        with pytest.raises(ValueError):
            _limiter().check("1.2.3.4", "nope")

    def test_headers(self):
        limiter = _limiter()
        ok = limiter.admit("1.2.3.4", "batch")
        limiter.admit("1.2.3.4", "batch")
        denied = limiter.admit("1.2.3.4", "batch")
        assert ok.headers()["X-RateLimit-Remaining"] == "1"
        assert "Retry-After" not in ok.headers()
        assert denied.headers()["Retry-After"] == "60"
        assert denied.headers()["X-RateLimit-Remaining"] == "0"

    def test_cleanup_stale_windows(self):
        clock = FakeClock()
        limiter = _limiter(clock)
        limiter.check("a", "api")
        clock.advance(30)
        limiter.check("b", "api")
        clock.advance(31)
        assert limiter.cleanup_stale_windows() == 1
        assert len(limiter) == 1

    def test_lru_bound_on_tracked_windows(self):
        limiter = RateLimiter(limits={"api": EndpointLimit(10)}, max_keys=3, clock=FakeClock())
        for ident in ("a", "b", "c", "d"):
            limiter.check(ident, "api")
        assert len(limiter) == 3
        assert limiter.get_usage("a", "api")["count"] == 0

    @pytest.mark.asyncio
    async def test_cleanup_task_lifecycle(self):
        limiter = _limiter()
        task = limiter.start_cleanup(interval=3600)
        assert limiter.start_cleanup(interval=3600) is task
        limiter.check("1.2.3.4", "api")
        await limiter.shutdown()
        assert task.cancelled()
        assert len(limiter) == 0


class TestClientIdentifier:

    def test_cloudflare_header_wins(self):
        headers = {"cf-connecting-ip": "9.9.9.9", "x-forwarded-for": "1.1.1.1"}
        assert client_identifier(headers) == "9.9.9.9"

    def test_first_forwarded_address(self):
        assert client_identifier({"x-forwarded-for": "1.1.1.1, 2.2.2.2"}) == "1.1.1.1"

    def test_real_ip(self):
        assert client_identifier({"x-real-ip": " 3.3.3.3 "}) == "3.3.3.3"

    def test_fallback_fingerprint_truncated(self):
        ident = client_identifier({"user-agent": "x" * 200, "accept-language": "en"})
        assert len(ident) == 100

    def test_no_headers(self):
        assert client_identifier({}) == "unknown-unknown"
