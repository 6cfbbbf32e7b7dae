"""
Rate Limiter — Per-Client, Per-Endpoint-Class Throttling

Fixed window counter backed by an in-memory dict. Each
(client identifier, endpoint class) pair gets its own window;
classes carry independent limits:

  - analyze: 15 requests/minute (expensive embedding work)
  - batch:    5 requests/minute (multi-term comparisons)
  - api:     30 requests/minute (standard word lookups)
  - read:    60 requests/minute (static metadata)

Window lifecycle:
  Fresh (count=0) → Counting → Saturated (count == limit, rejects)
  → [window elapses] → Fresh

A rejected request never increments the counter. Stale windows are
garbage-collected periodically.
"""

from __future__ import annotations

import asyncio
import math
import os
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Mapping, Optional

from vibescope.errors import RateLimitError
from vibescope.logging import get_logger

logger = get_logger("rate_limit")

# Maximum number of unique windows tracked before LRU eviction
MAX_RATE_LIMIT_KEYS = 5000


@dataclass(frozen=True)
class EndpointLimit:
    """Rate limit configuration for one endpoint class."""
    max_requests: int
    window_seconds: float = 60.0


def _limit_from_env(name: str, default: int) -> EndpointLimit:
    return EndpointLimit(
        max_requests=int(os.getenv(f"VIBESCOPE_RATE_{name.upper()}_PER_MINUTE", str(default))),
    )


# Default limits — override via env
DEFAULT_LIMITS: dict[str, EndpointLimit] = {
    "api": _limit_from_env("api", 30),
    "analyze": _limit_from_env("analyze", 15),
    "batch": _limit_from_env("batch", 5),
    "read": _limit_from_env("read", 60),
}


@dataclass
class RateWindow:
    """Fixed window counter."""
    window_start: float
    reset_at: float
    count: int = 0


@dataclass(frozen=True)
class RateLimitDecision:
    """Outcome of one admission check."""
    allowed: bool
    limit: int
    remaining: int
    reset_at: float  # wall-clock epoch seconds
    retry_after: int  # seconds until reset; 0 when allowed

    def headers(self) -> dict[str, str]:
        headers = {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": datetime.fromtimestamp(
                self.reset_at, tz=timezone.utc,
            ).isoformat(),
        }
        if not self.allowed:
            headers["Retry-After"] = str(self.retry_after)
        return headers


class RateLimiter:
    """Fixed-window admission control keyed by (identifier, endpoint class)."""

    def __init__(
        self,
        limits: Optional[Mapping[str, EndpointLimit]] = None,
        enabled: bool = True,
        max_keys: int = MAX_RATE_LIMIT_KEYS,
        clock: Callable[[], float] = time.time,
    ):
        self._limits = dict(limits or DEFAULT_LIMITS)
        self.enabled = enabled
        self._max_keys = max_keys
        self._clock = clock
        # LRU-bounded store: (identifier, class) → RateWindow
        self._windows: OrderedDict[tuple[str, str], RateWindow] = OrderedDict()
        self._lock = threading.Lock()
        self._cleanup_task: Optional[asyncio.Task] = None

    def limit_for(self, endpoint_class: str) -> EndpointLimit:
        try:
            return self._limits[endpoint_class]
        except KeyError:
            raise ValueError(f"Unknown endpoint class: {endpoint_class}") from None

    def admit(self, identifier: str, endpoint_class: str) -> RateLimitDecision:
        """Count one request against the window, unless the window is saturated."""
        limit = self.limit_for(endpoint_class)
        now = self._clock()

        if not self.enabled:
            return RateLimitDecision(
                allowed=True, limit=limit.max_requests,
                remaining=limit.max_requests, reset_at=now + limit.window_seconds,
                retry_after=0,
            )

        key = (identifier, endpoint_class)
        with self._lock:
            window = self._windows.get(key)
            if window is None or now >= window.reset_at:
                if window is None and len(self._windows) >= self._max_keys:
                    self._windows.popitem(last=False)  # Remove least-recently-used
                window = RateWindow(window_start=now, reset_at=now + limit.window_seconds)
                self._windows[key] = window
            self._windows.move_to_end(key)

            if window.count >= limit.max_requests:
                return RateLimitDecision(
                    allowed=False,
                    limit=limit.max_requests,
                    remaining=0,
                    reset_at=window.reset_at,
                    retry_after=max(1, math.ceil(window.reset_at - now)),
                )

            window.count += 1
            return RateLimitDecision(
                allowed=True,
                limit=limit.max_requests,
                remaining=limit.max_requests - window.count,
                reset_at=window.reset_at,
                retry_after=0,
            )

    def check(self, identifier: str, endpoint_class: str) -> RateLimitDecision:
        """
        Admit or raise.

        Raises:
            RateLimitError carrying the reset time if the window is saturated.
        """
        decision = self.admit(identifier, endpoint_class)
        if not decision.allowed:
            logger.info(
                "Rate limit exceeded",
                extra={
                    "identifier": identifier,
                    "endpoint_class": endpoint_class,
                    "retry_after": decision.retry_after,
                },
            )
            raise RateLimitError(
                f"Rate limit exceeded: {decision.limit} requests per "
                f"{self.limit_for(endpoint_class).window_seconds:g}s. "
                f"Retry after {decision.retry_after} seconds.",
                reset_at=decision.reset_at,
                retry_after=decision.retry_after,
                limit=decision.limit,
            )
        return decision

    def get_usage(self, identifier: str, endpoint_class: str) -> dict:
        """Current count for one window (0 if none or expired)."""
        with self._lock:
            window = self._windows.get((identifier, endpoint_class))
            if window is None or self._clock() >= window.reset_at:
                return {"count": 0, "limit": self.limit_for(endpoint_class).max_requests}
            return {"count": window.count, "limit": self.limit_for(endpoint_class).max_requests}

    def cleanup_stale_windows(self) -> int:
        """Remove windows whose period has elapsed. Returns how many were removed."""
        now = self._clock()
        with self._lock:
            stale = [k for k, w in list(self._windows.items()) if now >= w.reset_at]
            for k in stale:
                del self._windows[k]
        if stale:
            logger.debug("Removed stale rate windows", extra={"evicted": len(stale)})
        return len(stale)

    async def run_cleanup_loop(self, interval: float = 60.0) -> None:
        """Sweep stale windows every ``interval`` seconds until cancelled."""
        while True:
            await asyncio.sleep(interval)
            self.cleanup_stale_windows()

    def start_cleanup(self, interval: float = 60.0) -> asyncio.Task:
        if self._cleanup_task is None or self._cleanup_task.done():
            self._cleanup_task = asyncio.create_task(self.run_cleanup_loop(interval))
        return self._cleanup_task

    async def shutdown(self) -> None:
        if self._cleanup_task is not None:
            self._cleanup_task.cancel()
            try:
                await self._cleanup_task
            except asyncio.CancelledError:
                pass
            self._cleanup_task = None
        self.clear()

    def clear(self) -> None:
        with self._lock:
            self._windows.clear()

    def __len__(self) -> int:
        return len(self._windows)


def client_identifier(headers: Mapping[str, str]) -> str:
    """Best-effort client identity from proxy headers."""
    cf_ip = headers.get("cf-connecting-ip")
    if cf_ip:
        return cf_ip.strip()

    forwarded = headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()

    real_ip = headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()

    user_agent = headers.get("user-agent") or "unknown"
    accept_language = headers.get("accept-language") or "unknown"
    return f"{user_agent}-{accept_language}"[:100]
