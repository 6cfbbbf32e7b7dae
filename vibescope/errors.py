"""
Error taxonomy.

Every failure the scoring engine reports carries a machine-readable
``kind`` and a human-readable message. The HTTP layer maps each kind
to a status code; nothing here knows about HTTP.

Cache misses are not errors — the caches return None.
"""

from __future__ import annotations

from datetime import datetime, timezone


class VibeError(Exception):
    """Base for all reportable engine errors."""

    kind = "error"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"kind": self.kind, "message": self.message}


class ConfigurationError(VibeError):
    """A required provider credential or setting is missing."""

    kind = "configuration_error"
    status_code = 503


class ProviderError(VibeError):
    """An embedding / neighbor-store call failed or timed out."""

    kind = "provider_error"
    status_code = 502


class ValidationError(VibeError):
    """Input rejected before any external call was made."""

    kind = "validation_error"
    status_code = 400


class RateLimitError(VibeError):
    """Admission denied for this identifier and endpoint class."""

    kind = "rate_limited"
    status_code = 429

    def __init__(self, message: str, reset_at: float, retry_after: int, limit: int):
        super().__init__(message)
        self.reset_at = reset_at
        self.retry_after = retry_after
        self.limit = limit

    def to_dict(self) -> dict:
        return {
            **super().to_dict(),
            "retry_after": self.retry_after,
            "reset_at": datetime.fromtimestamp(self.reset_at, tz=timezone.utc).isoformat(),
        }
