"""
VibeScope Configuration

Central settings loaded from environment variables.
"""

import os
from dataclasses import dataclass
from dotenv import load_dotenv

load_dotenv()


def _optional_float(name: str, default: str) -> float | None:
    """Parse a float env var; empty or "none" means no limit."""
    raw = os.getenv(name, default).strip().lower()
    if raw in ("", "none", "0"):
        return None
    return float(raw)


@dataclass(frozen=True)
class Settings:
    """Immutable application settings."""

    VERSION: str = "1.0.0"

    # --- Embedding / LLM Provider ---
    PROVIDER: str = os.getenv("VIBESCOPE_PROVIDER", "gemini")
    GEMINI_API_KEY: str = os.getenv("GEMINI_API_KEY", "")
    EMBEDDING_MODEL: str = os.getenv("VIBESCOPE_EMBEDDING_MODEL", "gemini-embedding-001")
    EMBEDDING_DIM: int = int(os.getenv("VIBESCOPE_EMBEDDING_DIM", "768"))
    NARRATION_MODEL: str = os.getenv("VIBESCOPE_NARRATION_MODEL", "gemini-2.5-flash")
    PROVIDER_TIMEOUT: float = float(os.getenv("VIBESCOPE_PROVIDER_TIMEOUT", "30"))

    # --- Caches ---
    ANCHOR_TTL: float = float(os.getenv("VIBESCOPE_ANCHOR_TTL", "3600"))
    CACHE_TTL: float | None = _optional_float("VIBESCOPE_CACHE_TTL", "none")
    CACHE_MAX_ENTRIES: int = int(os.getenv("VIBESCOPE_CACHE_MAX_ENTRIES", "5000"))

    # --- Neighbors ---
    NEIGHBOR_LIMIT: int = int(os.getenv("VIBESCOPE_NEIGHBOR_LIMIT", "12"))
    NEIGHBOR_MIN_FREQ: float | None = _optional_float("VIBESCOPE_NEIGHBOR_MIN_FREQ", "0.001")

    # --- Persistence ---
    DB_PATH: str = os.getenv("VIBESCOPE_DB_PATH", "vibescope.db")

    # --- Narration ---
    NARRATION_ENABLED: bool = os.getenv("VIBESCOPE_NARRATION", "true").lower() == "true"

    # --- Rate limiting ---
    RATE_LIMIT_ENABLED: bool = os.getenv("VIBESCOPE_RATE_LIMIT", "true").lower() == "true"
    RATE_CLEANUP_INTERVAL: float = float(os.getenv("VIBESCOPE_RATE_CLEANUP_INTERVAL", "60"))

    # --- Server ---
    HOST: str = os.getenv("VIBESCOPE_HOST", "0.0.0.0")
    PORT: int = int(os.getenv("VIBESCOPE_PORT", "8000"))

    # --- CORS ---
    CORS_ORIGINS: str = os.getenv("VIBESCOPE_CORS_ORIGINS", "*")


settings = Settings()
