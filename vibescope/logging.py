"""
VibeScope logging.

Every module logs through ``get_logger(<component>)``, which hangs off
the single ``vibescope`` logger configured by ``setup_logging()``.
Scoring context (term, endpoint class, timings, error kind) travels in
``extra=`` and is emitted as top-level keys of a JSON line. Only the
keys in ``_EXTRA_FIELDS`` are emitted.

    VIBESCOPE_LOG_LEVEL   DEBUG | INFO | WARNING | ...   (default INFO)
    VIBESCOPE_LOG_FORMAT  json | text                    (default json)
"""

from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Optional


LOG_LEVEL = os.getenv("VIBESCOPE_LOG_LEVEL", "INFO").upper()
LOG_FORMAT = os.getenv("VIBESCOPE_LOG_FORMAT", "json")

_EXTRA_FIELDS = (
    "term", "mode", "cached", "partial", "techniques", "overall_manipulation",
    "endpoint_class", "identifier", "retry_after", "error", "error_type",
    "kind", "duration_ms", "status_code", "method", "path", "axes_count",
    "entries", "evicted", "queue_size",
)

# HTTP client chatter from the provider SDK and the ASGI server.
_QUIET_LOGGERS = ("uvicorn.access", "httpcore", "httpx", "google_genai")


class JSONFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update(
            (key, getattr(record, key))
            for key in _EXTRA_FIELDS
            if getattr(record, key, None) is not None
        )
        if record.exc_info and record.exc_info[0]:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class TextFormatter(logging.Formatter):
    def __init__(self):
        super().__init__(
            fmt="%(asctime)s [%(levelname)-8s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )


def setup_logging(level: Optional[str] = None, fmt: Optional[str] = None) -> logging.Logger:
    """Install one stdout handler on the ``vibescope`` logger.

    Safe to call repeatedly (the API lifespan and the seeding CLI both do);
    previous handlers are replaced.
    """
    level = (level or LOG_LEVEL).upper()
    fmt = fmt or LOG_FORMAT

    root = logging.getLogger("vibescope")
    root.setLevel(getattr(logging, level, logging.INFO))
    root.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter() if fmt == "json" else TextFormatter())
    root.addHandler(handler)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    return root


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(f"vibescope.{name}")
