"""
VibeScope API — Main Application

GET  /vibe           — Score a word or short phrase on every axis
GET  /vibe/sentence  — Score a sentence for propaganda techniques
POST /analyze        — Auto-detect word vs sentence and score
POST /vibe/compare   — Compare several terms (distance matrix + axis overlap)
GET  /axes           — Configured semantic axes
GET  /patterns       — Propaganda pattern table
GET  /health         — Health check
"""

from __future__ import annotations

import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, Query, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from vibescope import __version__
from vibescope.axes import AnchorCache
from vibescope.cache import ResultCache
from vibescope.config import Settings, settings
from vibescope.engine import VibeEngine, WordVibe
from vibescope.errors import ConfigurationError, RateLimitError, VibeError
from vibescope.llm.factory import get_provider
from vibescope.logging import get_logger, setup_logging
from vibescope.narration import NarrationQueue
from vibescope.propaganda import get_patterns
from vibescope.rate_limit import RateLimiter, client_identifier
from vibescope.schemas.vibe import (
    AnalyzeRequest,
    AnalyzeResponse,
    AxisResponse,
    CompareRequest,
    CompareResponse,
    ErrorResponse,
    HealthResponse,
    PatternResponse,
    SentenceVibeResponse,
    WordVibeResponse,
)
from vibescope.store import SQLiteLexicon, SQLiteVibeStore

logger = get_logger("api")


# ============================================================
# WIRING
# ============================================================

def build_engine(cfg: Settings = settings) -> VibeEngine:
    """Construct the production engine from settings."""
    provider = get_provider(
        cfg.PROVIDER,
        api_key=cfg.GEMINI_API_KEY,
        embedding_model=cfg.EMBEDDING_MODEL,
        narration_model=cfg.NARRATION_MODEL,
        output_dimensionality=cfg.EMBEDDING_DIM,
        timeout=cfg.PROVIDER_TIMEOUT,
    )
    store = SQLiteVibeStore(db_path=cfg.DB_PATH)
    cache = ResultCache(ttl_seconds=cfg.CACHE_TTL, max_entries=cfg.CACHE_MAX_ENTRIES)
    narrator = NarrationQueue(provider, cache, store) if cfg.NARRATION_ENABLED else None
    return VibeEngine(
        embedder=provider,
        anchors=AnchorCache(provider, ttl_seconds=cfg.ANCHOR_TTL),
        cache=cache,
        neighbors=SQLiteLexicon(store),
        store=store,
        narrator=narrator,
        neighbor_limit=cfg.NEIGHBOR_LIMIT,
        neighbor_min_frequency=cfg.NEIGHBOR_MIN_FREQ,
    )


def _provider_configured(engine: VibeEngine) -> bool:
    try:
        engine.embedder.check_configured()
    except ConfigurationError:
        return False
    return True


def create_app(
    engine: Optional[VibeEngine] = None,
    limiter: Optional[RateLimiter] = None,
) -> FastAPI:
    """Application factory. Tests inject an engine and limiter with fakes."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Wire up dependencies on startup, tear them down on shutdown."""
        setup_logging()
        app.state.engine = engine if engine is not None else build_engine()
        app.state.limiter = (
            limiter if limiter is not None
            else RateLimiter(enabled=settings.RATE_LIMIT_ENABLED)
        )

        if app.state.engine.narrator is not None:
            app.state.engine.narrator.start()
        app.state.limiter.start_cleanup(settings.RATE_CLEANUP_INTERVAL)

        if not _provider_configured(app.state.engine):
            logger.warning(
                "Embedding provider is not configured — word scoring will "
                "return configuration errors until GEMINI_API_KEY is set."
            )
        logger.info("VibeScope API starting")
        yield
        await app.state.limiter.shutdown()
        await app.state.engine.shutdown()
        logger.info("VibeScope API shutting down")

    app = FastAPI(
        title="VibeScope API",
        description="Semantic vibe scoring: axis projection, neighbors and propaganda detection",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[o.strip() for o in settings.CORS_ORIGINS.split(",")],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
        expose_headers=[
            "X-RateLimit-Limit", "X-RateLimit-Remaining", "X-RateLimit-Reset", "Retry-After",
        ],
        allow_credentials=False,
    )

    _register_error_handlers(app)
    _register_routes(app)
    _register_middleware(app)
    return app


# ============================================================
# RATE LIMIT DEPENDENCY
# ============================================================

def rate_limited(endpoint_class: str):
    """Dependency: admit the caller for ``endpoint_class`` or raise RateLimitError."""

    def _dependency(request: Request, response: Response) -> None:
        limiter: RateLimiter = request.app.state.limiter
        decision = limiter.check(client_identifier(request.headers), endpoint_class)
        request.state.rate_decision = decision
        for name, value in decision.headers().items():
            response.headers[name] = value

    return _dependency


def _admitted_headers(request: Request) -> dict[str, str]:
    """Rate headers for a request admitted before its handler failed."""
    decision = getattr(request.state, "rate_decision", None)
    return decision.headers() if decision is not None else {}


def _engine(request: Request) -> VibeEngine:
    return request.app.state.engine


# ============================================================
# ERROR HANDLERS
# ============================================================

def _register_error_handlers(app: FastAPI) -> None:

    @app.exception_handler(VibeError)
    async def vibe_error_handler(request: Request, exc: VibeError):
        headers = _admitted_headers(request)
        if isinstance(exc, RateLimitError):
            headers = {
                "Retry-After": str(exc.retry_after),
                "X-RateLimit-Limit": str(exc.limit),
                "X-RateLimit-Remaining": "0",
                "X-RateLimit-Reset": exc.to_dict()["reset_at"],
            }
        log = logger.warning if exc.status_code >= 500 else logger.info
        log(
            f"Request failed: {exc.kind}",
            extra={
                "kind": exc.kind,
                "error": exc.message,
                "path": request.url.path,
                "status_code": exc.status_code,
            },
        )
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.to_dict()},
            headers=headers,
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        first = exc.errors()[0] if exc.errors() else {}
        location = ".".join(str(p) for p in first.get("loc", ()))
        return JSONResponse(
            status_code=400,
            content={"error": {
                "kind": "validation_error",
                "message": f"{location}: {first.get('msg', 'invalid request')}",
            }},
            headers=_admitted_headers(request),
        )

    @app.exception_handler(Exception)
    async def global_error_handler(request: Request, exc: Exception):
        """Catch unhandled exceptions — return structured error, don't leak internals."""
        logger.error(
            f"Unhandled exception: {type(exc).__name__}",
            extra={"error": str(exc), "path": request.url.path, "method": request.method},
            exc_info=True,
        )
        return JSONResponse(
            status_code=500,
            content={"error": {
                "kind": "internal_error",
                "message": "Internal server error. The vibe could not be computed.",
            }},
        )


# ============================================================
# ROUTES
# ============================================================

_ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Invalid input"},
    429: {"model": ErrorResponse, "description": "Rate limit exceeded"},
    502: {"model": ErrorResponse, "description": "Embedding provider failure"},
    503: {"model": ErrorResponse, "description": "Provider not configured"},
}


def _register_routes(app: FastAPI) -> None:

    @app.get(
        "/vibe",
        response_model=WordVibeResponse,
        dependencies=[Depends(rate_limited("api"))],
        responses=_ERROR_RESPONSES,
    )
    async def vibe_word(
        term: str = Query("", description="Word or short phrase"),
        engine: VibeEngine = Depends(_engine),
    ):
        """Score a term on every semantic axis and list its lexicon neighbors."""
        vibe = await engine.score_word(term)
        return vibe.to_dict()

    @app.get(
        "/vibe/sentence",
        response_model=SentenceVibeResponse,
        dependencies=[Depends(rate_limited("analyze"))],
        responses=_ERROR_RESPONSES,
    )
    async def vibe_sentence(
        text: str = Query("", description="Sentence to scan"),
        engine: VibeEngine = Depends(_engine),
    ):
        """Score a sentence for propaganda techniques (no embedding calls)."""
        return engine.score_sentence(text).to_dict()

    @app.post(
        "/analyze",
        response_model=AnalyzeResponse,
        dependencies=[Depends(rate_limited("analyze"))],
        responses=_ERROR_RESPONSES,
    )
    async def analyze(
        request: AnalyzeRequest,
        engine: VibeEngine = Depends(_engine),
    ):
        """Auto-detect word vs sentence and score accordingly."""
        result = await engine.analyze(request.text, request.type)
        if isinstance(result, WordVibe):
            return {"type": "word", "word": result.to_dict()}
        return {"type": "sentence", "sentence": result.to_dict()}

    @app.post(
        "/vibe/compare",
        response_model=CompareResponse,
        dependencies=[Depends(rate_limited("batch"))],
        responses=_ERROR_RESPONSES,
    )
    async def compare(
        request: CompareRequest,
        engine: VibeEngine = Depends(_engine),
    ):
        """Compare terms: pairwise vibe distance and per-axis agreement."""
        comparison = await engine.compare(request.terms)
        logger.info(
            f"Compared {len(comparison.terms)} terms",
            extra={"mode": "compare"},
        )
        return comparison.to_dict()

    @app.get(
        "/axes",
        response_model=list[AxisResponse],
        dependencies=[Depends(rate_limited("read"))],
    )
    async def list_axes(engine: VibeEngine = Depends(_engine)):
        """Return the configured semantic axes, in scoring order."""
        return [
            {"key": a.key, "label": a.label, "pos": a.pos, "neg": a.neg}
            for a in engine.anchors.axes
        ]

    @app.get(
        "/patterns",
        response_model=list[PatternResponse],
        dependencies=[Depends(rate_limited("read"))],
    )
    async def list_patterns():
        """Return the propaganda pattern table."""
        return get_patterns()

    @app.get("/health", response_model=HealthResponse)
    async def health(engine: VibeEngine = Depends(_engine)):
        """Health check — not rate limited."""
        lexicon_terms = 0
        if isinstance(engine.store, SQLiteVibeStore):
            lexicon_terms = engine.store.lexicon_count()
        return {
            "status": "operational",
            "version": __version__,
            "provider": settings.PROVIDER,
            "provider_configured": _provider_configured(engine),
            "axes": len(engine.anchors.axes),
            "cache": engine.cache.stats,
            "narration": engine.narrator.stats if engine.narrator is not None else None,
            "lexicon_terms": lexicon_terms,
        }


# ============================================================
# MIDDLEWARE
# ============================================================

_MAX_BODY_BYTES = 1_048_576  # 1 MB


def _register_middleware(app: FastAPI) -> None:

    @app.middleware("http")
    async def add_security_headers(request: Request, call_next):
        """Add security and version headers to all responses."""
        response = await call_next(request)
        response.headers["X-VibeScope-Version"] = __version__
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        return response

    @app.middleware("http")
    async def enforce_body_size_limit(request: Request, call_next):
        """Reject requests exceeding 1MB by Content-Length."""
        content_length = request.headers.get("content-length")
        if content_length:
            try:
                if int(content_length) > _MAX_BODY_BYTES:
                    return JSONResponse(
                        status_code=413,
                        content={"error": {
                            "kind": "validation_error",
                            "message": "Request body too large.",
                        }},
                    )
            except ValueError:
                pass  # Malformed content-length; let the framework handle it
        return await call_next(request)

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Log every API request with method, path, status, duration."""
        path = request.url.path
        if path == "/health":
            return await call_next(request)

        start = time.time()
        response = await call_next(request)
        duration_ms = round((time.time() - start) * 1000, 1)

        logger.info(
            f"{request.method} {path} → {response.status_code} ({duration_ms}ms)",
            extra={
                "method": request.method,
                "path": path,
                "status_code": response.status_code,
                "duration_ms": duration_ms,
            },
        )
        return response


app = create_app()
