"""
API Schemas — Request and Response Models

Pydantic models for the VibeScope API.
"""

from __future__ import annotations

from typing import Optional
from pydantic import BaseModel, Field


# ============================================================
# WORD
# ============================================================

class NeighborResponse(BaseModel):
    term: str
    distance: float = Field(..., ge=0)


class WordVibeResponse(BaseModel):
    """GET /vibe response body."""
    term: str
    axes: dict[str, float]
    neighbors: list[NeighborResponse]
    narrative: Optional[str] = None
    cached: bool = False
    partial: bool = False


# ============================================================
# SENTENCE
# ============================================================

class PropagandaResponse(BaseModel):
    overall_manipulation: float = Field(..., ge=0, le=100)
    emotional_manipulation: float = Field(..., ge=0, le=100)
    strategic_ambiguity: float = Field(..., ge=0, le=100)
    loaded_language: float = Field(..., ge=0, le=100)
    fear_tactics: float = Field(..., ge=0, le=100)
    appeal_to_authority: float = Field(..., ge=0, le=100)
    bandwagon: float = Field(..., ge=0, le=100)
    false_dichotomy: float = Field(..., ge=0, le=100)
    gaslighting: float = Field(..., ge=0, le=100)
    techniques: list[str]
    explanations: list[str]
    level: str


class SentenceVibeResponse(BaseModel):
    """GET /vibe/sentence response body."""
    text: str
    axes: dict[str, float]
    propaganda: PropagandaResponse


# ============================================================
# ANALYZE (auto mode)
# ============================================================

class AnalyzeRequest(BaseModel):
    """POST /analyze request body."""
    text: str = Field(..., min_length=1, max_length=5000,
                      description="Word, phrase or sentence to analyze (1-5,000 characters).")
    type: str = Field("auto", pattern="^(word|sentence|auto)$",
                      description="Analysis type: word (embedding), sentence (propaganda), or auto.")

    model_config = {"json_schema_extra": {"examples": [
        {"text": "Everyone knows this is the only solution that works", "type": "auto"},
    ]}}


class AnalyzeResponse(BaseModel):
    """POST /analyze response body."""
    type: str
    word: Optional[WordVibeResponse] = None
    sentence: Optional[SentenceVibeResponse] = None


# ============================================================
# COMPARE
# ============================================================

class CompareRequest(BaseModel):
    """POST /vibe/compare request body."""
    terms: list[str] = Field(..., min_length=2, max_length=10)


class CompareResponse(BaseModel):
    terms: list[str]
    results: list[WordVibeResponse]
    distance_matrix: dict[str, dict[str, float]]
    axes_overlap: dict[str, float]
    narrative: Optional[str] = None


# ============================================================
# METADATA
# ============================================================

class AxisResponse(BaseModel):
    key: str
    label: str
    pos: str
    neg: str


class PatternResponse(BaseModel):
    category: str
    weight: float
    description: str
    triggers: list[str]
    contributes_to: list[str]
    emotional: bool


class ErrorDetail(BaseModel):
    kind: str
    message: str
    retry_after: Optional[int] = None
    reset_at: Optional[str] = None


class ErrorResponse(BaseModel):
    error: ErrorDetail


class HealthResponse(BaseModel):
    status: str
    version: str
    provider: str
    provider_configured: bool
    axes: int
    cache: dict
    narration: Optional[dict] = None
    lexicon_terms: int
