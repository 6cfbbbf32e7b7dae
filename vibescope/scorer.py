"""
Manipulation Score Aggregator

Turns raw propaganda detections into a ManipulationResult.
Separated from propaganda.py for single-responsibility.

  overall   = sum(category scores) / max(1, categories matched), capped at 100
  buckets   = each category feeds its declared buckets:
                bucket = min(bucket + score × factor, 100)
  boost     = emotional_manipulation × 1.2 (capped) when more than one
              emotionally loaded technique was detected

The overall score divides by matched categories only, not by the size
of the pattern table, so one strong technique can score as high as
several.
"""

from __future__ import annotations

from dataclasses import dataclass, field, asdict

from vibescope.propaganda import (
    EMOTIONAL_CATEGORIES,
    MAX_SCORE,
    PROPAGANDA_PATTERNS,
    Detection,
    PropagandaPattern,
    detect,
)

EMOTIONAL_BOOST = 1.2

SUB_SCORES = (
    "emotional_manipulation",
    "strategic_ambiguity",
    "loaded_language",
    "fear_tactics",
    "appeal_to_authority",
    "bandwagon",
    "false_dichotomy",
    "gaslighting",
)


@dataclass
class ManipulationResult:
    """Aggregated manipulation score for one text."""
    overall_manipulation: float = 0.0
    emotional_manipulation: float = 0.0
    strategic_ambiguity: float = 0.0
    loaded_language: float = 0.0
    fear_tactics: float = 0.0
    appeal_to_authority: float = 0.0
    bandwagon: float = 0.0
    false_dichotomy: float = 0.0
    gaslighting: float = 0.0
    techniques: list[str] = field(default_factory=list)
    explanations: list[str] = field(default_factory=list)

    @property
    def level(self) -> str:
        if self.overall_manipulation > 70:
            return "high"
        if self.overall_manipulation > 40:
            return "medium"
        return "low"

    @property
    def sub_scores(self) -> dict[str, float]:
        return {name: getattr(self, name) for name in SUB_SCORES}

    def to_dict(self) -> dict:
        return {**asdict(self), "level": self.level}


def _clamp(value: float) -> float:
    return max(0.0, min(value, MAX_SCORE))


def aggregate(
    detection: Detection,
    patterns: tuple[PropagandaPattern, ...] = PROPAGANDA_PATTERNS,
) -> ManipulationResult:
    """
    Combine per-category detections into a ManipulationResult.

    Pure function of the detection: same input, same output.
    """
    by_category = {p.category: p for p in patterns}
    result = ManipulationResult()

    total = 0.0
    for match in detection.categories:
        total += match.score
        result.techniques.append(match.category)
        result.explanations.append(match.explanation)

        pattern = by_category.get(match.category)
        if pattern is None:
            continue
        for bucket, factor in pattern.contributions:
            current = getattr(result, bucket)
            setattr(result, bucket, min(current + match.score * factor, MAX_SCORE))

    matched = len(detection.categories)
    result.overall_manipulation = _clamp(total / max(matched, 1))

    emotional_count = sum(1 for t in result.techniques if t in EMOTIONAL_CATEGORIES)
    if emotional_count > 1:
        result.emotional_manipulation = min(
            result.emotional_manipulation * EMOTIONAL_BOOST, MAX_SCORE,
        )

    return result


def analyze_propaganda(text: str) -> ManipulationResult:
    """Detect and aggregate in one call."""
    return aggregate(detect(text))
