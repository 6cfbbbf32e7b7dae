"""
Sentence axes — heuristic projection for sentence mode.

Sentences are not embedded. Their axes are derived from the
manipulation score: propaganda reads as more abstract, active,
negative, serious, simple, intense, artificial and public. Axes
without a fixed lean get a deterministic pseudo-random value seeded
from a hash of the text, damped as manipulation rises.

Same text in, same axes out.
"""

from __future__ import annotations

import math
from typing import Sequence

from vibescope.axes import AXES, Axis

# axis key → (base, slope): value = base + slope × manipulation
_SKEWED_AXES: dict[str, tuple[float, float]] = {
    "concrete_abstract": (-0.2, -0.4),
    "active_passive": (0.3, 0.4),
    "positive_negative": (0.1, -0.6),
    "serious_playful": (0.4, 0.3),
    "complex_simple": (-0.1, -0.2),
    "intense_mild": (0.2, 0.5),
    "natural_artificial": (-0.3, -0.4),
    "private_public": (0.5, 0.2),
}

# axis key → damping k: value = seeded × (1 - k × manipulation)
_SEEDED_DAMPING: dict[str, float] = {
    "masculine_feminine": 0.3,
    "high_status_low_status": 0.2,
    "ordered_chaotic": 0.3,
    "future_past": 0.1,
}
_DEFAULT_DAMPING = 0.2


def text_hash(text: str) -> int:
    """32-bit signed rolling hash (h = h*31 + c).

    c is the first UTF-16 code unit of each character, so astral
    characters contribute their high surrogate.
    """
    h = 0
    for ch in text:
        unit = int.from_bytes(ch.encode("utf-16-le")[:2], "little")
        h = ((h << 5) - h + unit) & 0xFFFFFFFF
    return h - (1 << 32) if h >= (1 << 31) else h


def _seeded(seed: int) -> float:
    return abs(math.sin(seed)) * 2 - 1


def sentence_axes(
    text: str,
    overall_manipulation: float,
    axes: Sequence[Axis] = AXES,
) -> dict[str, float]:
    """Axis scores for a sentence, one per configured axis, each in [-1, 1]."""
    m = max(0.0, min(overall_manipulation, 100.0)) / 100
    h = text_hash(text)

    scores: dict[str, float] = {}
    for index, axis in enumerate(axes):
        if axis.key in _SKEWED_AXES:
            base, slope = _SKEWED_AXES[axis.key]
            value = base + slope * m
        else:
            damping = _SEEDED_DAMPING.get(axis.key, _DEFAULT_DAMPING)
            value = _seeded(h * (index + 1)) * (1 - damping * m)
        scores[axis.key] = max(-1.0, min(1.0, value))
    return scores
