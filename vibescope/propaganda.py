"""
Propaganda Patterns — Declarative Detection Table

Each rhetorical technique is one PropagandaPattern record: a category
key, its lexical triggers, a weight, a description, and the sub-score
buckets it feeds. The detector iterates the table generically; adding
a technique is a data change, not a code change.

Detection is deterministic (regex-based, no LLM):

    category_score = min(match_count × weight × 20, 100)

Each category is reported at most once, with one explanation built
from its description and the first phrase that triggered it.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field


SCORE_MULTIPLIER = 20
MAX_SCORE = 100.0


@dataclass(frozen=True)
class PropagandaPattern:
    """A weighted lexical technique detector."""
    category: str
    # Regex fragments, joined into one word-bounded alternation
    triggers: tuple[str, ...]
    weight: float
    description: str
    # (bucket, factor) pairs consumed by the aggregator
    contributions: tuple[tuple[str, float], ...] = ()
    _regex: re.Pattern = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        if self.weight <= 0:
            raise ValueError(f"Pattern '{self.category}' must have a positive weight")
        compiled = re.compile(
            r"\b(?:" + "|".join(self.triggers) + r")\b",
            re.IGNORECASE,
        )
        object.__setattr__(self, "_regex", compiled)

    def find(self, text: str) -> list[str]:
        """Every non-overlapping trigger occurrence, in text order."""
        return [m.group(0) for m in self._regex.finditer(text)]


# Categories whose co-occurrence boosts emotional manipulation
EMOTIONAL_CATEGORIES = frozenset({"fearTactics", "usThem", "superlatives", "gaslighting"})

PROPAGANDA_PATTERNS: tuple[PropagandaPattern, ...] = (
    PropagandaPattern(
        category="superlatives",
        triggers=(
            "best", "worst", "greatest", "most", "least", "ultimate", "perfect",
            "never", "always", "completely", "totally", "absolutely", "only",
            "all", "every", "everyone", "nobody", "nothing",
        ),
        weight=0.3,
        description="Uses absolute terms to oversimplify complex issues",
        contributions=(("emotional_manipulation", 0.5),),
    ),
    PropagandaPattern(
        category="fearTactics",
        triggers=(
            "dangerous", "threat", "crisis", "disaster", "catastrophe", "destroy",
            "ruin", "collapse", "fail", "lose", "attack", "enemy", "war", "death",
            "kill",
        ),
        weight=0.4,
        description="Uses fear-inducing language to motivate action",
        contributions=(("fear_tactics", 1.0), ("emotional_manipulation", 0.8)),
    ),
    PropagandaPattern(
        category="usThem",
        triggers=(
            "they", "them", r"those\s+people", r"the\s+other\s+side", "enemies",
            r"us\s+vs", r"we\s+vs", r"with\s+us\s+or\s+against", r"real\s+americans",
            r"true\s+believers",
        ),
        weight=0.5,
        description="Creates artificial divisions between groups",
        contributions=(("emotional_manipulation", 0.5),),
    ),
    PropagandaPattern(
        category="authority",
        triggers=(
            r"experts\s+say", r"studies\s+show", r"research\s+proves",
            r"scientists\s+agree", r"doctors\s+recommend", "official",
            "authoritative", r"proven\s+fact",
        ),
        weight=0.3,
        description="Makes vague appeals to unnamed authorities",
        contributions=(("appeal_to_authority", 1.0),),
    ),
    PropagandaPattern(
        category="bandwagon",
        triggers=(
            r"everyone\s+knows", r"most\s+people", "popular", "trending", "join",
            r"be\s+part\s+of", r"don't\s+be\s+left\s+out", "majority",
        ),
        weight=0.3,
        description="Appeals to popularity rather than logic",
        contributions=(("bandwagon", 1.0),),
    ),
    PropagandaPattern(
        category="loaded",
        triggers=(
            "elite", "establishment", "mainstream", "radical", "extremist",
            "liberal", "conservative", "woke", "cancel", "freedom", "patriot",
            "real", "true",
        ),
        weight=0.2,
        description="Uses emotionally charged terms to bias perception",
        contributions=(("loaded_language", 1.0),),
    ),
    PropagandaPattern(
        category="gaslighting",
        triggers=(
            r"you're\s+overreacting", r"that\s+didn't\s+happen",
            r"you're\s+imagining", r"you're\s+confused", r"trust\s+me",
            r"believe\s+me", "obvious", "clearly",
        ),
        weight=0.4,
        description="Attempts to make readers question their own judgment",
        contributions=(("gaslighting", 1.0), ("emotional_manipulation", 0.6)),
    ),
    PropagandaPattern(
        category="falseDichotomy",
        triggers=(
            r"either.*or", r"only\s+two", r"simple\s+choice", r"with\s+us\s+or\s+against",
            r"black\s+and\s+white", r"no\s+middle\s+ground",
        ),
        weight=0.4,
        description="Presents complex issues as having only two options",
        contributions=(("false_dichotomy", 1.0),),
    ),
    PropagandaPattern(
        category="ambiguity",
        triggers=(
            r"some\s+say", "might", "could", "possibly", "potentially", "allegedly",
            "supposedly", "reportedly", r"sources\s+suggest",
        ),
        weight=0.2,
        description="Uses vague language to avoid accountability",
        contributions=(("strategic_ambiguity", 1.0),),
    ),
)


@dataclass(frozen=True)
class CategoryMatch:
    """One detected technique."""
    category: str
    matches: tuple[str, ...]
    score: float
    explanation: str

    @property
    def match_count(self) -> int:
        return len(self.matches)


@dataclass(frozen=True)
class Detection:
    """Raw detector output, in pattern declaration order."""
    categories: tuple[CategoryMatch, ...] = ()

    @property
    def techniques(self) -> list[str]:
        return [c.category for c in self.categories]

    @property
    def scores(self) -> dict[str, float]:
        return {c.category: c.score for c in self.categories}


def category_score(match_count: int, weight: float) -> float:
    return min(match_count * weight * SCORE_MULTIPLIER, MAX_SCORE)


def detect(
    text: str,
    patterns: tuple[PropagandaPattern, ...] = PROPAGANDA_PATTERNS,
) -> Detection:
    """Scan text against every pattern. Pure and deterministic."""
    found: list[CategoryMatch] = []
    seen: set[str] = set()
    for pattern in patterns:
        if pattern.category in seen:
            continue
        matches = pattern.find(text)
        if not matches:
            continue
        seen.add(pattern.category)
        found.append(CategoryMatch(
            category=pattern.category,
            matches=tuple(matches),
            score=category_score(len(matches), pattern.weight),
            explanation=f'{pattern.description}: "{matches[0]}"',
        ))
    return Detection(categories=tuple(found))


def get_patterns() -> list[dict]:
    """Pattern table as plain dicts (for the /patterns endpoint)."""
    return [
        {
            "category": p.category,
            "weight": p.weight,
            "description": p.description,
            "triggers": [t.replace(r"\s+", " ") for t in p.triggers],
            "contributes_to": [bucket for bucket, _ in p.contributions],
            "emotional": p.category in EMOTIONAL_CATEGORIES,
        }
        for p in PROPAGANDA_PATTERNS
    ]
