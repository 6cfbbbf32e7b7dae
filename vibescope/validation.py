"""
Input validation — runs before any external call.
"""

from __future__ import annotations

import re
import unicodedata

from vibescope.errors import ValidationError

MAX_TERM_LENGTH = 100
MAX_TEXT_LENGTH = 5000
MAX_WORD_LENGTH = 50
AUTO_SENTENCE_MIN_TOKENS = 4

_WHITESPACE = re.compile(r"\s+")

MODES = ("word", "sentence", "auto")


def normalize_term(raw: str) -> str:
    """Trim, lower-case and collapse internal whitespace."""
    return _WHITESPACE.sub(" ", raw.strip()).lower()


def _has_control_chars(text: str) -> bool:
    return any(
        unicodedata.category(ch) == "Cc" and not ch.isspace()
        for ch in text
    )


def validate_term(raw) -> str:
    """Validate a word / short phrase and return its normalized form."""
    if not isinstance(raw, str):
        raise ValidationError("Term must be a string")
    term = normalize_term(raw)
    if not term:
        raise ValidationError("Term cannot be empty")
    if len(term) > MAX_TERM_LENGTH:
        raise ValidationError(f"Term must be at most {MAX_TERM_LENGTH} characters")
    if _has_control_chars(term):
        raise ValidationError("Term contains control characters")
    if any(len(word) > MAX_WORD_LENGTH for word in term.split(" ")):
        raise ValidationError(f"Individual words must be at most {MAX_WORD_LENGTH} characters")
    return term


def validate_text(raw) -> str:
    """Validate sentence input and return it trimmed (case preserved)."""
    if not isinstance(raw, str):
        raise ValidationError("Text must be a string")
    text = raw.strip()
    if not text:
        raise ValidationError("Text cannot be empty")
    if len(text) > MAX_TEXT_LENGTH:
        raise ValidationError(f"Text must be at most {MAX_TEXT_LENGTH} characters")
    if _has_control_chars(text):
        raise ValidationError("Text contains control characters")
    return text


def resolve_mode(text: str, mode: str = "auto") -> str:
    """Pick "word" or "sentence" for an analyze request."""
    if mode not in MODES:
        raise ValidationError(f"Invalid mode '{mode}'. Use one of: {', '.join(MODES)}")
    if mode != "auto":
        return mode
    return "sentence" if len(text.split()) >= AUTO_SENTENCE_MIN_TOKENS else "word"
