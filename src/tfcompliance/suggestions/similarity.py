"""Cheap text similarity measures used by the locator.

``line_similarity`` is a positional character-match ratio, not an edit distance:
it under-estimates lines that differ by an inserted or shifted character.
"""

from __future__ import annotations

import re

_WHITESPACE_RE = re.compile(r"\s+")

FULL_MATCH = 1.0
CONTAINED_MATCH = 0.8


def normalize_line(text: str) -> str:
    """Lower-case ``text`` and drop every whitespace character."""

    return _WHITESPACE_RE.sub("", text.lower())


def word_tokens(text: str) -> set[str]:
    """Return the lower-cased, whitespace-separated word set of ``text``."""

    return set(text.lower().split())


def jaccard_similarity(left: str, right: str) -> float:
    """Return |intersection| / |union| of the word sets of ``left`` and ``right``."""

    left_tokens = word_tokens(left)
    right_tokens = word_tokens(right)
    union = left_tokens | right_tokens
    if not union:
        return 0.0
    return len(left_tokens & right_tokens) / len(union)


def line_similarity(left: str, right: str) -> float:
    """Score two lines between 0 and 1 after normalization.

    Equal lines score 1.0 and containment scores 0.8; an empty normalized line is
    contained in anything. Otherwise the score is the share of positions holding
    the same character, relative to the longer line.
    """

    a = normalize_line(left)
    b = normalize_line(right)
    if a == b:
        return FULL_MATCH
    if a in b or b in a:
        return CONTAINED_MATCH
    longer = max(len(a), len(b))
    matches = sum(1 for x, y in zip(a, b) if x == y)
    return matches / longer


__all__ = [
    "CONTAINED_MATCH",
    "FULL_MATCH",
    "jaccard_similarity",
    "line_similarity",
    "normalize_line",
    "word_tokens",
]
