"""Anchor loosely specified suggestions inside a document.

A suggestion only carries the code it wants to change and an unreliable line hint,
so :class:`SuggestionLocator` tries a cascade of increasingly tolerant strategies
and takes the first one that succeeds:

1. insertion point, for suggestions without original code
2. exact multi-line match on trimmed lines
3. structural match on the enclosing ``resource`` block
4. fuzzy sliding window scored on keywords and line similarity
5. fallback to the hinted line, flagged as not found

Every strategy is a pure function of the document lines and the suggestion;
ties go to the earliest line.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from itertools import accumulate
from typing import Iterable, Sequence

from ..core.ranges import LineRange
from .models import (
    STRATEGY_EXACT,
    STRATEGY_FALLBACK,
    STRATEGY_FUZZY,
    STRATEGY_INSERTION,
    STRATEGY_STRUCTURAL,
    LocatedSuggestion,
    Location,
    Suggestion,
)
from .similarity import jaccard_similarity, line_similarity
from .syntax import (
    extract_keywords,
    find_block_end,
    find_last_block_start,
    opens_block,
    parse_resource_identifier,
)

LOGGER = logging.getLogger(__name__)

Span = tuple[int, int]


@dataclass(slots=True, frozen=True)
class LocatorConfig:
    """Thresholds and weights used by the matching strategies."""

    exact_ratio: float = 0.8
    exact_min_run: int = 2
    half_match_score: float = 0.5
    structural_threshold: float = 0.3
    fuzzy_threshold: float = 15.0
    fuzzy_window_slack: int = 5
    keyword_weight: float = 10.0
    line_weight: float = 5.0
    length_penalty: float = 2.0


def snippet_lines(snippet: str) -> list[str]:
    """Return the trimmed, non-blank lines of ``snippet``."""

    return [line.strip() for line in snippet.split("\n") if line.strip()]


def _clamp(value: int, lower: int, upper: int) -> int:
    return max(lower, min(value, upper))


class SuggestionLocator:
    """Resolve suggestions to document spans."""

    def __init__(self, config: LocatorConfig | None = None) -> None:
        self._config = config or LocatorConfig()

    @property
    def config(self) -> LocatorConfig:
        return self._config

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def locate(self, lines: Sequence[str], suggestion: Suggestion) -> Location:
        """Return the best location for ``suggestion`` within ``lines``."""

        if suggestion.is_insertion:
            line = self.insertion_line(lines, suggestion)
            return Location(line, line, True, LineRange.caret(line), STRATEGY_INSERTION)

        original = suggestion.original_code_snippet
        for strategy, matcher in (
            (STRATEGY_EXACT, self.match_exact),
            (STRATEGY_STRUCTURAL, self.match_structural),
            (STRATEGY_FUZZY, self.match_fuzzy),
        ):
            span = matcher(lines, original)
            if span is not None:
                start, end = span
                LOGGER.debug(
                    "Located suggestion (hint line %d) via %s at lines %d-%d",
                    suggestion.line_number,
                    strategy,
                    start + 1,
                    end + 1,
                )
                return Location(
                    start,
                    end,
                    True,
                    LineRange.from_lines(start, end, end_column=len(lines[end])),
                    strategy,
                )

        line = _clamp(suggestion.line_number - 1, 0, max(len(lines) - 1, 0))
        LOGGER.debug(
            "No confident match for suggestion (hint line %d); falling back to line %d",
            suggestion.line_number,
            line + 1,
        )
        width = len(lines[line]) if lines else 0
        return Location(
            line,
            line,
            False,
            LineRange.from_lines(line, line, end_column=width),
            STRATEGY_FALLBACK,
        )

    def locate_all(
        self, lines: Sequence[str], suggestions: Iterable[Suggestion]
    ) -> list[LocatedSuggestion]:
        return [LocatedSuggestion.build(item, self.locate(lines, item)) for item in suggestions]

    # ------------------------------------------------------------------
    # Strategies
    # ------------------------------------------------------------------
    def insertion_line(self, lines: Sequence[str], suggestion: Suggestion) -> int:
        """Return the line where an insertion-only suggestion should land.

        New blocks go right after the last block of the same kind; anything else
        goes to the hinted line, clamped to ``[0, line_count]``.
        """

        if opens_block(suggestion.suggested_code_snippet):
            start = find_last_block_start(lines)
            if start != -1:
                end = find_block_end(lines, start)
                return end + 1 if end != -1 else start + 1
        return _clamp(suggestion.line_number - 1, 0, len(lines))

    def match_exact(self, lines: Sequence[str], snippet: str) -> Span | None:
        """Slide the trimmed snippet over the document and return the best window.

        A line scores 1 when trimmed-equal and ``half_match_score`` when one side
        contains the other. A window qualifies when its score reaches
        ``exact_ratio`` of its length and it holds a run of consecutive full matches
        of at least ``min(exact_min_run, length)``. The highest score wins.
        """

        target = snippet_lines(snippet)
        size = len(target)
        if size == 0 or size > len(lines):
            return None
        config = self._config
        required_run = min(config.exact_min_run, size)
        threshold = config.exact_ratio * size
        trimmed = [line.strip() for line in lines]

        best: Span | None = None
        best_score = -1.0
        for start in range(len(lines) - size + 1):
            score = 0.0
            run = 0
            longest_run = 0
            for offset, expected in enumerate(target):
                actual = trimmed[start + offset]
                if actual == expected:
                    score += 1.0
                    run += 1
                    longest_run = max(longest_run, run)
                elif actual in expected or expected in actual:
                    score += config.half_match_score
                else:
                    run = 0
            if score >= threshold and longest_run >= required_run and score > best_score:
                best = (start, start + size - 1)
                best_score = score
                if score == size:
                    break
        return best

    def match_structural(self, lines: Sequence[str], snippet: str) -> Span | None:
        """Match the snippet's ``resource`` block by identifier and word overlap."""

        identifier = parse_resource_identifier(snippet)
        if identifier is None:
            return None
        for start, line in enumerate(lines):
            if not identifier.declared_by(line):
                continue
            end = find_block_end(lines, start)
            if end == -1:
                continue
            block = "\n".join(lines[start : end + 1]).strip()
            similarity = jaccard_similarity(block, snippet)
            if similarity > self._config.structural_threshold:
                return (start, end)
            LOGGER.debug(
                "Block %s.%s at line %d too dissimilar (%.2f)",
                identifier.type,
                identifier.name,
                start + 1,
                similarity,
            )
        return None

    def match_fuzzy(self, lines: Sequence[str], snippet: str) -> Span | None:
        """Score every window of up to ``len(snippet) + slack`` lines; keep the best."""

        target = snippet_lines(snippet)
        size = len(target)
        if size == 0 or not lines:
            return None
        config = self._config
        target_keywords = extract_keywords(snippet)
        # Per-line similarity against every snippet line, summed so windows can use prefix sums.
        line_scores = [sum(line_similarity(expected, line) for expected in target) for line in lines]
        prefix = [0.0, *accumulate(line_scores)]

        best: Span | None = None
        best_score = config.fuzzy_threshold
        total = len(lines)
        for start in range(total):
            for end in range(start, min(start + size + config.fuzzy_window_slack, total)):
                window_keywords = set(extract_keywords("\n".join(lines[start : end + 1])))
                shared = sum(1 for keyword in target_keywords if keyword in window_keywords)
                window_size = end - start + 1
                score = (
                    config.keyword_weight * shared
                    + config.line_weight * (prefix[end + 1] - prefix[start])
                    - config.length_penalty * abs(size - window_size)
                )
                if score > best_score:
                    best_score = score
                    best = (start, end)
        if best is not None:
            LOGGER.debug("Fuzzy window %d-%d scored %.1f", best[0] + 1, best[1] + 1, best_score)
        return best


_DEFAULT_LOCATOR = SuggestionLocator()


def locate(lines: Sequence[str], suggestion: Suggestion) -> Location:
    """Locate ``suggestion`` with the default thresholds."""

    return _DEFAULT_LOCATOR.locate(lines, suggestion)


__all__ = ["LocatorConfig", "SuggestionLocator", "locate", "snippet_lines"]
