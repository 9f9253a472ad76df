"""Locate, rank, prune and cap a batch of suggestions for one document."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Sequence

from ..editor.document_model import split_lines
from .conflicts import MIN_SPACING, resolve_conflicts
from .locator import SuggestionLocator
from .models import LocatedSuggestion, Suggestion
from .prioritizer import prioritize

LOGGER = logging.getLogger(__name__)

DEFAULT_MAX_SUGGESTIONS = 10
MIN_SUGGESTIONS_LIMIT = 1
MAX_SUGGESTIONS_LIMIT = 20


def clamp_max_suggestions(value: int) -> int:
    """Clamp a configured cap into the supported ``1..20`` range."""

    return max(MIN_SUGGESTIONS_LIMIT, min(int(value), MAX_SUGGESTIONS_LIMIT))


@dataclass(slots=True)
class PipelineResult:
    """Outcome of one pipeline run."""

    suggestions: tuple[LocatedSuggestion, ...]
    located: int
    found: int
    pruned: int
    truncated: int

    @property
    def kept(self) -> int:
        return len(self.suggestions)


class SuggestionPipeline:
    """Runs locate → prioritize → resolve conflicts → cap.

    The cap is applied to the pruned list, which is in line order, so a
    high-priority suggestion late in the file can be cut in favour of an earlier
    lower-priority one.
    """

    def __init__(
        self,
        *,
        locator: SuggestionLocator | None = None,
        max_suggestions: int = DEFAULT_MAX_SUGGESTIONS,
        min_spacing: int = MIN_SPACING,
    ) -> None:
        self._locator = locator or SuggestionLocator()
        self._max_suggestions = clamp_max_suggestions(max_suggestions)
        self._min_spacing = min_spacing

    @property
    def locator(self) -> SuggestionLocator:
        return self._locator

    @property
    def max_suggestions(self) -> int:
        return self._max_suggestions

    @max_suggestions.setter
    def max_suggestions(self, value: int) -> None:
        self._max_suggestions = clamp_max_suggestions(value)

    def run(self, text: str, suggestions: Iterable[Suggestion]) -> PipelineResult:
        """Locate ``suggestions`` in ``text`` and return the capped active set."""

        lines = split_lines(text)
        located = self._locator.locate_all(lines, suggestions)
        return self.rank(located)

    def rank(self, located: Sequence[LocatedSuggestion]) -> PipelineResult:
        """Prioritize, prune and cap suggestions that were already located."""

        ordered = prioritize(located)
        pruned = resolve_conflicts(ordered, min_spacing=self._min_spacing)
        capped = pruned[: self._max_suggestions]
        result = PipelineResult(
            suggestions=tuple(capped),
            located=len(located),
            found=sum(1 for item in located if item.found),
            pruned=len(ordered) - len(pruned),
            truncated=len(pruned) - len(capped),
        )
        LOGGER.debug(
            "Pipeline kept %d of %d suggestion(s) (found=%d, pruned=%d, truncated=%d)",
            result.kept,
            result.located,
            result.found,
            result.pruned,
            result.truncated,
        )
        return result


__all__ = [
    "DEFAULT_MAX_SUGGESTIONS",
    "MAX_SUGGESTIONS_LIMIT",
    "MIN_SUGGESTIONS_LIMIT",
    "PipelineResult",
    "SuggestionPipeline",
    "clamp_max_suggestions",
]
