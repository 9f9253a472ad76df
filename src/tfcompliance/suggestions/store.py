"""Per-document registry of the active suggestion set."""

from __future__ import annotations

import logging
from typing import Iterable

from .models import LocatedSuggestion, Suggestion

LOGGER = logging.getLogger(__name__)


class SuggestionStore:
    """Single source of truth for the suggestions shown in each document.

    A store belongs to one controller; there is no shared instance. Access is not
    synchronized because every caller runs on the event loop thread.
    """

    def __init__(self) -> None:
        self._sets: dict[str, tuple[LocatedSuggestion, ...]] = {}

    def replace(self, document_id: str, suggestions: Iterable[LocatedSuggestion]) -> None:
        """Swap the whole active set of ``document_id`` in one step."""

        self._sets[document_id] = tuple(suggestions)
        LOGGER.debug("Stored %d suggestion(s) for %s", len(self._sets[document_id]), document_id)

    def get(self, document_id: str) -> tuple[LocatedSuggestion, ...]:
        return self._sets.get(document_id, ())

    def find(self, document_id: str, suggestion: Suggestion) -> LocatedSuggestion | None:
        """Return the stored entry matching ``suggestion`` exactly, if any."""

        for item in self._sets.get(document_id, ()):
            if item.matches(suggestion):
                return item
        return None

    def find_anywhere(self, suggestion: Suggestion) -> tuple[str, LocatedSuggestion] | None:
        """Search every document for ``suggestion``."""

        for document_id, items in self._sets.items():
            for item in items:
                if item.matches(suggestion):
                    return document_id, item
        return None

    def remove(self, document_id: str, suggestion: Suggestion) -> tuple[LocatedSuggestion, ...] | None:
        """Drop ``suggestion`` and return the remaining entries, or ``None`` if absent."""

        current = self._sets.get(document_id)
        if current is None:
            return None
        for index, item in enumerate(current):
            if item.matches(suggestion):
                remaining = current[:index] + current[index + 1 :]
                self._sets[document_id] = remaining
                return remaining
        return None

    def clear(self, document_id: str) -> None:
        self._sets.pop(document_id, None)

    def clear_all(self) -> None:
        self._sets.clear()

    def document_ids(self) -> tuple[str, ...]:
        return tuple(self._sets)

    def count(self, document_id: str) -> int:
        return len(self._sets.get(document_id, ()))

    def total_count(self) -> int:
        return sum(len(items) for items in self._sets.values())

    def __contains__(self, document_id: object) -> bool:
        return document_id in self._sets


__all__ = ["SuggestionStore"]
