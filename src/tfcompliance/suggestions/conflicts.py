"""Drop suggestions whose spans overlap or sit too close to one another."""

from __future__ import annotations

from typing import Sequence

from .models import LocatedSuggestion

MIN_SPACING = 2


def resolve_conflicts(
    items: Sequence[LocatedSuggestion], *, min_spacing: int = MIN_SPACING
) -> list[LocatedSuggestion]:
    """Greedily keep suggestions in line order, skipping ones that crowd the last kept span.

    ``items`` should arrive in priority order: the line sort is stable, so among
    suggestions starting on the same line the higher-priority one is kept.
    """

    if len(items) <= 1:
        return list(items)

    kept: list[LocatedSuggestion] = []
    last_end_line = -1
    for item in sorted(items, key=lambda located: located.start_line):
        if item.start_line >= last_end_line + min_spacing:
            kept.append(item)
            last_end_line = item.end_line
    return kept


__all__ = ["MIN_SPACING", "resolve_conflicts"]
