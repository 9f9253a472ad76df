"""Keeps a display surface in sync with the suggestion lifecycle.

The presenter only listens to events; it never calls the controller. Whatever is
drawing highlights, the problem list and the status indicator implements
:class:`DisplaySink`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Protocol, Sequence

from ..core.ranges import LineRange
from ..suggestions.models import LocatedSuggestion
from .diagnostics import CodeAction, Diagnostic, build_diagnostics, provide_code_actions
from .events import (
    AnalysisCompleted,
    AnalysisFailed,
    AnalysisStarted,
    AutoAnalysisToggled,
    EventBus,
    NoticePosted,
    SuggestionsCleared,
    SuggestionsPublished,
)
from .hover import hover_at
from .status import StatusIndicator, status_for

LOGGER = logging.getLogger(__name__)
_LOG_LEVELS = {"info": logging.INFO, "warning": logging.WARNING, "error": logging.ERROR}


class DisplaySink(Protocol):
    """Rendering surface driven by :class:`SuggestionPresenter`."""

    def show_suggestions(
        self,
        document_id: str,
        highlights: tuple[LineRange, ...],
        diagnostics: tuple[Diagnostic, ...],
    ) -> None: ...

    def clear(self, document_id: str | None) -> None: ...

    def show_status(self, status: StatusIndicator) -> None: ...

    def show_notice(self, message: str, level: str) -> None: ...


@dataclass(slots=True)
class RecordingSink:
    """In-memory sink that remembers the latest state and logs notices."""

    highlights: dict[str, tuple[LineRange, ...]] = field(default_factory=dict)
    diagnostics: dict[str, tuple[Diagnostic, ...]] = field(default_factory=dict)
    status: StatusIndicator | None = None
    notices: list[tuple[str, str]] = field(default_factory=list)

    def show_suggestions(
        self,
        document_id: str,
        highlights: tuple[LineRange, ...],
        diagnostics: tuple[Diagnostic, ...],
    ) -> None:
        self.highlights[document_id] = highlights
        self.diagnostics[document_id] = diagnostics

    def clear(self, document_id: str | None) -> None:
        if document_id is None:
            self.highlights.clear()
            self.diagnostics.clear()
            return
        self.highlights.pop(document_id, None)
        self.diagnostics.pop(document_id, None)

    def show_status(self, status: StatusIndicator) -> None:
        self.status = status

    def show_notice(self, message: str, level: str) -> None:
        self.notices.append((level, message))
        LOGGER.log(_LOG_LEVELS.get(level, logging.INFO), "%s", message)


class SuggestionPresenter:
    """Mirrors published suggestion sets onto a :class:`DisplaySink`.

    Args:
        event_bus: Bus the controller publishes on.
        sink: Surface to draw on.
        auto_enabled: Initial automatic-analysis state shown by the status indicator.
    """

    def __init__(self, event_bus: EventBus, sink: DisplaySink, *, auto_enabled: bool = True) -> None:
        self._bus = event_bus
        self._sink = sink
        self._auto_enabled = auto_enabled
        self._suggestions: dict[str, tuple[LocatedSuggestion, ...]] = {}
        self._analyzing: set[str] = set()
        self._attached = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def attach(self) -> None:
        if self._attached:
            return
        self._attached = True
        for event_type, handler in self._subscriptions():
            self._bus.subscribe(event_type, handler)
        self._refresh_status()

    def detach(self) -> None:
        if not self._attached:
            return
        self._attached = False
        for event_type, handler in self._subscriptions():
            self._bus.unsubscribe(event_type, handler)

    def _subscriptions(self):
        return (
            (SuggestionsPublished, self._on_published),
            (SuggestionsCleared, self._on_cleared),
            (AnalysisStarted, self._on_started),
            (AnalysisCompleted, self._on_finished),
            (AnalysisFailed, self._on_finished),
            (AutoAnalysisToggled, self._on_toggled),
            (NoticePosted, self._on_notice),
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def is_analyzing(self) -> bool:
        return bool(self._analyzing)

    @property
    def total_count(self) -> int:
        return sum(len(items) for items in self._suggestions.values())

    def suggestions_for(self, document_id: str) -> tuple[LocatedSuggestion, ...]:
        return self._suggestions.get(document_id, ())

    def hover(self, document_id: str, line: int) -> str | None:
        return hover_at(self.suggestions_for(document_id), line)

    def code_actions(self, document_id: str, diagnostics: Sequence[Diagnostic]) -> list[CodeAction]:
        return provide_code_actions(diagnostics, self.suggestions_for(document_id))

    # ------------------------------------------------------------------
    # Event handlers
    # ------------------------------------------------------------------

    def _on_published(self, event: SuggestionsPublished) -> None:
        items = tuple(event.suggestions)
        if items:
            self._suggestions[event.document_id] = items
        else:
            self._suggestions.pop(event.document_id, None)
        highlights = tuple(item.location.match_range for item in items)
        self._sink.show_suggestions(event.document_id, highlights, build_diagnostics(items))
        self._refresh_status()

    def _on_cleared(self, event: SuggestionsCleared) -> None:
        if event.document_id is None:
            self._suggestions.clear()
            self._analyzing.clear()
        else:
            self._suggestions.pop(event.document_id, None)
            self._analyzing.discard(event.document_id)
        self._sink.clear(event.document_id)
        self._refresh_status()

    def _on_started(self, event: AnalysisStarted) -> None:
        self._analyzing.add(event.document_id)
        self._refresh_status()

    def _on_finished(self, event: AnalysisCompleted | AnalysisFailed) -> None:
        self._analyzing.discard(event.document_id)
        self._refresh_status()

    def _on_toggled(self, event: AutoAnalysisToggled) -> None:
        self._auto_enabled = event.enabled
        self._refresh_status()

    def _on_notice(self, event: NoticePosted) -> None:
        self._sink.show_notice(event.message, event.level)

    def _refresh_status(self) -> None:
        self._sink.show_status(
            status_for(
                analyzing=self.is_analyzing,
                auto_enabled=self._auto_enabled,
                issue_count=self.total_count,
            )
        )


__all__ = ["DisplaySink", "RecordingSink", "SuggestionPresenter"]
