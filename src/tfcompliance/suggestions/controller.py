"""Suggestion lifecycle controller.

Decides when a document is (re-)analyzed, feeds advisory results through the
pipeline into the store, and applies or dismisses individual suggestions.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any, Coroutine

from ..ai.errors import ApplyFailure, ErrorCode, LookupFailure, ParseFailure, RequestFailure
from ..editor.patches import LineEdit, PatchApplyError
from ..ui.events import (
    ActiveDocumentChanged,
    AnalysisCompleted,
    AnalysisFailed,
    AnalysisStarted,
    AutoAnalysisToggled,
    DocumentClosed,
    DocumentModified,
    EventBus,
    NoticePosted,
    SuggestionAccepted,
    SuggestionDeclined,
    SuggestionsCleared,
    SuggestionsPublished,
)
from ..utils.logging import set_debug_enabled
from .models import LocatedSuggestion, Suggestion
from .pipeline import PipelineResult, SuggestionPipeline
from .store import SuggestionStore

if TYPE_CHECKING:  # pragma: no cover
    from ..ai.client import AdvisoryClient
    from ..editor.document_model import DocumentState
    from ..editor.workspace import DocumentWorkspace
    from ..services.settings import Settings, SettingsStore

LOGGER = logging.getLogger(__name__)

TRIGGER_EDIT = "edit"
TRIGGER_FOCUS = "focus"
TRIGGER_TIMER = "timer"
TRIGGER_STARTUP = "startup"
TRIGGER_MANUAL = "manual"


def leading_whitespace(line: str | None) -> str:
    """Return the indentation of ``line`` (empty for missing lines)."""

    if not line:
        return ""
    return line[: len(line) - len(line.lstrip())]


class SuggestionController:
    """Runs the analyze → locate → rank → store cycle for every open Terraform document.

    Automatic analysis is driven by three triggers: a debounced edit, a short delay
    after focus moves to another document, and a periodic timer on the active
    document. A run only starts when nothing is in flight and the text differs from
    the last analyzed snapshot; triggers arriving during a run are dropped.

    The store, the snapshots and the busy flag are only touched from the event loop
    thread, so none of them are locked.

    Events Emitted:
        - AnalysisStarted / AnalysisCompleted / AnalysisFailed
        - SuggestionsPublished: whenever a document's active set is replaced
        - SuggestionAccepted / SuggestionDeclined
        - SuggestionsCleared: on document close and disposal
        - AutoAnalysisToggled, NoticePosted
    """

    def __init__(
        self,
        workspace: DocumentWorkspace,
        client: AdvisoryClient,
        settings: Settings,
        *,
        event_bus: EventBus | None = None,
        settings_store: SettingsStore | None = None,
        pipeline: SuggestionPipeline | None = None,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self._workspace = workspace
        self._client = client
        self._settings = settings
        self._bus = event_bus or workspace.event_bus
        self._settings_store = settings_store
        self._pipeline = pipeline or SuggestionPipeline(
            max_suggestions=settings.max_suggestions_per_file
        )
        self._loop = loop
        self._store = SuggestionStore()
        self._snapshots: dict[str, str] = {}
        self._busy = False
        self._started = False
        self._disposed = False
        self._auto_enabled = settings.enable_auto_analysis
        self._auto_running = False
        self._debounce_handles: dict[str, asyncio.TimerHandle] = {}
        self._focus_handle: asyncio.TimerHandle | None = None
        self._periodic_task: asyncio.Task[None] | None = None
        self._tasks: set[asyncio.Task[Any]] = set()

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def store(self) -> SuggestionStore:
        return self._store

    @property
    def pipeline(self) -> SuggestionPipeline:
        return self._pipeline

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def is_busy(self) -> bool:
        return self._busy

    @property
    def auto_analysis_enabled(self) -> bool:
        return self._auto_enabled

    @property
    def disposed(self) -> bool:
        return self._disposed

    def suggestions_for(self, document_id: str) -> tuple[LocatedSuggestion, ...]:
        return self._store.get(document_id)

    def last_analyzed_text(self, document_id: str) -> str | None:
        return self._snapshots.get(document_id)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Subscribe to workspace events and arm automatic analysis.

        Must be called from a running event loop. When auto-analysis is enabled the
        active Terraform document is analyzed once right away.
        """
        if self._started or self._disposed:
            return
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        self._started = True
        self._bus.subscribe(DocumentClosed, self._on_document_closed)
        self._apply_log_level()
        if self._auto_enabled:
            self._start_auto()
            active = self._workspace.active_document
            if active is not None and active.is_terraform:
                self._spawn(self.analyze_document(active.document_id, trigger=TRIGGER_STARTUP))
        LOGGER.debug("SuggestionController started (auto_analysis=%s)", self._auto_enabled)

    def dispose(self) -> None:
        """Stop timers and listeners and clear every displayed suggestion.

        In-flight advisory calls are not cancelled; their results are ignored.
        """
        if self._disposed:
            return
        self._disposed = True
        self._stop_auto()
        self._bus.unsubscribe(DocumentClosed, self._on_document_closed)
        self._store.clear_all()
        self._snapshots.clear()
        self._bus.publish(SuggestionsCleared(document_id=None))
        LOGGER.debug("SuggestionController disposed")

    async def wait_for_pending(self) -> None:
        """Wait for analysis tasks spawned by triggers to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # ------------------------------------------------------------------
    # Analysis
    # ------------------------------------------------------------------

    async def analyze_document(
        self, document_id: str, *, trigger: str = TRIGGER_EDIT
    ) -> tuple[LocatedSuggestion, ...] | None:
        """Run an automatic analysis of ``document_id`` if one is warranted.

        Returns the new active set, or ``None`` when the run was skipped or failed.
        Request failures are logged and swallowed.
        """
        if self._disposed:
            return None
        document = self._workspace.get_document(document_id)
        if document is None or not document.is_terraform:
            return None
        if self._busy:
            LOGGER.debug("Skipping %s analysis of %s: analysis already running", trigger, document_id)
            return None
        text = document.text
        if self._snapshots.get(document_id) == text:
            LOGGER.debug("Skipping %s analysis of %s: content unchanged", trigger, document_id)
            return None
        result = await self._run_analysis(document_id, text, trigger=trigger, strict=False)
        return result.suggestions if result is not None else None

    async def manual_analyze(self, document_id: str | None = None) -> tuple[LocatedSuggestion, ...] | None:
        """Analyze a document on request, ignoring the unchanged-content check.

        Args:
            document_id: Document to analyze; defaults to the active one.

        Returns:
            The new active set, or ``None`` when another analysis is running.

        Raises:
            LookupFailure: when there is no Terraform document to analyze.
            RequestFailure: when the advisory service cannot be reached.
            ParseFailure: when the advisory response is malformed.
        """
        document = self._resolve_target(document_id)
        if self._busy:
            self._notify("Analysis already in progress. Please wait...", "warning")
            return None
        result = await self._run_analysis(
            document.document_id, document.text, trigger=TRIGGER_MANUAL, strict=True
        )
        if result is None:
            return None
        if result.located:
            noun = "issue" if result.located == 1 else "issues"
            self._notify(
                f"Found {result.located} compliance {noun}. "
                f"Showing top {result.kept} suggestions."
            )
        else:
            self._notify("No compliance issues found! Your Terraform code looks good.")
        return result.suggestions

    async def _run_analysis(
        self, document_id: str, text: str, *, trigger: str, strict: bool
    ) -> PipelineResult | None:
        self._busy = True
        self._bus.publish(AnalysisStarted(document_id=document_id, trigger=trigger))
        LOGGER.debug("Analyzing %s (trigger=%s, %d chars)", document_id, trigger, len(text))
        try:
            raw = await self._client.analyze(text, strict=strict)
        except (RequestFailure, ParseFailure) as exc:
            if not self._disposed:
                self._bus.publish(AnalysisFailed(document_id=document_id, error=str(exc)))
            if strict:
                raise
            LOGGER.warning("Automatic analysis of %s failed: %s", document_id, exc)
            return None
        finally:
            self._busy = False

        if self._disposed:
            LOGGER.debug("Ignoring analysis result for %s after disposal", document_id)
            return None
        if self._workspace.get_document(document_id) is None:
            LOGGER.debug("Ignoring analysis result for closed document %s", document_id)
            return None

        self._snapshots[document_id] = text
        result = self._pipeline.run(text, raw)
        self._publish(document_id, result.suggestions)
        self._bus.publish(
            AnalysisCompleted(document_id=document_id, received=len(raw), kept=result.kept)
        )
        return result

    # ------------------------------------------------------------------
    # Accept / decline
    # ------------------------------------------------------------------

    def accept(
        self,
        suggestion: Suggestion,
        document_id: str | None = None,
        *,
        relocate: bool = False,
    ) -> LocatedSuggestion:
        """Apply ``suggestion`` to its document and refresh the remaining suggestions.

        Only stored suggestions are applied, at their stored location, so a second
        accept of the same suggestion is rejected instead of editing twice. Hosts that
        apply suggestions they never stored pass ``relocate=True`` to locate the
        suggestion against the current text.

        Raises:
            ApplyFailure: when the original code can no longer be located.
            LookupFailure: when the suggestion is not stored, or when no document
                can be resolved for it.
        """
        document = self._resolve_owner(suggestion, document_id)
        located = self._store.find(document.document_id, suggestion)
        if located is None:
            if not relocate:
                raise LookupFailure(
                    message=(
                        "Could not find suggestion to apply. "
                        "It may have already been applied or removed."
                    ),
                    details={
                        "document_id": document.document_id,
                        "line_number": suggestion.line_number,
                    },
                )
            location = self._pipeline.locator.locate(document.lines, suggestion)
            located = LocatedSuggestion.build(suggestion, location)
        if not located.found and not suggestion.is_insertion:
            raise ApplyFailure(
                details={"document_id": document.document_id, "line_number": suggestion.line_number}
            )

        start_line = located.start_line
        indentation = leading_whitespace(document.line_at(start_line))
        if suggestion.is_insertion:
            edit = LineEdit.insert(
                start_line, f"{indentation}{suggestion.suggested_code_snippet}\n"
            )
        else:
            edit = LineEdit(
                located.location.match_range,
                f"{indentation}{suggestion.suggested_code_snippet}",
            )
        try:
            self._workspace.apply_edit(document.document_id, edit)
        except PatchApplyError as exc:
            raise ApplyFailure(
                error_code=ErrorCode.EDIT_REJECTED,
                message=f"Could not apply suggestion: {exc}",
                details=exc.details(),
            ) from exc

        self._store.remove(document.document_id, suggestion)
        self._refresh(document.document_id)
        self._bus.publish(
            SuggestionAccepted(
                document_id=document.document_id,
                suggestion=located.suggestion,
                start_line=start_line,
            )
        )
        self._notify("Suggestion applied successfully")
        LOGGER.debug("Accepted suggestion at line %d of %s", start_line + 1, document.document_id)
        return located

    def decline(self, suggestion: Suggestion, document_id: str | None = None) -> None:
        """Dismiss ``suggestion`` without editing and refresh the remaining suggestions.

        Raises:
            LookupFailure: when the suggestion is not in the store.
        """
        if document_id is None:
            owner = self._store.find_anywhere(suggestion)
            document_id = owner[0] if owner is not None else None
        if document_id is None or self._store.remove(document_id, suggestion) is None:
            raise LookupFailure(details={"line_number": suggestion.line_number})

        self._refresh(document_id)
        self._bus.publish(SuggestionDeclined(document_id=document_id, suggestion=suggestion))
        self._notify("Suggestion dismissed successfully")

    def _refresh(self, document_id: str) -> None:
        """Re-locate the remaining suggestions against the current text and re-rank them."""
        remaining = self._store.get(document_id)
        document = self._workspace.get_document(document_id)
        if document is None:
            self._store.clear(document_id)
            return
        relocated = self._pipeline.locator.locate_all(
            document.lines, (item.raw for item in remaining)
        )
        result = self._pipeline.rank(relocated)
        self._publish(document_id, result.suggestions)

    def _publish(self, document_id: str, suggestions: tuple[LocatedSuggestion, ...]) -> None:
        self._store.replace(document_id, suggestions)
        self._bus.publish(SuggestionsPublished(document_id=document_id, suggestions=suggestions))

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    def toggle_auto_analysis(self) -> bool:
        """Flip automatic analysis, persist the choice and return the new state."""
        enabled = not self._auto_enabled
        self._set_auto_enabled(enabled)
        self._settings.enable_auto_analysis = enabled
        if self._settings_store is not None:
            try:
                self._settings_store.update(enable_auto_analysis=enabled)
            except OSError as exc:
                LOGGER.warning("Unable to persist auto-analysis setting: %s", exc)
        self._bus.publish(AutoAnalysisToggled(enabled=enabled))
        self._notify(f"Terraform auto-analysis {'enabled' if enabled else 'disabled'}")
        return enabled

    def apply_settings(self, settings: Settings) -> None:
        """Adopt reloaded settings: delays, cap, logging and the auto-analysis flag."""
        self._settings = settings
        self._pipeline.max_suggestions = settings.max_suggestions_per_file
        self._apply_log_level()
        if settings.enable_auto_analysis != self._auto_enabled:
            self._set_auto_enabled(settings.enable_auto_analysis)
            self._bus.publish(AutoAnalysisToggled(enabled=settings.enable_auto_analysis))
        elif self._auto_running:
            self._restart_periodic()
        LOGGER.debug(
            "Settings applied (debounce=%dms, interval=%dms, max=%d)",
            settings.debounce_delay,
            settings.analysis_interval,
            self._pipeline.max_suggestions,
        )

    def _set_auto_enabled(self, enabled: bool) -> None:
        self._auto_enabled = enabled
        if not self._started or self._disposed:
            return
        if enabled:
            self._start_auto()
        else:
            self._stop_auto()

    def _apply_log_level(self) -> None:
        set_debug_enabled(self._settings.enable_debug_logging)

    # ------------------------------------------------------------------
    # Triggers
    # ------------------------------------------------------------------

    def _start_auto(self) -> None:
        if self._auto_running:
            return
        self._auto_running = True
        self._bus.subscribe(DocumentModified, self._on_document_modified)
        self._bus.subscribe(ActiveDocumentChanged, self._on_active_changed)
        self._restart_periodic()

    def _stop_auto(self) -> None:
        if not self._auto_running:
            return
        self._auto_running = False
        self._bus.unsubscribe(DocumentModified, self._on_document_modified)
        self._bus.unsubscribe(ActiveDocumentChanged, self._on_active_changed)
        for handle in self._debounce_handles.values():
            handle.cancel()
        self._debounce_handles.clear()
        if self._focus_handle is not None:
            self._focus_handle.cancel()
            self._focus_handle = None
        if self._periodic_task is not None:
            self._periodic_task.cancel()
            self._periodic_task = None

    def _restart_periodic(self) -> None:
        if self._periodic_task is not None:
            self._periodic_task.cancel()
            self._periodic_task = None
        if self._settings.analysis_interval <= 0 or self._loop is None:
            return
        self._periodic_task = self._loop.create_task(self._periodic_loop())

    async def _periodic_loop(self) -> None:
        while not self._disposed:
            await asyncio.sleep(self._settings.interval_seconds)
            active = self._workspace.active_document
            if active is None or not active.is_terraform:
                continue
            await self.analyze_document(active.document_id, trigger=TRIGGER_TIMER)

    def _on_document_modified(self, event: DocumentModified) -> None:
        document = self._workspace.get_document(event.document_id)
        if document is None or not document.is_terraform or self._loop is None:
            return
        handle = self._debounce_handles.pop(event.document_id, None)
        if handle is not None:
            handle.cancel()
        self._debounce_handles[event.document_id] = self._loop.call_later(
            self._settings.debounce_seconds, self._fire, event.document_id, TRIGGER_EDIT
        )

    def _on_active_changed(self, event: ActiveDocumentChanged) -> None:
        if self._focus_handle is not None:
            self._focus_handle.cancel()
            self._focus_handle = None
        if event.document_id is None or self._loop is None:
            return
        document = self._workspace.get_document(event.document_id)
        if document is None or not document.is_terraform:
            return
        self._focus_handle = self._loop.call_later(
            self._settings.focus_delay_seconds, self._fire, event.document_id, TRIGGER_FOCUS
        )

    def _on_document_closed(self, event: DocumentClosed) -> None:
        handle = self._debounce_handles.pop(event.document_id, None)
        if handle is not None:
            handle.cancel()
        self._snapshots.pop(event.document_id, None)
        if event.document_id in self._store:
            self._store.clear(event.document_id)
        self._bus.publish(SuggestionsCleared(document_id=event.document_id))

    def _fire(self, document_id: str, trigger: str) -> None:
        if trigger == TRIGGER_EDIT:
            self._debounce_handles.pop(document_id, None)
        elif trigger == TRIGGER_FOCUS:
            self._focus_handle = None
        if self._disposed:
            return
        self._spawn(self.analyze_document(document_id, trigger=trigger))

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> None:
        assert self._loop is not None
        task = self._loop.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _resolve_target(self, document_id: str | None) -> DocumentState:
        document = (
            self._workspace.get_document(document_id)
            if document_id is not None
            else self._workspace.active_document
        )
        if document is None:
            raise LookupFailure(
                error_code=ErrorCode.DOCUMENT_NOT_FOUND,
                message="No active editor found",
            )
        if not document.is_terraform:
            raise LookupFailure(
                error_code=ErrorCode.DOCUMENT_NOT_FOUND,
                message="Current file is not a Terraform file (.tf or .tfvars)",
                details={"document_id": document.document_id, "language": document.language},
            )
        return document

    def _resolve_owner(self, suggestion: Suggestion, document_id: str | None) -> DocumentState:
        if document_id is None:
            owner = self._store.find_anywhere(suggestion)
            if owner is not None:
                document_id = owner[0]
        return self._resolve_target(document_id)

    def _notify(self, message: str, level: str = "info") -> None:
        self._bus.publish(NoticePosted(message=message, level=level))


__all__ = ["SuggestionController", "leading_whitespace"]
