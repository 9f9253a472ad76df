"""Event bus infrastructure for decoupled communication between the engine and displays.

The suggestion controller, the document workspace and the display adapters never
reference each other directly; they exchange the events defined here.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import (
    TYPE_CHECKING,
    Callable,
    Generic,
    TypeVar,
)
from weakref import WeakMethod, ref

if TYPE_CHECKING:  # pragma: no cover - imports for type checking only
    from typing import DefaultDict

    from ..suggestions.models import LocatedSuggestion, Suggestion

logger = logging.getLogger(__name__)

E = TypeVar("E", bound="Event")

Handler = Callable[[E], None]


@dataclass(slots=True)
class Event:
    """Base class for all events in the system.

    Example::

        @dataclass(slots=True)
        class DocumentOpened(Event):
            document_id: str
            path: str | None = None
    """

    pass


# Event types that fire on every keystroke and should not log each publish
_QUIET_EVENT_TYPES: set[type] = set()


# =============================================================================
# Document Events
# =============================================================================


@dataclass(slots=True)
class DocumentOpened(Event):
    """Emitted when a document is added to the workspace.

    Attributes:
        document_id: The unique identifier of the document.
        language: The language identifier inferred for the document.
        path: The filesystem path the document was opened from, if any.
    """

    document_id: str
    language: str
    path: str | None = None


@dataclass(slots=True)
class DocumentClosed(Event):
    """Emitted when a document is removed from the workspace.

    Attributes:
        document_id: The unique identifier of the closed document.
    """

    document_id: str


@dataclass(slots=True)
class DocumentModified(Event):
    """Emitted when a document's content changes.

    Attributes:
        document_id: The unique identifier of the document.
        version_id: The incremented version number after the modification.
        content_hash: A hash of the document content for change detection.
    """

    document_id: str
    version_id: int
    content_hash: str


_QUIET_EVENT_TYPES.add(DocumentModified)


@dataclass(slots=True)
class ActiveDocumentChanged(Event):
    """Emitted when the focused document changes.

    Attributes:
        document_id: The newly active document, or None when nothing is focused.
    """

    document_id: str | None


# =============================================================================
# Analysis Events
# =============================================================================


@dataclass(slots=True)
class AnalysisStarted(Event):
    """Emitted when a document is sent to the advisory service.

    Attributes:
        document_id: The document being analyzed.
        trigger: What started the run ("edit", "focus", "timer", "manual", "startup").
    """

    document_id: str
    trigger: str


@dataclass(slots=True)
class AnalysisCompleted(Event):
    """Emitted when an analysis run finished and the active set was replaced.

    Attributes:
        document_id: The analyzed document.
        received: Number of raw suggestions returned by the advisory service.
        kept: Number of suggestions kept after pruning and capping.
    """

    document_id: str
    received: int
    kept: int


@dataclass(slots=True)
class AnalysisFailed(Event):
    """Emitted when an analysis run could not complete.

    Attributes:
        document_id: The document whose analysis failed.
        error: A description of the failure.
    """

    document_id: str
    error: str


@dataclass(slots=True)
class SuggestionsPublished(Event):
    """Emitted whenever a document's active suggestion set is replaced.

    Attributes:
        document_id: The document the suggestions belong to.
        suggestions: The new active set, in line order.
    """

    document_id: str
    suggestions: tuple["LocatedSuggestion", ...]


@dataclass(slots=True)
class SuggestionAccepted(Event):
    """Emitted after a suggestion was applied to its document.

    Attributes:
        document_id: The edited document.
        suggestion: The suggestion that was applied.
        start_line: First line touched by the edit (0-based).
    """

    document_id: str
    suggestion: "Suggestion"
    start_line: int


@dataclass(slots=True)
class SuggestionDeclined(Event):
    """Emitted after a suggestion was dismissed.

    Attributes:
        document_id: The document the suggestion belonged to.
        suggestion: The dismissed suggestion.
    """

    document_id: str
    suggestion: "Suggestion"


@dataclass(slots=True)
class SuggestionsCleared(Event):
    """Emitted when every displayed suggestion for a document must go away.

    Attributes:
        document_id: The document to clear, or None to clear all documents.
    """

    document_id: str | None = None


# =============================================================================
# UI Events
# =============================================================================


@dataclass(slots=True)
class NoticePosted(Event):
    """Emitted when a notice should be shown to the user.

    Attributes:
        message: The notice text.
        level: One of "info", "warning" or "error".
    """

    message: str
    level: str = "info"


@dataclass(slots=True)
class AutoAnalysisToggled(Event):
    """Emitted when automatic analysis is switched on or off.

    Attributes:
        enabled: The new state of automatic analysis.
    """

    enabled: bool


class EventBus(Generic[E]):
    """A typed publish-subscribe event bus for decoupled communication.

    Handlers are stored as weak references where possible (bound methods) so a
    subscriber that is garbage collected silently drops out of the bus.

    Example::

        bus = EventBus()
        bus.subscribe(DocumentClosed, lambda event: print(event.document_id))
        bus.publish(DocumentClosed(document_id="main.tf"))

    Thread Safety:
        This implementation is NOT thread-safe. All operations should be
        performed from the thread running the asyncio event loop.
    """

    __slots__ = ("_handlers",)

    def __init__(self) -> None:
        self._handlers: DefaultDict[type[Event], list[_HandlerRef]] = defaultdict(list)

    def subscribe(self, event_type: type[E], handler: Handler[E]) -> None:
        """Register a handler to receive events of the specified type.

        Args:
            event_type: The class of events to subscribe to.
            handler: A callable that will be invoked with the event.

        Note:
            Subscribing the same handler multiple times will result in
            multiple invocations when an event is published.
        """
        handler_ref = _HandlerRef.create(handler)
        self._handlers[event_type].append(handler_ref)
        logger.debug(
            "Subscribed handler %s to event type %s",
            _handler_name(handler),
            event_type.__name__,
        )

    def unsubscribe(self, event_type: type[E], handler: Handler[E]) -> None:
        """Remove a previously registered handler.

        Only the first registration is removed. Unknown handlers are ignored.
        """
        handlers = self._handlers.get(event_type)
        if handlers is None:
            return

        for i, handler_ref in enumerate(handlers):
            if handler_ref.matches(handler):
                handlers.pop(i)
                logger.debug(
                    "Unsubscribed handler %s from event type %s",
                    _handler_name(handler),
                    event_type.__name__,
                )
                return

    def publish(self, event: E) -> None:
        """Broadcast an event to all registered handlers.

        Handlers are invoked synchronously in registration order. A handler that
        raises is logged and the remaining handlers still run.

        Args:
            event: The event instance to publish.
        """
        event_type = type(event)
        handlers = self._handlers.get(event_type)
        is_quiet = event_type in _QUIET_EVENT_TYPES

        if not handlers:
            if not is_quiet:
                logger.debug("No handlers for event type %s", event_type.__name__)
            return

        if not is_quiet:
            logger.debug(
                "Publishing %s to %d handler(s)",
                event_type.__name__,
                len(handlers),
            )

        dead: list[_HandlerRef] = []
        # Handlers may unsubscribe while we iterate.
        for handler_ref in list(handlers):
            handler = handler_ref.resolve()
            if handler is None:
                dead.append(handler_ref)
                continue

            try:
                handler(event)
            except Exception:
                logger.exception(
                    "Handler %s raised exception for event %s",
                    _handler_name(handler),
                    event_type.__name__,
                )

        for handler_ref in dead:
            if handler_ref in handlers:
                handlers.remove(handler_ref)

    def clear(self) -> None:
        """Remove all registered handlers."""
        self._handlers.clear()
        logger.debug("Cleared all event handlers")

    def handler_count(self, event_type: type[E] | None = None) -> int:
        """Return the number of registered handlers, optionally for one event type."""
        if event_type is not None:
            return len(self._handlers.get(event_type, []))
        return sum(len(handlers) for handlers in self._handlers.values())


class _HandlerRef:
    """Wrapper for handler references supporting both weak and strong refs.

    Bound methods are held through :class:`WeakMethod`; plain functions and
    lambdas are held strongly.
    """

    __slots__ = ("_ref", "_is_weak")

    def __init__(self, handler_ref: WeakMethod | ref | Handler, is_weak: bool) -> None:
        self._ref = handler_ref
        self._is_weak = is_weak

    @classmethod
    def create(cls, handler: Handler) -> _HandlerRef:
        if hasattr(handler, "__self__") and hasattr(handler, "__func__"):
            try:
                return cls(WeakMethod(handler), is_weak=True)
            except TypeError:
                pass
        return cls(handler, is_weak=False)

    def resolve(self) -> Handler | None:
        if not self._is_weak:
            return self._ref  # type: ignore[return-value]
        return self._ref()  # type: ignore[operator]

    def matches(self, handler: Handler) -> bool:
        resolved = self.resolve()
        if resolved is None:
            return False
        return resolved == handler


def _handler_name(handler: Handler) -> str:
    """Get a human-readable name for a handler for logging purposes."""
    if hasattr(handler, "__self__") and hasattr(handler, "__func__"):
        cls_name = type(handler.__self__).__name__
        return f"{cls_name}.{handler.__func__.__name__}"
    if hasattr(handler, "__name__"):
        return handler.__name__
    return repr(handler)


__all__ = [
    # Core infrastructure
    "Event",
    "EventBus",
    "Handler",
    # Document events
    "DocumentOpened",
    "DocumentClosed",
    "DocumentModified",
    "ActiveDocumentChanged",
    # Analysis events
    "AnalysisStarted",
    "AnalysisCompleted",
    "AnalysisFailed",
    "SuggestionsPublished",
    "SuggestionAccepted",
    "SuggestionDeclined",
    "SuggestionsCleared",
    # UI events
    "NoticePosted",
    "AutoAnalysisToggled",
]
