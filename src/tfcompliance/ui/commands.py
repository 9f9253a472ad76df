"""Command registry plus the accept/decline/toggle/check commands.

Command handlers are the boundary where engine errors become user notices: they
catch :class:`ComplianceError` and post a :class:`NoticePosted` event at the
error's severity instead of letting it escape to the host.
"""

from __future__ import annotations

import inspect
import json
import logging
from typing import TYPE_CHECKING, Any, Callable, Dict, Mapping
from urllib.parse import quote, unquote

from ..ai.errors import ComplianceError, ErrorCode, ParseFailure
from ..suggestions.models import LocatedSuggestion, Suggestion
from .events import EventBus, NoticePosted

if TYPE_CHECKING:  # pragma: no cover
    from ..suggestions.controller import SuggestionController

LOGGER = logging.getLogger(__name__)

COMMAND_PREFIX = "tfcompliance"
ACCEPT_SUGGESTION = f"{COMMAND_PREFIX}.acceptSuggestion"
DECLINE_SUGGESTION = f"{COMMAND_PREFIX}.declineSuggestion"
TOGGLE_AUTO_ANALYSIS = f"{COMMAND_PREFIX}.toggleAutoAnalysis"
CHECK_COMPLIANCE = f"{COMMAND_PREFIX}.checkCompliance"

_URI_SCHEME = "command:"
# Characters encodeURIComponent leaves untouched in addition to Python's defaults.
_URI_SAFE = "!*'()"

CommandHandler = Callable[..., Any]


def encode_command_argument(suggestion: Suggestion) -> str:
    """Serialize ``suggestion`` as URI-encoded JSON for command links."""

    return quote(json.dumps(suggestion.to_dict()), safe=_URI_SAFE)


def decode_command_argument(value: str) -> Suggestion:
    """Inverse of :func:`encode_command_argument`; accepts plain JSON too."""

    text = unquote(value)
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ParseFailure(message=f"Command argument is not valid JSON: {exc.msg}") from exc
    # Link arguments may be wrapped in a single-element array.
    if isinstance(payload, list) and len(payload) == 1:
        payload = payload[0]
    return Suggestion.from_payload(payload)


def command_uri(command_id: str, suggestion: Suggestion) -> str:
    return f"{_URI_SCHEME}{command_id}?{encode_command_argument(suggestion)}"


def coerce_suggestion(argument: Any) -> Suggestion:
    """Turn any supported command argument into a :class:`Suggestion`."""

    if isinstance(argument, Suggestion):
        return argument
    if isinstance(argument, LocatedSuggestion):
        return argument.suggestion
    if isinstance(argument, Mapping):
        return Suggestion.from_payload(argument)
    if isinstance(argument, str):
        return decode_command_argument(argument)
    raise ParseFailure(
        message="Unsupported suggestion argument",
        details={"received": type(argument).__name__},
    )


class CommandRegistry:
    """Maps command identifiers to handlers; handlers may be sync or async."""

    def __init__(self) -> None:
        self._handlers: Dict[str, CommandHandler] = {}

    def register(self, command_id: str, handler: CommandHandler) -> None:
        if command_id in self._handlers:
            raise ValueError(f"Command already registered: {command_id}")
        self._handlers[command_id] = handler
        LOGGER.debug("Registered command %s", command_id)

    def unregister(self, command_id: str) -> None:
        self._handlers.pop(command_id, None)

    def has(self, command_id: str) -> bool:
        return command_id in self._handlers

    def command_ids(self) -> tuple[str, ...]:
        return tuple(self._handlers)

    async def execute(self, command_id: str, *args: Any) -> Any:
        handler = self._handlers.get(command_id)
        if handler is None:
            raise KeyError(f"Unknown command: {command_id}")
        LOGGER.debug("Executing command %s", command_id)
        result = handler(*args)
        if inspect.isawaitable(result):
            result = await result
        return result

    async def execute_uri(self, uri: str) -> Any:
        """Execute a ``command:<id>?<argument>`` link as rendered in hover text."""

        if not uri.startswith(_URI_SCHEME):
            raise ValueError(f"Not a command URI: {uri}")
        command_id, _, argument = uri[len(_URI_SCHEME) :].partition("?")
        if argument:
            return await self.execute(command_id, argument)
        return await self.execute(command_id)


class ComplianceCommands:
    """Command handlers wired to a :class:`SuggestionController`."""

    def __init__(self, controller: SuggestionController, event_bus: EventBus) -> None:
        self._controller = controller
        self._bus = event_bus

    def register(self, registry: CommandRegistry) -> None:
        registry.register(ACCEPT_SUGGESTION, self.accept)
        registry.register(DECLINE_SUGGESTION, self.decline)
        registry.register(TOGGLE_AUTO_ANALYSIS, self.toggle)
        registry.register(CHECK_COMPLIANCE, self.check)

    def accept(self, argument: Any, document_id: str | None = None) -> bool:
        try:
            suggestion = coerce_suggestion(argument)
            self._controller.accept(suggestion, document_id)
        except ComplianceError as exc:
            self._report(exc)
            return False
        return True

    def decline(self, argument: Any, document_id: str | None = None) -> bool:
        try:
            suggestion = coerce_suggestion(argument)
            self._controller.decline(suggestion, document_id)
        except ComplianceError as exc:
            self._report(exc)
            return False
        return True

    def toggle(self) -> bool:
        return self._controller.toggle_auto_analysis()

    async def check(self, document_id: str | None = None) -> tuple[LocatedSuggestion, ...] | None:
        try:
            return await self._controller.manual_analyze(document_id)
        except ComplianceError as exc:
            # Missing or non-Terraform documents are reported verbatim.
            if exc.error_code == ErrorCode.DOCUMENT_NOT_FOUND:
                self._report(exc, level="error")
            else:
                self._report(exc, prefix="Failed to analyze Terraform code: ", level="error")
            return None

    def _report(self, exc: ComplianceError, *, prefix: str = "", level: str | None = None) -> None:
        LOGGER.info("Command failed: %s", exc.to_dict())
        self._bus.publish(NoticePosted(message=f"{prefix}{exc.message}", level=level or exc.severity))


def register_compliance_commands(
    registry: CommandRegistry, controller: SuggestionController, event_bus: EventBus
) -> ComplianceCommands:
    commands = ComplianceCommands(controller, event_bus)
    commands.register(registry)
    return commands


__all__ = [
    "ACCEPT_SUGGESTION",
    "CHECK_COMPLIANCE",
    "CommandRegistry",
    "ComplianceCommands",
    "DECLINE_SUGGESTION",
    "TOGGLE_AUTO_ANALYSIS",
    "coerce_suggestion",
    "command_uri",
    "decode_command_argument",
    "encode_command_argument",
    "register_compliance_commands",
]
