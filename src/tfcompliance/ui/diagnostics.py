"""Problem-list entries and quick-fix actions derived from the active suggestion set."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Sequence

from ..core.ranges import LineRange
from ..suggestions.models import LocatedSuggestion, Suggestion
from .commands import ACCEPT_SUGGESTION, DECLINE_SUGGESTION

DIAGNOSTIC_SOURCE = "Terraform Compliance Assistant"
DIAGNOSTIC_SEVERITY = "warning"
_CODE_PREFIX = "suggestion-"

QUICK_FIX = "quickfix"


@dataclass(slots=True, frozen=True)
class Diagnostic:
    """One problem-list entry pointing at a suggestion's range."""

    range: LineRange
    message: str
    code: str
    severity: str = DIAGNOSTIC_SEVERITY
    source: str = DIAGNOSTIC_SOURCE

    @property
    def index(self) -> int | None:
        """Return the suggestion index encoded in :attr:`code`, if it is ours."""

        if self.source != DIAGNOSTIC_SOURCE or not self.code.startswith(_CODE_PREFIX):
            return None
        try:
            return int(self.code[len(_CODE_PREFIX) :])
        except ValueError:
            return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "range": self.range.to_dict(),
            "message": self.message,
            "code": self.code,
            "severity": self.severity,
            "source": self.source,
        }


@dataclass(slots=True, frozen=True)
class CodeAction:
    """A quick-fix offered for one of our diagnostics."""

    title: str
    command: str
    arguments: tuple[Suggestion, ...] = field(default_factory=tuple)
    kind: str = QUICK_FIX
    is_preferred: bool = False
    diagnostic: Diagnostic | None = None


def build_diagnostics(items: Sequence[LocatedSuggestion]) -> tuple[Diagnostic, ...]:
    return tuple(
        Diagnostic(
            range=item.location.match_range,
            message=f"Compliance Issue: {item.reasoning}",
            code=f"{_CODE_PREFIX}{index}",
        )
        for index, item in enumerate(items)
    )


def provide_code_actions(
    diagnostics: Sequence[Diagnostic], items: Sequence[LocatedSuggestion]
) -> list[CodeAction]:
    """Return accept/decline actions for each of our diagnostics in ``diagnostics``.

    Diagnostics from other sources, or whose index no longer points into
    ``items``, are ignored.
    """

    actions: list[CodeAction] = []
    for diagnostic in diagnostics:
        index = diagnostic.index
        if index is None or index >= len(items):
            continue
        suggestion = items[index].suggestion
        actions.append(
            CodeAction(
                title="Accept compliance suggestion",
                command=ACCEPT_SUGGESTION,
                arguments=(suggestion,),
                is_preferred=True,
                diagnostic=diagnostic,
            )
        )
        actions.append(
            CodeAction(
                title="Decline suggestion",
                command=DECLINE_SUGGESTION,
                arguments=(suggestion,),
                diagnostic=diagnostic,
            )
        )
    return actions


__all__ = [
    "CodeAction",
    "DIAGNOSTIC_SOURCE",
    "Diagnostic",
    "build_diagnostics",
    "provide_code_actions",
]
