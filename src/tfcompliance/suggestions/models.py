"""Value types describing suggestions and where they live in a document."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Mapping

from ..ai.errors import ParseFailure
from ..core.ranges import LineRange

SuggestionIdentity = tuple[str, str, int, str]

STRATEGY_INSERTION = "insertion"
STRATEGY_EXACT = "exact"
STRATEGY_STRUCTURAL = "structural"
STRATEGY_FUZZY = "fuzzy"
STRATEGY_FALLBACK = "fallback"

_PAYLOAD_FIELDS = (
    "original_code_snippet",
    "suggested_code_snippet",
    "line_number",
    "reasoning",
)


@dataclass(slots=True, frozen=True)
class Suggestion:
    """A raw change proposal returned by the advisory service."""

    original_code_snippet: str
    suggested_code_snippet: str
    line_number: int
    reasoning: str

    @property
    def is_insertion(self) -> bool:
        return not self.original_code_snippet.strip()

    def identity(self) -> SuggestionIdentity:
        """Return the key used to match this suggestion against stored ones."""

        return (
            self.original_code_snippet,
            self.suggested_code_snippet,
            self.line_number,
            self.reasoning,
        )

    def with_line_number(self, line_number: int) -> "Suggestion":
        return replace(self, line_number=line_number)

    def to_dict(self) -> dict[str, Any]:
        return {
            "original_code_snippet": self.original_code_snippet,
            "suggested_code_snippet": self.suggested_code_snippet,
            "line_number": self.line_number,
            "reasoning": self.reasoning,
        }

    @classmethod
    def from_payload(cls, payload: Any) -> "Suggestion":
        """Build a suggestion from an untrusted mapping.

        Raises:
            ParseFailure: when a field is missing or has the wrong type.
        """

        if not isinstance(payload, Mapping):
            raise ParseFailure(
                message="Suggestion entries must be JSON objects",
                details={"received": type(payload).__name__},
            )
        missing = [name for name in _PAYLOAD_FIELDS if name not in payload]
        if missing:
            raise ParseFailure(
                message=f"Suggestion entry is missing {', '.join(missing)}",
                details={"missing": missing},
            )
        original = payload["original_code_snippet"]
        suggested = payload.get("suggested_code_snippet")
        line_number = payload.get("line_number")
        reasoning = payload["reasoning"]

        if original is None:
            original = ""
        if not isinstance(original, str):
            raise ParseFailure(message="original_code_snippet must be a string")
        if not isinstance(suggested, str) or not suggested.strip():
            raise ParseFailure(message="suggested_code_snippet must be a non-empty string")
        if isinstance(line_number, bool) or not isinstance(line_number, (int, float, str)):
            raise ParseFailure(message="line_number must be a positive integer")
        try:
            line_value = int(line_number)
        except (OverflowError, ValueError) as exc:
            raise ParseFailure(
                message="line_number must be a positive integer",
                details={"line_number": line_number},
            ) from exc
        if line_value < 1:
            raise ParseFailure(
                message="line_number must be a positive integer",
                details={"line_number": line_value},
            )
        if not isinstance(reasoning, str):
            raise ParseFailure(message="reasoning must be a string")
        return cls(
            original_code_snippet=original,
            suggested_code_snippet=suggested,
            line_number=line_value,
            reasoning=reasoning,
        )


@dataclass(slots=True, frozen=True)
class Location:
    """Resolved span of a suggestion: 0-based inclusive lines plus a highlight range."""

    start_line: int
    end_line: int
    found: bool
    match_range: LineRange
    strategy: str = STRATEGY_FALLBACK

    @property
    def line_count(self) -> int:
        return self.end_line - self.start_line + 1


@dataclass(slots=True, frozen=True)
class LocatedSuggestion:
    """A suggestion anchored in a document.

    ``suggestion`` carries the corrected line number when the location was found;
    ``raw`` keeps the suggestion exactly as received so it can be re-located after
    the document changes.
    """

    suggestion: Suggestion
    location: Location
    raw: Suggestion

    @classmethod
    def build(cls, suggestion: Suggestion, location: Location) -> "LocatedSuggestion":
        corrected = suggestion
        if location.found and suggestion.line_number != location.start_line + 1:
            corrected = suggestion.with_line_number(location.start_line + 1)
        return cls(suggestion=corrected, location=location, raw=suggestion)

    @property
    def found(self) -> bool:
        return self.location.found

    @property
    def start_line(self) -> int:
        return self.location.start_line

    @property
    def end_line(self) -> int:
        return self.location.end_line

    @property
    def line_number(self) -> int:
        return self.suggestion.line_number

    @property
    def reasoning(self) -> str:
        return self.suggestion.reasoning

    def matches(self, candidate: Suggestion) -> bool:
        """Return ``True`` when ``candidate`` refers to this suggestion.

        Both the displayed (line-corrected) form and the raw form are accepted, since
        callers may hold either one.
        """

        identity = candidate.identity()
        return identity == self.suggestion.identity() or identity == self.raw.identity()


__all__ = [
    "LocatedSuggestion",
    "Location",
    "STRATEGY_EXACT",
    "STRATEGY_FALLBACK",
    "STRATEGY_FUZZY",
    "STRATEGY_INSERTION",
    "STRATEGY_STRUCTURAL",
    "Suggestion",
    "SuggestionIdentity",
]
