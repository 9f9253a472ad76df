"""Structured helpers for representing line/column spans."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterator, Mapping


@dataclass(slots=True, frozen=True, order=True)
class Position:
    """A 0-based line/column location inside a document."""

    line: int
    column: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "line", _coerce_index(self.line, "line"))
        object.__setattr__(self, "column", _coerce_index(self.column, "column"))

    def to_dict(self) -> dict[str, int]:
        return {"line": self.line, "column": self.column}


@dataclass(slots=True, frozen=True)
class LineRange:
    """Canonical representation of a highlighted region addressed by line and column."""

    start: Position
    end: Position

    def __post_init__(self) -> None:
        if self.end < self.start:
            start, end = self.end, self.start
            object.__setattr__(self, "start", start)
            object.__setattr__(self, "end", end)

    @classmethod
    def from_lines(
        cls,
        start_line: int,
        end_line: int,
        *,
        start_column: int = 0,
        end_column: int = 0,
    ) -> "LineRange":
        return cls(Position(start_line, start_column), Position(end_line, end_column))

    @classmethod
    def caret(cls, line: int) -> "LineRange":
        """Return a zero-width range at the beginning of ``line``."""

        return cls.from_lines(line, line)

    @classmethod
    def from_value(cls, value: Any) -> "LineRange":
        """Coerce mappings shaped like ``{"start": {...}, "end": {...}}`` into ranges."""

        if isinstance(value, LineRange):
            return value
        if not isinstance(value, Mapping):
            raise ValueError("LineRange payload must be a mapping")
        start = value.get("start") or {}
        end = value.get("end") or {}
        return cls(
            Position(start.get("line", 0), start.get("column", 0)),
            Position(end.get("line", 0), end.get("column", 0)),
        )

    def __iter__(self) -> Iterator[Position]:
        yield self.start
        yield self.end

    @property
    def is_caret(self) -> bool:
        """Return ``True`` when the range collapses to a single point."""

        return self.start == self.end

    @property
    def line_span(self) -> tuple[int, int]:
        return (self.start.line, self.end.line)

    def to_dict(self) -> dict[str, dict[str, int]]:
        """Return the range as a JSON-friendly object."""

        return {"start": self.start.to_dict(), "end": self.end.to_dict()}


def _coerce_index(value: Any, label: str) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Position {label} must be an integer") from exc
    if number < 0:
        return 0
    return number


__all__ = ["LineRange", "Position"]
