"""Line/column edit descriptors and helpers to apply them to raw text."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence, Tuple

from ..core.ranges import LineRange, Position


class PatchApplyError(RuntimeError):
    """Raised when an edit cannot be applied to the current text."""

    def __init__(
        self,
        message: str,
        *,
        reason: str = "out_of_bounds",
        line: int | None = None,
        line_count: int | None = None,
    ) -> None:
        super().__init__(message)
        self.reason = reason
        self.line = line
        self.line_count = line_count

    def details(self) -> dict[str, object]:
        return {"reason": self.reason, "line": self.line, "line_count": self.line_count}


@dataclass(slots=True, frozen=True)
class LineEdit:
    """Replace ``range`` with ``replacement``; a caret range means a pure insertion."""

    range: LineRange
    replacement: str

    @classmethod
    def insert(cls, line: int, text: str) -> "LineEdit":
        return cls(LineRange.caret(line), text)

    @property
    def is_insertion(self) -> bool:
        return self.range.is_caret


@dataclass(slots=True)
class PatchResult:
    """Result of applying a :class:`LineEdit` to a document."""

    text: str
    spans: Tuple[Tuple[int, int], ...]
    summary: str


def apply_line_edit(text: str, edit: LineEdit) -> PatchResult:
    """Apply ``edit`` to ``text`` and return the patched document.

    Positions past the last line are clamped to the end of the text; columns past the
    end of a line are clamped to the line length.
    """

    lines = text.split("\n")
    start = _offset_for(lines, edit.range.start, label="start")
    end = _offset_for(lines, edit.range.end, label="end")
    replacement = edit.replacement
    if edit.is_insertion and edit.range.start.line >= len(lines) and text and not text.endswith("\n"):
        replacement = "\n" + replacement

    patched = f"{text[:start]}{replacement}{text[end:]}"
    span = (start, start + len(replacement))
    if edit.is_insertion:
        summary = f"insert: +{len(replacement)} chars at line {edit.range.start.line + 1}"
    else:
        summary = (
            f"replace: lines {edit.range.start.line + 1}-{edit.range.end.line + 1}, "
            f"-{end - start}/+{len(replacement)} chars"
        )
    return PatchResult(text=patched, spans=(span,), summary=summary)


def _offset_for(lines: Sequence[str], position: Position, *, label: str) -> int:
    if position.line > len(lines):
        raise PatchApplyError(
            f"Edit {label} line {position.line} is beyond the end of the document",
            line=position.line,
            line_count=len(lines),
        )
    if position.line == len(lines):
        return sum(len(line) + 1 for line in lines) - 1
    offset = sum(len(line) + 1 for line in lines[: position.line])
    return offset + min(position.column, len(lines[position.line]))


__all__ = ["LineEdit", "PatchApplyError", "PatchResult", "apply_line_edit"]
