"""Dataclasses representing editor document state."""

from __future__ import annotations

import hashlib
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

TERRAFORM_LANGUAGE = "terraform"
_LANGUAGE_BY_SUFFIX: dict[str, str] = {
    ".tf": TERRAFORM_LANGUAGE,
    ".tfvars": TERRAFORM_LANGUAGE,
    ".hcl": "hcl",
    ".json": "json",
    ".yaml": "yaml",
    ".yml": "yaml",
}


def _utcnow() -> datetime:
    """Return the current UTC time as a timezone-aware datetime."""

    return datetime.now(timezone.utc)


def _hash_text(text: str) -> str:
    return hashlib.sha1(text.encode("utf-8")).hexdigest()


def infer_language(path: Path | str | None) -> str:
    """Guess the language identifier for ``path`` from its suffix."""

    if path is None:
        return "plaintext"
    suffix = Path(path).suffix.lower()
    return _LANGUAGE_BY_SUFFIX.get(suffix, "plaintext")


def split_lines(text: str) -> list[str]:
    """Split ``text`` into lines the same way line numbers are counted."""

    return text.split("\n")


@dataclass(slots=True)
class DocumentMetadata:
    """Metadata describing a loaded document."""

    path: Optional[Path] = None
    language: str = "plaintext"
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)


@dataclass(slots=True)
class DocumentState:
    """Full snapshot of a document's text plus change-tracking metadata."""

    text: str = ""
    metadata: DocumentMetadata = field(default_factory=DocumentMetadata)
    dirty: bool = False
    document_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    version_id: int = 1
    content_hash: str = field(default_factory=str)

    def __post_init__(self) -> None:
        if not self.content_hash:
            self.content_hash = _hash_text(self.text)

    @property
    def language(self) -> str:
        return self.metadata.language

    @property
    def is_terraform(self) -> bool:
        return self.metadata.language == TERRAFORM_LANGUAGE

    @property
    def lines(self) -> list[str]:
        return split_lines(self.text)

    @property
    def line_count(self) -> int:
        return len(self.lines)

    def line_at(self, index: int) -> str | None:
        """Return the text of line ``index`` or ``None`` when it is out of bounds."""

        lines = self.lines
        if 0 <= index < len(lines):
            return lines[index]
        return None

    def update_text(self, new_text: str) -> bool:
        """Update the document text and mark it dirty.

        Returns ``False`` without touching the version when the text is unchanged.
        """

        if new_text == self.text:
            return False
        self.text = new_text
        self.dirty = True
        self.metadata.updated_at = _utcnow()
        self.version_id += 1
        self.content_hash = _hash_text(new_text)
        return True


__all__ = [
    "DocumentMetadata",
    "DocumentState",
    "TERRAFORM_LANGUAGE",
    "infer_language",
    "split_lines",
]
