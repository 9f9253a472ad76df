"""In-memory workspace tracking open documents and the focused one."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Iterable, Iterator, List

from ..ui.events import (
    ActiveDocumentChanged,
    DocumentClosed,
    DocumentModified,
    DocumentOpened,
    EventBus,
)
from .document_model import DocumentMetadata, DocumentState, infer_language
from .patches import LineEdit, PatchResult, apply_line_edit

__all__ = ["DocumentWorkspace"]

LOGGER = logging.getLogger(__name__)


def _normalize_path(path: Path | str | None) -> Path | None:
    if path is None:
        return None
    return Path(path).expanduser().resolve()


class DocumentWorkspace:
    """Owns the open documents and publishes their lifecycle on the event bus.

    Events Emitted:
        - DocumentOpened / DocumentClosed: when documents enter or leave the workspace
        - DocumentModified: whenever a document's text actually changes
        - ActiveDocumentChanged: when focus moves to another document (or to none)
    """

    def __init__(self, event_bus: EventBus | None = None) -> None:
        self._bus = event_bus or EventBus()
        self._documents: Dict[str, DocumentState] = {}
        self._order: List[str] = []
        self._active_id: str | None = None

    @property
    def event_bus(self) -> EventBus:
        return self._bus

    # ------------------------------------------------------------------
    # Document lifecycle
    # ------------------------------------------------------------------
    def open_document(
        self,
        text: str = "",
        *,
        path: Path | str | None = None,
        document_id: str | None = None,
        language: str | None = None,
        make_active: bool = True,
    ) -> DocumentState:
        """Register a document and optionally focus it."""

        resolved_path = _normalize_path(path)
        metadata = DocumentMetadata(
            path=resolved_path,
            language=language or infer_language(resolved_path),
        )
        document = DocumentState(text=text, metadata=metadata)
        if document_id:
            document.document_id = document_id
        elif resolved_path is not None:
            document.document_id = str(resolved_path)
        if document.document_id in self._documents:
            raise ValueError(f"Document already open: {document.document_id}")

        self._documents[document.document_id] = document
        self._order.append(document.document_id)
        LOGGER.debug(
            "Opened document %s (language=%s, lines=%d)",
            document.document_id,
            metadata.language,
            document.line_count,
        )
        self._bus.publish(
            DocumentOpened(
                document_id=document.document_id,
                language=metadata.language,
                path=str(resolved_path) if resolved_path else None,
            )
        )
        if make_active or self._active_id is None:
            self.set_active(document.document_id)
        return document

    def open_file(self, path: Path | str, *, make_active: bool = True) -> DocumentState:
        """Read ``path`` from disk and open it as a document."""

        resolved = _normalize_path(path)
        assert resolved is not None
        existing = self.find_by_path(resolved)
        if existing is not None:
            if make_active:
                self.set_active(existing.document_id)
            return existing
        text = resolved.read_text(encoding="utf-8")
        return self.open_document(text, path=resolved, make_active=make_active)

    def save_document(self, document_id: str) -> Path:
        """Write the document back to its path with an atomic replace."""

        document = self.require_document(document_id)
        path = document.metadata.path
        if path is None:
            raise ValueError(f"Document {document_id} has no path to save to")
        tmp_path = path.with_suffix(path.suffix + ".tmp")
        tmp_path.write_text(document.text, encoding="utf-8")
        tmp_path.replace(path)
        document.dirty = False
        LOGGER.debug("Saved document %s to %s", document_id, path)
        return path

    def close_document(self, document_id: str) -> DocumentState:
        """Close and return the specified document."""

        if document_id not in self._documents:
            raise KeyError(f"Unknown document_id: {document_id}")
        document = self._documents.pop(document_id)
        index = self._order.index(document_id)
        self._order.pop(index)
        self._bus.publish(DocumentClosed(document_id=document_id))

        if self._active_id == document_id:
            if self._order:
                fallback_index = index if index < len(self._order) else len(self._order) - 1
                self._active_id = self._order[fallback_index]
            else:
                self._active_id = None
            self._bus.publish(ActiveDocumentChanged(document_id=self._active_id))
        return document

    def set_active(self, document_id: str | None) -> DocumentState | None:
        """Focus ``document_id`` (or nothing) and notify subscribers on change."""

        if document_id is not None and document_id not in self._documents:
            raise KeyError(f"Unknown document_id: {document_id}")
        if self._active_id == document_id:
            return self.active_document
        self._active_id = document_id
        self._bus.publish(ActiveDocumentChanged(document_id=document_id))
        return self.active_document

    # ------------------------------------------------------------------
    # Text mutation
    # ------------------------------------------------------------------
    def set_text(self, document_id: str, text: str) -> bool:
        """Replace the whole text of a document. Returns ``False`` if nothing changed."""

        document = self.require_document(document_id)
        if not document.update_text(text):
            return False
        self._publish_modified(document)
        return True

    def apply_edit(self, document_id: str, edit: LineEdit) -> PatchResult:
        """Apply a line/column edit to the document and publish the change."""

        document = self.require_document(document_id)
        result = apply_line_edit(document.text, edit)
        LOGGER.debug("Applying edit to %s: %s", document_id, result.summary)
        if document.update_text(result.text):
            self._publish_modified(document)
        return result

    def _publish_modified(self, document: DocumentState) -> None:
        self._bus.publish(
            DocumentModified(
                document_id=document.document_id,
                version_id=document.version_id,
                content_hash=document.content_hash,
            )
        )

    # ------------------------------------------------------------------
    # Query helpers
    # ------------------------------------------------------------------
    @property
    def active_document_id(self) -> str | None:
        return self._active_id

    @property
    def active_document(self) -> DocumentState | None:
        if self._active_id is None:
            return None
        return self._documents.get(self._active_id)

    def get_document(self, document_id: str) -> DocumentState | None:
        return self._documents.get(document_id)

    def require_document(self, document_id: str) -> DocumentState:
        document = self._documents.get(document_id)
        if document is None:
            raise KeyError(f"Unknown document_id: {document_id}")
        return document

    def find_by_path(self, path: Path | str) -> DocumentState | None:
        normalized = _normalize_path(path)
        for document in self.iter_documents():
            if document.metadata.path == normalized:
                return document
        return None

    def iter_documents(self) -> Iterator[DocumentState]:
        for document_id in self._order:
            yield self._documents[document_id]

    def document_ids(self) -> Iterable[str]:
        return tuple(self._order)

    def document_count(self) -> int:
        return len(self._order)
