"""Tests for documents and the in-memory workspace."""

from __future__ import annotations

from pathlib import Path

import pytest

from tfcompliance.core.ranges import LineRange
from tfcompliance.editor.document_model import DocumentState, DocumentMetadata, infer_language
from tfcompliance.editor.patches import LineEdit
from tfcompliance.ui.events import (
    ActiveDocumentChanged,
    DocumentClosed,
    DocumentModified,
    DocumentOpened,
)


class TestDocumentState:
    def test_infer_language_from_suffix(self) -> None:
        assert infer_language("main.tf") == "terraform"
        assert infer_language("prod.TFVARS") == "terraform"
        assert infer_language("notes.md") == "plaintext"
        assert infer_language(None) == "plaintext"

    def test_update_text_bumps_version_only_on_change(self) -> None:
        document = DocumentState(text="a", metadata=DocumentMetadata(language="terraform"))
        original_hash = document.content_hash

        assert document.update_text("a") is False
        assert document.version_id == 1

        assert document.update_text("b") is True
        assert document.version_id == 2
        assert document.dirty is True
        assert document.content_hash != original_hash

    def test_line_at_out_of_bounds(self) -> None:
        document = DocumentState(text="one\ntwo")
        assert document.line_at(1) == "two"
        assert document.line_at(2) is None
        assert document.line_at(-1) is None
        assert document.line_count == 2


class TestDocumentWorkspace:
    def test_open_document_publishes_and_activates(self, workspace, recorder_factory) -> None:
        recorder = recorder_factory(DocumentOpened, ActiveDocumentChanged)

        document = workspace.open_document("x = 1", path="main.tf", document_id="main")

        assert document.is_terraform
        assert workspace.active_document_id == "main"
        opened = recorder.of_type(DocumentOpened)
        assert opened[0].document_id == "main"
        assert opened[0].language == "terraform"
        assert recorder.of_type(ActiveDocumentChanged)[0].document_id == "main"

    def test_duplicate_document_id_rejected(self, workspace) -> None:
        workspace.open_document("", document_id="dup")
        with pytest.raises(ValueError):
            workspace.open_document("", document_id="dup")

    def test_set_text_publishes_only_real_changes(self, workspace, recorder_factory) -> None:
        recorder = recorder_factory(DocumentModified)
        workspace.open_document("a", document_id="doc")

        assert workspace.set_text("doc", "a") is False
        assert workspace.set_text("doc", "b") is True

        modified = recorder.of_type(DocumentModified)
        assert len(modified) == 1
        assert modified[0].version_id == 2

    def test_apply_edit_updates_text(self, workspace) -> None:
        workspace.open_document("one\ntwo", document_id="doc")

        workspace.apply_edit("doc", LineEdit(LineRange.from_lines(1, 1, end_column=3), "TWO"))

        assert workspace.require_document("doc").text == "one\nTWO"

    def test_close_moves_focus_to_neighbour(self, workspace, recorder_factory) -> None:
        workspace.open_document("", document_id="a")
        workspace.open_document("", document_id="b")
        recorder = recorder_factory(DocumentClosed, ActiveDocumentChanged)

        workspace.close_document("b")

        assert workspace.active_document_id == "a"
        assert recorder.of_type(DocumentClosed)[0].document_id == "b"
        assert recorder.of_type(ActiveDocumentChanged)[-1].document_id == "a"

    def test_close_last_document_clears_focus(self, workspace) -> None:
        workspace.open_document("", document_id="only")
        workspace.close_document("only")

        assert workspace.active_document is None
        assert workspace.document_count() == 0

    def test_unknown_document_raises(self, workspace) -> None:
        with pytest.raises(KeyError):
            workspace.close_document("missing")
        with pytest.raises(KeyError):
            workspace.set_active("missing")

    def test_open_file_and_save_roundtrip(self, workspace, tmp_path: Path) -> None:
        target = tmp_path / "main.tf"
        target.write_text('resource "aws_s3_bucket" "b" {}\n', encoding="utf-8")

        document = workspace.open_file(target)
        assert workspace.open_file(target) is document
        assert document.document_id == str(target.resolve())

        workspace.set_text(document.document_id, "# changed\n")
        workspace.save_document(document.document_id)

        assert target.read_text(encoding="utf-8") == "# changed\n"
        assert document.dirty is False
        assert not (tmp_path / "main.tf.tmp").exists()
