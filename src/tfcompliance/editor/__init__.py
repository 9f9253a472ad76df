"""Editor package containing document models, edits and the workspace."""

from .document_model import DocumentMetadata, DocumentState
from .patches import LineEdit, PatchApplyError, PatchResult

__all__ = ["DocumentMetadata", "DocumentState", "LineEdit", "PatchApplyError", "PatchResult"]
