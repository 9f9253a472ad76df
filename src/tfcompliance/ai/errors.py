"""Error types raised by the advisory client and the suggestion lifecycle.

Every error carries a machine-readable code plus a human-readable message so
command handlers can turn it into a notice without inspecting its type.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar


# -----------------------------------------------------------------------------
# Error Code Constants
# -----------------------------------------------------------------------------

class ErrorCode:
    """Constants for error codes carried by :class:`ComplianceError`."""

    # Advisory service errors
    REQUEST_FAILED = "request_failed"
    TIMEOUT = "timeout"
    GATEWAY_TIMEOUT = "gateway_timeout"
    INVALID_PAYLOAD = "invalid_payload"

    # Lifecycle errors
    LOCATION_NOT_FOUND = "location_not_found"
    EDIT_REJECTED = "edit_rejected"
    SUGGESTION_NOT_FOUND = "suggestion_not_found"
    DOCUMENT_NOT_FOUND = "document_not_found"


# -----------------------------------------------------------------------------
# Base Error Class
# -----------------------------------------------------------------------------

@dataclass
class ComplianceError(Exception):
    """Base exception class for engine errors.

    Attributes:
        error_code: Machine-readable error identifier.
        message: Human-readable error description.
        details: Additional structured error information.
    """

    error_code: str
    message: str
    details: dict[str, Any] = field(default_factory=dict)

    # Notice level used when the error is surfaced to the user
    severity: ClassVar[str] = "error"

    def __post_init__(self) -> None:
        Exception.__init__(self, self.message)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a dictionary for logging or JSON output."""
        result: dict[str, Any] = {
            "error": self.error_code,
            "message": self.message,
        }
        if self.details:
            result["details"] = dict(self.details)
        return result

    def __str__(self) -> str:
        return self.message


@dataclass
class RequestFailure(ComplianceError):
    """The advisory service could not be reached or kept failing."""

    error_code: str = field(default=ErrorCode.REQUEST_FAILED)
    message: str = field(default="Failed to reach the compliance analysis service")
    details: dict[str, Any] = field(default_factory=dict)

    status_code: int | None = field(default=None)
    attempts: int = field(default=1)

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.status_code is not None:
            result["status_code"] = self.status_code
        result["attempts"] = self.attempts
        return result


@dataclass
class ParseFailure(ComplianceError):
    """The advisory response body did not have the expected suggestion shape."""

    error_code: str = field(default=ErrorCode.INVALID_PAYLOAD)
    message: str = field(default="Unable to parse suggestions from the analysis response")
    details: dict[str, Any] = field(default_factory=dict)


@dataclass
class ApplyFailure(ComplianceError):
    """A suggestion can no longer be located safely, so no edit was made."""

    error_code: str = field(default=ErrorCode.LOCATION_NOT_FOUND)
    message: str = field(
        default="Could not locate the original code in the document. The file may have been modified."
    )
    details: dict[str, Any] = field(default_factory=dict)


@dataclass
class LookupFailure(ComplianceError):
    """Accept or decline referenced a suggestion that is no longer stored."""

    error_code: str = field(default=ErrorCode.SUGGESTION_NOT_FOUND)
    message: str = field(
        default="Could not find suggestion to dismiss. It may have already been removed."
    )
    details: dict[str, Any] = field(default_factory=dict)

    severity: ClassVar[str] = "warning"


__all__ = [
    "ApplyFailure",
    "ComplianceError",
    "ErrorCode",
    "LookupFailure",
    "ParseFailure",
    "RequestFailure",
]
