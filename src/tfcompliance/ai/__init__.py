"""Advisory service client, payload decoding and error types."""

from .errors import (
    ApplyFailure,
    ComplianceError,
    ErrorCode,
    LookupFailure,
    ParseFailure,
    RequestFailure,
)

__all__ = [
    "ApplyFailure",
    "ComplianceError",
    "ErrorCode",
    "LookupFailure",
    "ParseFailure",
    "RequestFailure",
]
