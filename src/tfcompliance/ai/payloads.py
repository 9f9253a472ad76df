"""Decode advisory service responses into validated suggestions.

The service answers ``{"suggestion": "<json array>"}``; a gateway variant wraps the
whole object once more as ``{"body": "<json object>"}``. Nothing about the payload is
trusted: every entry is checked against :data:`SUGGESTION_LIST_SCHEMA` and then
converted with :meth:`Suggestion.from_payload`.
"""

from __future__ import annotations

import json
from typing import Any, Dict, List, Mapping

from jsonschema import Draft7Validator, ValidationError

from ..suggestions.models import Suggestion
from .errors import ParseFailure

SUGGESTION_FIELD = "suggestion"
ENVELOPE_FIELD = "body"

SUGGESTION_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "required": [
        "original_code_snippet",
        "suggested_code_snippet",
        "line_number",
        "reasoning",
    ],
    "properties": {
        "original_code_snippet": {"type": ["string", "null"]},
        "suggested_code_snippet": {"type": "string", "minLength": 1},
        "line_number": {"type": ["integer", "string"]},
        "reasoning": {"type": "string"},
    },
}

SUGGESTION_LIST_SCHEMA: Dict[str, Any] = {
    "type": "array",
    "items": SUGGESTION_SCHEMA,
}

_LIST_VALIDATOR = Draft7Validator(SUGGESTION_LIST_SCHEMA)


def decode_response(payload: Mapping[str, Any] | str | bytes) -> List[Suggestion]:
    """Return the suggestions carried by an advisory response body.

    A missing or empty ``suggestion`` field means the document is clean.

    Raises:
        ParseFailure: when the body or the suggestion array is malformed.
    """

    mapping = _unwrap_envelope(_coerce_mapping(payload))
    raw = mapping.get(SUGGESTION_FIELD)
    if raw is None or raw == "" or raw == []:
        return []
    if isinstance(raw, str):
        raw = _loads(raw, what="suggestion field")
    return decode_suggestions(raw)


def decode_suggestions(entries: Any) -> List[Suggestion]:
    """Validate a decoded suggestion array and build :class:`Suggestion` objects."""

    try:
        _LIST_VALIDATOR.validate(entries)
    except ValidationError as error:
        raise ParseFailure(
            message=f"Invalid suggestion payload: {_format_validation_error(error)}",
            details={"path": list(error.path)},
        ) from error
    return [Suggestion.from_payload(entry) for entry in entries]


def _coerce_mapping(payload: Mapping[str, Any] | str | bytes) -> Mapping[str, Any]:
    if isinstance(payload, bytes):
        payload = payload.decode("utf-8", errors="replace")
    if isinstance(payload, str):
        payload = _loads(payload, what="response body")
    if not isinstance(payload, Mapping):
        raise ParseFailure(
            message="Analysis response must be a JSON object",
            details={"received": type(payload).__name__},
        )
    return payload


def _unwrap_envelope(mapping: Mapping[str, Any]) -> Mapping[str, Any]:
    if SUGGESTION_FIELD in mapping or ENVELOPE_FIELD not in mapping:
        return mapping
    inner = mapping[ENVELOPE_FIELD]
    if isinstance(inner, (str, bytes)):
        return _coerce_mapping(inner)
    if isinstance(inner, Mapping):
        return inner
    raise ParseFailure(
        message="Analysis response envelope has an unexpected body",
        details={"received": type(inner).__name__},
    )


def _loads(text: str, *, what: str) -> Any:
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise ParseFailure(
            message=f"Unable to parse {what} as JSON: {exc.msg}",
            details={"line": exc.lineno, "column": exc.colno},
        ) from exc


def _format_validation_error(error: ValidationError) -> str:
    path = ".".join(str(part) for part in error.path)
    if path:
        return f"{path}: {error.message}"
    return error.message


__all__ = [
    "SUGGESTION_LIST_SCHEMA",
    "SUGGESTION_SCHEMA",
    "decode_response",
    "decode_suggestions",
]
