"""Markdown rendered when the pointer rests on a highlighted suggestion."""

from __future__ import annotations

from ..suggestions.models import LocatedSuggestion
from .commands import ACCEPT_SUGGESTION, DECLINE_SUGGESTION, command_uri

CODE_FENCE_LANGUAGE = "terraform"


def _code_block(code: str) -> str:
    return f"```{CODE_FENCE_LANGUAGE}\n{code}\n```\n"


def build_hover_markdown(item: LocatedSuggestion) -> str:
    """Return the hover text for ``item``.

    The current code section is omitted for insertions. Accept and dismiss are
    rendered as command links carrying the suggestion as URI-encoded JSON.
    """

    suggestion = item.suggestion
    parts: list[str] = []
    if suggestion.original_code_snippet:
        parts.append("## Current Code\n")
        parts.append(_code_block(suggestion.original_code_snippet))
        parts.append("\n")
    parts.append("## Suggested Improvement\n")
    parts.append(_code_block(suggestion.suggested_code_snippet))
    parts.append("\n---\n\n")
    accept = command_uri(ACCEPT_SUGGESTION, suggestion)
    decline = command_uri(DECLINE_SUGGESTION, suggestion)
    parts.append(
        f'[Accept]({accept} "Apply this suggestion") • '
        f'[Dismiss]({decline} "Remove this suggestion from view")\n\n'
    )
    parts.append(f"---\n*{suggestion.reasoning}*\n\n**Line:** {suggestion.line_number}")
    return "".join(parts)


def hover_at(items: tuple[LocatedSuggestion, ...], line: int) -> str | None:
    """Return hover markdown for the first suggestion covering 0-based ``line``."""

    for item in items:
        if item.start_line <= line <= item.end_line:
            return build_hover_markdown(item)
    return None


__all__ = ["build_hover_markdown", "hover_at"]
