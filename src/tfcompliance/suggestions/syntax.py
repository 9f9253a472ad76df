"""Terraform block syntax helpers: declarations, braces and domain keywords."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Sequence

BLOCK_KEYWORD = "resource"
BLOCK_OPENER = f"{BLOCK_KEYWORD} "
OPEN_DELIMITER = "{"
CLOSE_DELIMITER = "}"

DOMAIN_KEYWORDS: tuple[str, ...] = (
    "resource",
    "data",
    "variable",
    "output",
    "locals",
    "module",
    "provider",
    "terraform",
    "aws_",
    "azurerm_",
    "google_",
)

_RESOURCE_RE = re.compile(r'resource\s+"([^"]+)"\s+"([^"]+)"')


@dataclass(slots=True, frozen=True)
class ResourceIdentifier:
    """The ``(type, name)`` pair of a ``resource "type" "name"`` declaration."""

    type: str
    name: str

    def declared_by(self, line: str) -> bool:
        """Return ``True`` when ``line`` declares this exact resource."""

        match = _RESOURCE_RE.search(line)
        return match is not None and match.group(1) == self.type and match.group(2) == self.name


def parse_resource_identifier(code: str) -> ResourceIdentifier | None:
    match = _RESOURCE_RE.search(code)
    if match is None:
        return None
    return ResourceIdentifier(type=match.group(1), name=match.group(2))


def opens_block(code: str) -> bool:
    """Return ``True`` when ``code`` contains a structural block declaration."""

    return BLOCK_OPENER in code


def find_block_end(lines: Sequence[str], start: int) -> int:
    """Return the line where the block opened at or after ``start`` closes.

    Delimiters are counted character by character; the block closes on the line
    holding the brace that brings the balance back to zero. Braces after it on
    the same line or below do not reopen the block.
    Returns ``-1`` when the block never closes.
    """

    depth = 0
    opened = False
    for index in range(start, len(lines)):
        for char in lines[index]:
            if char == OPEN_DELIMITER:
                depth += 1
                opened = True
            elif char == CLOSE_DELIMITER:
                depth -= 1
                if opened and depth == 0:
                    return index
    return -1


def find_last_block_start(lines: Sequence[str]) -> int:
    """Return the index of the last line starting a block declaration, or ``-1``."""

    for index in range(len(lines) - 1, -1, -1):
        if lines[index].strip().startswith(BLOCK_OPENER):
            return index
    return -1


def extract_keywords(code: str) -> tuple[str, ...]:
    """Return the domain keywords found in ``code`` plus its resource type and name."""

    lowered = code.lower()
    keywords = [keyword for keyword in DOMAIN_KEYWORDS if keyword in lowered]
    identifier = parse_resource_identifier(code)
    if identifier is not None:
        for token in (identifier.type, identifier.name):
            if token not in keywords:
                keywords.append(token)
    return tuple(keywords)


__all__ = [
    "BLOCK_KEYWORD",
    "DOMAIN_KEYWORDS",
    "ResourceIdentifier",
    "extract_keywords",
    "find_block_end",
    "find_last_block_start",
    "opens_block",
    "parse_resource_identifier",
]
