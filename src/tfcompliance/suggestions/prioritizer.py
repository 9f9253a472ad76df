"""Order located suggestions by confidence, category and position."""

from __future__ import annotations

from enum import IntEnum
from typing import Iterable

from .models import LocatedSuggestion

SECURITY_KEYWORDS: tuple[str, ...] = (
    "security",
    "encryption",
    "vulnerable",
    "exposure",
    "access",
    "permission",
    "public",
    "private",
    "ssl",
    "tls",
    "https",
    "authentication",
    "authorization",
)

PERFORMANCE_KEYWORDS: tuple[str, ...] = (
    "performance",
    "optimization",
    "cost",
    "efficient",
    "resource",
    "scaling",
    "capacity",
    "throughput",
    "latency",
    "bandwidth",
)


class Category(IntEnum):
    """Category buckets, in the order they are ranked."""

    SECURITY = 0
    PERFORMANCE = 1
    OTHER = 2


def classify(reasoning: str) -> Category:
    """Bucket ``reasoning`` by case-insensitive keyword match; security wins over performance."""

    lowered = reasoning.lower()
    if any(keyword in lowered for keyword in SECURITY_KEYWORDS):
        return Category.SECURITY
    if any(keyword in lowered for keyword in PERFORMANCE_KEYWORDS):
        return Category.PERFORMANCE
    return Category.OTHER


def priority_key(item: LocatedSuggestion) -> tuple[bool, int, int]:
    return (not item.found, int(classify(item.reasoning)), item.line_number)


def prioritize(items: Iterable[LocatedSuggestion]) -> list[LocatedSuggestion]:
    """Return ``items`` stably sorted: found first, then by category, then by line."""

    return sorted(items, key=priority_key)


__all__ = [
    "Category",
    "PERFORMANCE_KEYWORDS",
    "SECURITY_KEYWORDS",
    "classify",
    "prioritize",
    "priority_key",
]
