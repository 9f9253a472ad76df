"""Suggestion localization, ranking and lifecycle management."""

from .conflicts import MIN_SPACING, resolve_conflicts
from .controller import SuggestionController
from .locator import LocatorConfig, SuggestionLocator, locate
from .models import LocatedSuggestion, Location, Suggestion
from .pipeline import PipelineResult, SuggestionPipeline
from .prioritizer import Category, classify, prioritize
from .store import SuggestionStore

__all__ = [
    "Category",
    "LocatedSuggestion",
    "Location",
    "LocatorConfig",
    "MIN_SPACING",
    "PipelineResult",
    "Suggestion",
    "SuggestionController",
    "SuggestionLocator",
    "SuggestionPipeline",
    "SuggestionStore",
    "classify",
    "locate",
    "prioritize",
    "resolve_conflicts",
]
