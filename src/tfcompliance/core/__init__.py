"""Core value types shared across the engine."""

from .ranges import LineRange, Position

__all__ = ["LineRange", "Position"]
