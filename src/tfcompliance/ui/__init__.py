"""Event bus plus the display and command adapters built on top of it."""

from .events import EventBus

__all__ = ["EventBus"]
