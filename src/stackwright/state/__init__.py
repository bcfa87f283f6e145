"""State persistence."""

from .store import InMemoryStateStore, JsonFileStateStore, StateStore

__all__ = ["StateStore", "JsonFileStateStore", "InMemoryStateStore"]
