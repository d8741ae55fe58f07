"""User memory storage."""

from search_intel.storage.memory_store import InMemoryUserMemoryStore

__all__ = ["InMemoryUserMemoryStore"]
