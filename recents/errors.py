"""
Persistence errors for the recents cache.

Both are raised inside the storage layer only. The persistence adapter
catches them, logs a warning and degrades to memory-only behaviour.
"""


class PersistenceError(Exception):
    """Base class for session storage failures."""

    def __init__(self, message: str, slot: str = ""):
        super().__init__(message)
        self.slot = slot


class PersistenceUnavailable(PersistenceError):
    """Storage backend is absent, full, or failed on read/write."""


class MalformedPersistedData(PersistenceError):
    """Stored payload does not parse into the expected shape."""
