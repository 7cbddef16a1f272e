"""Error types raised by the credential cache."""

from typing import Optional


class CacheError(Exception):
    """Base class for all credcache errors."""


class StorageUnavailable(CacheError):
    """The storage root could not be resolved or created."""


class PersistenceError(CacheError):
    """Reading, writing, deleting or decoding the backing file failed.

    ``operation`` names the cache operation that failed (``"store"``,
    ``"retrieve"``, ``"clear"``...). The underlying exception, if any, is
    chained as ``__cause__``.
    """

    def __init__(self, operation: str, message: str, path: Optional[str] = None):
        self.operation = operation
        self.path = path
        detail = f"{operation}: {message}"
        if path:
            detail += f" ({path})"
        super().__init__(detail)


class ClockError(CacheError):
    """The current time could not be read."""
