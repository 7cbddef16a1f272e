"""credcache - Local cache for a short-lived credential."""

__version__ = "0.1.0"

from .cache import CredentialCache, TOKEN_FILENAME, TOKEN_LIFETIME_SECONDS
from .errors import CacheError, ClockError, PersistenceError, StorageUnavailable
from .record import CacheState, CredentialRecord

__all__ = [
    "CredentialCache",
    "TOKEN_FILENAME",
    "TOKEN_LIFETIME_SECONDS",
    "CacheError",
    "ClockError",
    "PersistenceError",
    "StorageUnavailable",
    "CacheState",
    "CredentialRecord",
]
