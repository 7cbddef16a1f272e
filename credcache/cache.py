"""Local credential cache.

One JSON record lives at ``<storage_root>/token.dat``. The cache mirrors
its identity and permissions in memory (never the tokens themselves) and
evicts the record lazily once it expires.

Construct one CredentialCache per process and pass it to whatever needs
it; every public method is safe to call from multiple threads.
"""

import logging
import os
import threading
from pathlib import Path
from typing import Iterable, Optional, Union

from .clock import Clock, epoch_seconds, system_clock
from .errors import PersistenceError, StorageUnavailable
from .permissions import OWNER_ONLY_MODE, restrict_to_owner, supports_owner_only_modes
from .record import (
    CacheState,
    CredentialRecord,
    check_fields,
    check_permissions,
    decode_record,
    encode_record,
)

_log = logging.getLogger(__name__)

TOKEN_FILENAME = "token.dat"

# Fixed window from the moment of storage. Any expiry claim carried by the
# token itself is ignored.
TOKEN_LIFETIME_SECONDS = 30 * 60


class CredentialCache:
    """Persist one short-lived credential and answer authorization queries."""

    def __init__(self, token_path: Union[str, Path], clock: Clock = system_clock):
        self._path = Path(token_path)
        self._clock = clock
        self._lock = threading.Lock()
        self._state = CacheState()

    @classmethod
    def initialize(
        cls,
        storage_root: Union[str, Path, None],
        clock: Clock = system_clock,
    ) -> "CredentialCache":
        """Open the cache under ``storage_root``, loading any valid record.

        Creates the directory if needed. Raises StorageUnavailable if the
        root is missing, cannot be created, or is not a directory. A
        missing or expired record is not an error; neither is a corrupt
        one, which is logged and left for retrieve() to report.
        """
        if storage_root is None or str(storage_root) == "":
            raise StorageUnavailable("No storage root was provided")

        root = Path(storage_root).expanduser()
        try:
            root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageUnavailable(f"Cannot create storage root {root}: {e}") from e
        if not root.is_dir():
            raise StorageUnavailable(f"Storage root {root} is not a directory")

        cache = cls(root / TOKEN_FILENAME, clock=clock)
        cache._seed()
        return cache

    @property
    def path(self) -> Path:
        """Location of the backing file."""
        return self._path

    def _seed(self) -> None:
        with self._lock:
            try:
                record = self._load("initialize")
            except PersistenceError as e:
                _log.warning("Starting signed out, cached credential unreadable: %s", e)
                return
            if record is not None:
                self._state = CacheState.from_record(record)
                _log.debug("Loaded cached credential for user %s", record.user_id)

    # -- Disk helpers (caller holds the lock) ------------------------------

    def _load(self, operation: str) -> Optional[CredentialRecord]:
        try:
            text = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as e:
            raise PersistenceError(operation, f"cannot read credential file: {e}", str(self._path)) from e

        try:
            record = decode_record(text)
        except ValueError as e:
            raise PersistenceError(operation, f"corrupt credential file: {e}", str(self._path)) from e

        if record.is_expired(epoch_seconds(self._clock)):
            self._discard_expired()
            return None
        return record

    def _discard_expired(self) -> None:
        _log.debug("Cached credential expired, removing %s", self._path)
        self._state = CacheState()
        try:
            self._path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            _log.warning("Could not remove expired credential file %s: %s", self._path, e)

    def _write(self, record: CredentialRecord, operation: str) -> None:
        # Staging file sits beside the target: os.replace must not cross
        # filesystems, and token.dat only ever appears already at 0600.
        staging = self._path.with_name(self._path.name + ".tmp")
        mode = OWNER_ONLY_MODE if supports_owner_only_modes() else 0o666
        try:
            # O_EXCL refuses a leftover staging file, which may be world-readable.
            try:
                staging.unlink()
            except FileNotFoundError:
                pass
            fd = os.open(staging, os.O_WRONLY | os.O_CREAT | os.O_EXCL, mode)
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(encode_record(record))
            restrict_to_owner(staging)
            os.replace(staging, self._path)
        except OSError as e:
            try:
                staging.unlink()
            except OSError:
                pass
            raise PersistenceError(operation, f"cannot write credential file: {e}", str(self._path)) from e

    def _check_expiry(self) -> bool:
        """Return the authenticated flag, flipping it off if expired."""
        state = self._state
        if not state.is_authenticated:
            return False
        if state.token_expires_at is None or state.token_expires_at <= epoch_seconds(self._clock):
            _log.debug("In-memory credential for %s has expired", state.user_id)
            self._state = CacheState()
            return False
        return True

    # -- Public operations -------------------------------------------------

    def store(
        self,
        access_token: str,
        refresh_token: str,
        user_id: str,
        username: str,
        permissions: Iterable[str],
    ) -> None:
        """Replace the cached credential with a new one.

        The record expires TOKEN_LIFETIME_SECONDS from now. In-memory state
        only changes once the file has been written and locked down; on
        PersistenceError it is left as it was.
        """
        check_fields(access_token, refresh_token, user_id, username)
        tags = check_permissions(permissions)

        with self._lock:
            record = CredentialRecord(
                token=access_token,
                refresh_token=refresh_token,
                user_id=user_id,
                username=username,
                permissions=tags,
                expires_at=epoch_seconds(self._clock) + TOKEN_LIFETIME_SECONDS,
            )
            self._write(record, "store")
            self._state = CacheState.from_record(record)

        _log.debug(
            "Stored credential for user %s (token length %d, refresh length %d, %d permissions)",
            user_id, len(access_token), len(refresh_token), len(record.permissions),
        )

    def retrieve(self) -> Optional[tuple[str, str]]:
        """Return ``(access_token, refresh_token)`` read fresh from disk.

        Returns None when nothing is cached or the record has expired; an
        expired record is deleted on the way. Raises PersistenceError if
        the file exists but cannot be read or decoded.
        """
        with self._lock:
            record = self._load("retrieve")
        if record is None:
            return None
        return record.token, record.refresh_token

    def clear(self) -> None:
        """Forget the cached credential.

        The in-memory state is reset unconditionally. If the file exists
        but cannot be removed, PersistenceError is raised afterwards so the
        caller knows it is still on disk.
        """
        with self._lock:
            self._state = CacheState()
            try:
                self._path.unlink()
            except FileNotFoundError:
                pass
            except OSError as e:
                raise PersistenceError("clear", f"cannot remove credential file: {e}", str(self._path)) from e
        _log.debug("Cleared cached credential")

    def get_state(self) -> CacheState:
        """Copy of the in-memory state. Never touches disk."""
        with self._lock:
            return self._state.copy()

    def is_authenticated(self) -> bool:
        """True if a credential is cached and expires strictly after now.

        Only in-memory state is consulted; use retrieve() for an answer
        backed by the file.
        """
        with self._lock:
            return self._check_expiry()

    def get_permissions(self) -> list[str]:
        with self._lock:
            if not self._check_expiry():
                return []
            return list(self._state.permissions)

    def get_current_user(self) -> Optional[tuple[str, str]]:
        """Return ``(user_id, username)`` for the signed-in user, if any."""
        with self._lock:
            if not self._check_expiry():
                return None
            state = self._state
            if state.user_id is None or state.username is None:
                return None
            return state.user_id, state.username

    def has_permission(self, permission: str) -> bool:
        with self._lock:
            return self._check_expiry() and permission in self._state.permissions

    def has_any_permission(self, permissions: Iterable[str]) -> bool:
        with self._lock:
            if not self._check_expiry():
                return False
            granted = self._state.permissions
            return any(p in granted for p in permissions)

    def has_all_permissions(self, permissions: Iterable[str]) -> bool:
        with self._lock:
            if not self._check_expiry():
                return False
            granted = self._state.permissions
            return all(p in granted for p in permissions)

    def sync_permissions(self, permissions: Iterable[str]) -> bool:
        """Rewrite the cached record with a new permission list.

        Tokens and identity are taken from the file. Returns False if there
        is no valid record to update. The lifetime window restarts, as with
        any store.
        """
        tags = check_permissions(permissions)

        with self._lock:
            current = self._load("sync_permissions")
            if current is None:
                return False
            record = CredentialRecord(
                token=current.token,
                refresh_token=current.refresh_token,
                user_id=current.user_id,
                username=current.username,
                permissions=tags,
                expires_at=epoch_seconds(self._clock) + TOKEN_LIFETIME_SECONDS,
            )
            self._write(record, "sync_permissions")
            self._state = CacheState.from_record(record)

        _log.debug("Synced %d permissions for user %s", len(record.permissions), record.user_id)
        return True
