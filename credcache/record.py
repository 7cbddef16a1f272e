"""Credential record and in-memory cache state.

The backing file holds one JSON object:

    {"token": "...", "refresh_token": "...", "user_id": "...",
     "username": "...", "permissions": ["..."], "expires_at": 1700000000}
"""

import json
from dataclasses import dataclass, field, replace
from typing import Any, Iterable, Optional


@dataclass(frozen=True)
class CredentialRecord:
    """The persisted unit: tokens, identity, permissions and expiry."""

    token: str
    refresh_token: str
    user_id: str
    username: str
    permissions: tuple[str, ...]
    expires_at: int

    def is_expired(self, now: int) -> bool:
        """A record expiring exactly at ``now`` is already expired."""
        return self.expires_at <= now


@dataclass
class CacheState:
    """Token-free summary of the current record."""

    is_authenticated: bool = False
    user_id: Optional[str] = None
    username: Optional[str] = None
    permissions: list[str] = field(default_factory=list)
    token_expires_at: Optional[int] = None

    @classmethod
    def from_record(cls, record: CredentialRecord) -> "CacheState":
        return cls(
            is_authenticated=True,
            user_id=record.user_id,
            username=record.username,
            permissions=list(record.permissions),
            token_expires_at=record.expires_at,
        )

    def copy(self) -> "CacheState":
        return replace(self, permissions=list(self.permissions))


_FIELDS = ("token", "refresh_token", "user_id", "username", "permissions", "expires_at")


def encode_record(record: CredentialRecord) -> str:
    """Serialize a record to the backing file format."""
    data = {
        "token": record.token,
        "refresh_token": record.refresh_token,
        "user_id": record.user_id,
        "username": record.username,
        "permissions": list(record.permissions),
        "expires_at": record.expires_at,
    }
    return json.dumps(data)


def check_fields(token: str, refresh_token: str, user_id: str, username: str) -> None:
    """Reject values that decode_record would refuse to load back.

    Raises TypeError for non-string fields and ValueError for an empty
    user_id.
    """
    for name, value in (
        ("token", token),
        ("refresh_token", refresh_token),
        ("user_id", user_id),
        ("username", username),
    ):
        if not isinstance(value, str):
            raise TypeError(f"{name} must be a string, got {type(value).__name__}")
    if not user_id:
        raise ValueError("user_id must be a non-empty string")


def check_permissions(permissions: Iterable[str]) -> tuple[str, ...]:
    """Return ``permissions`` as a tuple of tags, rejecting non-strings."""
    if isinstance(permissions, str):
        raise TypeError("permissions must be an iterable of strings, not a string")
    tags = tuple(permissions)
    for tag in tags:
        if not isinstance(tag, str):
            raise TypeError(f"permission tags must be strings, got {type(tag).__name__}")
    return tags


def _require_str(data: dict[str, Any], key: str) -> str:
    value = data[key]
    if not isinstance(value, str):
        raise ValueError(f"field '{key}' must be a string, got {type(value).__name__}")
    return value


def decode_record(text: str) -> CredentialRecord:
    """Parse the backing file contents.

    Raises ValueError if the text is not JSON or any field is missing or
    has the wrong type, or if user_id is empty. Unknown keys are ignored.
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ValueError(f"not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise ValueError(f"expected a JSON object, got {type(data).__name__}")

    missing = [key for key in _FIELDS if key not in data]
    if missing:
        raise ValueError(f"missing field(s): {', '.join(missing)}")

    permissions = data["permissions"]
    if not isinstance(permissions, list) or not all(isinstance(p, str) for p in permissions):
        raise ValueError("field 'permissions' must be a list of strings")

    expires_at = data["expires_at"]
    # bool is an int subclass; reject it along with floats and negatives
    if isinstance(expires_at, bool) or not isinstance(expires_at, int) or expires_at < 0:
        raise ValueError("field 'expires_at' must be a non-negative integer")

    user_id = _require_str(data, "user_id")
    if not user_id:
        raise ValueError("field 'user_id' must not be empty")

    return CredentialRecord(
        token=_require_str(data, "token"),
        refresh_token=_require_str(data, "refresh_token"),
        user_id=user_id,
        username=_require_str(data, "username"),
        permissions=tuple(permissions),
        expires_at=expires_at,
    )
