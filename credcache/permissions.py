"""Owner-only file mode hardening."""

import logging
import os
from pathlib import Path

_log = logging.getLogger(__name__)

OWNER_ONLY_MODE = 0o600


def supports_owner_only_modes() -> bool:
    """Return True if the platform honours POSIX owner/group/other bits."""
    return os.name == "posix"


def restrict_to_owner(path: Path) -> bool:
    """Make ``path`` readable and writable by its owner only.

    Returns False without touching the file on platforms without a POSIX
    permission model. OSError from chmod propagates.
    """
    if not supports_owner_only_modes():
        _log.debug("Skipping chmod on %s: platform has no owner-only modes", path)
        return False
    os.chmod(path, OWNER_ONLY_MODE)
    return True
