"""Time source for expiry checks.

The cache takes any zero-argument callable returning seconds since the
epoch, so tests can drive expiry without sleeping.
"""

import math
import time
from typing import Callable

from .errors import ClockError

Clock = Callable[[], float]


def system_clock() -> float:
    """Wall-clock time in seconds since the epoch."""
    return time.time()


def epoch_seconds(clock: Clock) -> int:
    """Read ``clock`` and return whole seconds since the epoch.

    Raises ClockError if the clock fails or reports a time before the
    epoch.
    """
    try:
        now = clock()
    except (OSError, OverflowError, ValueError) as e:
        raise ClockError(f"Could not read current time: {e}") from e

    if not isinstance(now, (int, float)) or isinstance(now, bool):
        raise ClockError(f"Clock returned {type(now).__name__}, expected a number")
    if not math.isfinite(now) or now < 0:
        raise ClockError(f"Clock returned unusable time: {now!r}")
    return int(now)
