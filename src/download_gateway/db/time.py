# src/download_gateway/db/time.py
"""Time utilities shared by the gateway components."""

import time
from collections.abc import Callable

# Returns the current time as unix milliseconds.
Clock = Callable[[], int]

MILLISECONDS_PER_SECOND = 1000


def now_ms() -> int:
    """Return the current wall-clock time as unix milliseconds."""
    return int(time.time() * MILLISECONDS_PER_SECOND)
