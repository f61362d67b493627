"""Window arithmetic shared by the limiters.

Windows are integer epoch seconds aligned to a multiple of the window size.
"""

import math
import time
from typing import List, Optional

from ratelimiter.exceptions import InvalidInputError


def window_start(timestamp: float, size_seconds: int) -> int:
    """Return the start of the fixed-size window containing ``timestamp``.

    Args:
        timestamp: Epoch seconds (fractions allowed)
        size_seconds: Window size in seconds

    Returns:
        ``floor(timestamp / size_seconds) * size_seconds`` as an int
    """
    if size_seconds < 1:
        raise InvalidInputError("size_seconds must be at least 1")
    return math.floor(timestamp / size_seconds) * size_seconds


def window_sequence(
    start_time: Optional[float],
    end_time: Optional[float] = None,
    size_seconds: int = 60,
) -> List[int]:
    """Return every aligned window between two timestamps, inclusive.

    Args:
        start_time: Epoch seconds of the first window (required)
        end_time: Epoch seconds of the last window, defaults to now
        size_seconds: Window size in seconds

    Returns:
        Ascending window starts from ``window_start(start_time)`` to
        ``window_start(end_time)``; empty when ``end_time < start_time``.

    Raises:
        InvalidInputError: If ``start_time`` is missing
    """
    if start_time is None:
        raise InvalidInputError("Must provide a start time in window_sequence")
    if end_time is None:
        end_time = time.time()
    if end_time < start_time:
        return []

    first = window_start(start_time, size_seconds)
    last = window_start(end_time, size_seconds)
    return list(range(first, last + 1, size_seconds))
