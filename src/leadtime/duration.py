"""Business-hours adjustment of branch life time durations.

Every full 16 hour block of elapsed time is treated as the non-working part of
a day and removed. The block is not aligned to calendar days or weekends; the
arithmetic is kept as is so new values stay comparable with historical ones.
"""

from __future__ import annotations

import math
from datetime import datetime

NON_WORKING_PERIOD_SECONDS = 16 * 60 * 60


def remove_non_working_hours(raw_seconds: int) -> int:
    """Subtract every complete non-working period from ``raw_seconds``.

    Raises:
        ValueError: If ``raw_seconds`` is negative.
    """
    if raw_seconds < 0:
        raise ValueError("Duration must not be negative.")

    periods = raw_seconds // NON_WORKING_PERIOD_SECONDS
    return raw_seconds - periods * NON_WORKING_PERIOD_SECONDS


def raw_duration_seconds(started_at: datetime, ended_at: datetime) -> int:
    """Elapsed whole seconds between two datetimes, rounded up."""
    return math.ceil((ended_at - started_at).total_seconds())
