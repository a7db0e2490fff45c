"""Duration helpers shared by the timeline, notifications and postmortems."""

import math
from datetime import datetime
from typing import Optional


def elapsed_minutes(start: datetime, end: datetime) -> int:
    """Whole minutes between two instants, halves rounded up (30 seconds is 1 minute)."""
    return math.floor((end - start).total_seconds() / 60 + 0.5)


def format_duration(minutes: Optional[int]) -> str:
    if minutes is None:
        return "unknown"
    hours, mins = divmod(minutes, 60)
    if hours > 0:
        return f"{hours}h {mins}min"
    return f"{mins}min"
