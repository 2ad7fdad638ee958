"""
Timely - Durations and Calendar Alignment
Converts durations to milliseconds, locates calendar boundaries,
and formats spans of time for display
"""

from datetime import datetime, timedelta
from typing import Union

from engine.errors import InvalidConfigError
from engine.models import Duration, TimeUnit


MS_PER_SECOND = 1000
MS_PER_MINUTE = 60 * MS_PER_SECOND
MS_PER_HOUR = 60 * MS_PER_MINUTE
MS_PER_DAY = 24 * MS_PER_HOUR

# Milliseconds per unit. Months and years are approximations and drift
# against the calendar over repeated cycles.
UNIT_MS = {
    TimeUnit.MILLISECONDS: 1,
    TimeUnit.SECONDS: MS_PER_SECOND,
    TimeUnit.MINUTES: MS_PER_MINUTE,
    TimeUnit.HOURS: MS_PER_HOUR,
    TimeUnit.DAYS: MS_PER_DAY,
    TimeUnit.WEEKS: 7 * MS_PER_DAY,
    TimeUnit.MONTHS: 30.44 * MS_PER_DAY,
    TimeUnit.YEARS: 365.25 * MS_PER_DAY,
}


def to_milliseconds(duration: Duration) -> float:
    """
    Convert a duration to milliseconds.

    Args:
        duration: The duration to convert

    Returns:
        Length in milliseconds

    Raises:
        InvalidUnitError: If the duration's unit is not a known unit
    """
    unit = TimeUnit.parse(duration.unit)
    return duration.value * UNIT_MS[unit]


def aligned_start(
    timestamp: float,
    unit: Union[TimeUnit, str],
    start_of_week: int = 0
) -> float:
    """
    Get the start of the calendar period of size `unit` containing `timestamp`.

    Works in the local time zone. Weeks start on `start_of_week`
    (0=Sunday, 1=Monday, ... 6=Saturday).

    Args:
        timestamp: Epoch milliseconds
        unit: Calendar unit to align to
        start_of_week: First day of the week for week alignment

    Returns:
        Epoch milliseconds of the period start (always <= timestamp)

    Raises:
        InvalidUnitError: If the unit is unknown
        InvalidConfigError: If start_of_week is outside 0-6
    """
    unit = TimeUnit.parse(unit)

    if unit == TimeUnit.MILLISECONDS:
        return timestamp

    moment = datetime.fromtimestamp(timestamp / 1000)

    if unit == TimeUnit.SECONDS:
        start = moment.replace(microsecond=0)
    elif unit == TimeUnit.MINUTES:
        start = moment.replace(second=0, microsecond=0)
    elif unit == TimeUnit.HOURS:
        start = moment.replace(minute=0, second=0, microsecond=0)
    elif unit == TimeUnit.DAYS:
        start = moment.replace(hour=0, minute=0, second=0, microsecond=0)
    elif unit == TimeUnit.WEEKS:
        if not 0 <= start_of_week <= 6:
            raise InvalidConfigError(f"Invalid start of week: {start_of_week!r}")
        midnight = moment.replace(hour=0, minute=0, second=0, microsecond=0)
        # datetime.weekday() is Monday=0; shift to Sunday=0
        day = (midnight.weekday() + 1) % 7
        start = midnight - timedelta(days=(day - start_of_week) % 7)
    elif unit == TimeUnit.MONTHS:
        start = moment.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    else:
        start = moment.replace(month=1, day=1, hour=0, minute=0, second=0, microsecond=0)

    return start.timestamp() * 1000


def format_duration(ms: float, compact: bool = False) -> str:
    """
    Format a span of milliseconds for display.

    Args:
        ms: Milliseconds
        compact: "1d 2h" style instead of "1 day, 2 hours"

    Returns:
        Human readable string
    """
    if ms < 1000:
        return "0s" if compact else "0 seconds"

    seconds = int(ms // 1000)
    minutes = seconds // 60
    hours = minutes // 60
    days = hours // 24

    if compact:
        if days > 0:
            return f"{days}d {hours % 24}h"
        if hours > 0:
            return f"{hours}h {minutes % 60}m"
        if minutes > 0:
            return f"{minutes}m {seconds % 60}s"
        return f"{seconds}s"

    def plural(count: int, word: str) -> str:
        return f"{count} {word}{'' if count == 1 else 's'}"

    parts = []
    if days > 0:
        parts.append(plural(days, "day"))
    if hours % 24 > 0:
        parts.append(plural(hours % 24, "hour"))
    if minutes % 60 > 0:
        parts.append(plural(minutes % 60, "minute"))
    if seconds % 60 > 0 and days == 0:
        parts.append(plural(seconds % 60, "second"))

    return ", ".join(parts) or "0 seconds"


def format_time_remaining(ms: float) -> str:
    """Format remaining time as H:MM:SS or M:SS."""
    if ms <= 0:
        return "0:00"

    total_seconds = int(ms // 1000)
    hours = total_seconds // 3600
    minutes = (total_seconds % 3600) // 60
    seconds = total_seconds % 60

    if hours > 0:
        return f"{hours}:{minutes:02d}:{seconds:02d}"
    return f"{minutes}:{seconds:02d}"
