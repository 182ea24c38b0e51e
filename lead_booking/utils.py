"""Wall-clock and date helpers shared across the booking engine."""

import re
from datetime import date, datetime
from typing import Optional

MINUTES_PER_DAY = 24 * 60

_WALL_CLOCK_RE = re.compile(r"^\s*(\d{1,2}):(\d{1,2})(?::\d{1,2}(?:\.\d+)?)?\s*$")


def normalize_wall_clock(value: str) -> Optional[str]:
    """Normalize a relative time of day to canonical ``HH:MM``.

    Seconds and fractional seconds are truncated. Returns None when the
    value is not a time of day.

    Examples:
        >>> normalize_wall_clock("9:05")
        '09:05'
        >>> normalize_wall_clock("13:30:45.120")
        '13:30'
        >>> normalize_wall_clock("25:00") is None
        True
    """
    match = _WALL_CLOCK_RE.match(value or "")
    if not match:
        return None
    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23 or minutes > 59:
        return None
    return f"{hours:02d}:{minutes:02d}"


def to_minutes(value: str) -> int:
    """Convert a wall-clock string to minutes since midnight.

    Raises:
        ValueError: If the value is not a time of day.
    """
    normalized = normalize_wall_clock(value)
    if normalized is None:
        raise ValueError(f"Invalid wall-clock time: {value!r}")
    hours, minutes = normalized.split(":")
    return int(hours) * 60 + int(minutes)


def format_minutes(total: int) -> str:
    """Format minutes since midnight as ``HH:MM`` (1440 wraps to ``00:00``)."""
    total %= MINUTES_PER_DAY
    return f"{total // 60:02d}:{total % 60:02d}"


def range_minutes(start: str, end: str) -> tuple[int, int]:
    """Convert a wall-clock range to minutes since midnight.

    An end of ``00:00`` reads as end of day (1440) unless the start is
    also ``00:00``. Midnight-crossing ranges have no other representation
    as bare wall-clock strings.
    """
    start_min = to_minutes(start)
    end_min = to_minutes(end)
    if end_min == 0 and start_min != 0:
        end_min = MINUTES_PER_DAY
    return start_min, end_min


def parse_date(value: str) -> date:
    """Parse a ``YYYY-MM-DD`` calendar date.

    Raises:
        ValueError: If the value is not in that format.
    """
    return datetime.strptime(value.strip(), "%Y-%m-%d").date()
