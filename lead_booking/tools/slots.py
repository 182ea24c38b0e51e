"""Candidate slot generation for a single calendar date."""

import logging
from collections.abc import Iterable, Iterator

from lead_booking.schemas.booking_schema import AvailabilityWindow, TimeSlot
from lead_booking.utils import format_minutes, range_minutes

logger = logging.getLogger(__name__)

SLOT_GRANULARITY_MINUTES = 15


def slot_id(date: str, start_time: str) -> str:
    return f"{date}-{start_time}"


def _make_slot(date: str, start_min: int, end_min: int) -> TimeSlot:
    start = format_minutes(start_min)
    return TimeSlot(
        id=slot_id(date, start),
        date=date,
        start_time=start,
        end_time=format_minutes(end_min),
    )


class SlotGenerator:
    """
    Contiguous, non-overlapping slots covering ``[start, end)`` on one date.

    Iterating twice yields the same slots: the sequence is recomputed on
    every pass and never consumed. A trailing partial slot that would run
    past ``end`` is dropped. An ``end`` of ``00:00`` means end of day.

    Usage:
        slots = SlotGenerator("2025-03-18", "09:00", "18:00")
        assert len(slots) == 36
    """

    def __init__(
        self,
        date: str,
        start: str,
        end: str,
        granularity_minutes: int = SLOT_GRANULARITY_MINUTES,
    ) -> None:
        if granularity_minutes < 1:
            raise ValueError(f"Granularity must be >= 1 minute, got {granularity_minutes}")
        self.date = date
        self.granularity = granularity_minutes
        self._start_min, self._end_min = range_minutes(start, end)

    def __iter__(self) -> Iterator[TimeSlot]:
        cursor = self._start_min
        while cursor + self.granularity <= self._end_min:
            yield _make_slot(self.date, cursor, cursor + self.granularity)
            cursor += self.granularity

    def __len__(self) -> int:
        return max(0, (self._end_min - self._start_min) // self.granularity)


def generate_slots(
    date: str, start: str, end: str, granularity_minutes: int = SLOT_GRANULARITY_MINUTES
) -> list[TimeSlot]:
    """Materialize a SlotGenerator into a list."""
    return list(SlotGenerator(date, start, end, granularity_minutes))


def expand_windows(
    windows: Iterable[AvailabilityWindow],
    date: str,
    granularity_minutes: int = SLOT_GRANULARITY_MINUTES,
) -> list[TimeSlot]:
    """Chop availability windows into granularity-sized candidate slots.

    Windows shorter than one slot contribute nothing. Overlapping or
    duplicated windows yield each candidate once; the result is sorted
    by start time.
    """
    seen: set[tuple[int, int]] = set()
    expanded: list[tuple[int, int]] = []
    for window in windows:
        start_min, end_min = window.minutes
        cursor = start_min
        while cursor + granularity_minutes <= end_min:
            key = (cursor, cursor + granularity_minutes)
            if key not in seen:
                seen.add(key)
                expanded.append(key)
            cursor += granularity_minutes
    expanded.sort()
    return [_make_slot(date, start, end) for start, end in expanded]
