"""
Requested-range validation against resolved availability.

A range is bookable when at least one availability window fully contains
it. Windows are never merged: a range spanning two adjacent windows is
not bookable, even though their union would cover it.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from lead_booking.schemas.booking_schema import AvailabilityWindow, SlotState, TimeSlot
from lead_booking.tools.slots import SLOT_GRANULARITY_MINUTES
from lead_booking.utils import range_minutes

logger = logging.getLogger(__name__)


class ValidationReason(str, Enum):
    OK = "ok"
    MISSING_TIME = "missing_time"
    MALFORMED_TIME = "malformed_time"
    EMPTY_RANGE = "empty_range"
    OFF_GRID = "off_grid"
    NO_AVAILABILITY = "no_availability"
    OUTSIDE_AVAILABILITY = "outside_availability"


@dataclass
class ValidationResult:
    """Outcome of validating one requested range."""
    passed: bool
    reason: ValidationReason = ValidationReason.OK
    message: Optional[str] = None
    window: Optional[AvailabilityWindow] = None


def _parse_range(start: str, end: str) -> tuple[Optional[tuple[int, int]], ValidationResult]:
    if not start or not end:
        return None, ValidationResult(
            passed=False,
            reason=ValidationReason.MISSING_TIME,
            message="Select both a start and an end time.",
        )
    try:
        start_min, end_min = range_minutes(start, end)
    except ValueError:
        return None, ValidationResult(
            passed=False,
            reason=ValidationReason.MALFORMED_TIME,
            message=f"'{start}-{end}' is not a valid time range.",
        )
    if start_min >= end_min:
        return None, ValidationResult(
            passed=False,
            reason=ValidationReason.EMPTY_RANGE,
            message="The end time must be after the start time.",
        )
    return (start_min, end_min), ValidationResult(passed=True)


class BookingValidator:
    """Decides whether a requested range may be committed."""

    def __init__(self, granularity_minutes: int = SLOT_GRANULARITY_MINUTES) -> None:
        self.granularity = granularity_minutes

    def validate(
        self, start: str, end: str, windows: Iterable[AvailabilityWindow]
    ) -> ValidationResult:
        """Check that some single window contains ``[start, end)``."""
        parsed, result = _parse_range(start, end)
        if parsed is None:
            return result
        start_min, end_min = parsed

        windows = list(windows)
        if not windows:
            return ValidationResult(
                passed=False,
                reason=ValidationReason.NO_AVAILABILITY,
                message="No availability for this resource on this date.",
            )

        for window in windows:
            window_start, window_end = window.minutes
            if start_min >= window_start and end_min <= window_end:
                logger.debug(
                    "Range %s-%s inside window %s-%s",
                    start, end, window.start_time, window.end_time,
                )
                return ValidationResult(passed=True, window=window)

        return ValidationResult(
            passed=False,
            reason=ValidationReason.OUTSIDE_AVAILABILITY,
            message="This time range is not within available slots. Please select a different time.",
        )

    def is_bookable(self, start: str, end: str, windows: Iterable[AvailabilityWindow]) -> bool:
        return self.validate(start, end, windows).passed

    def check_duration(self, start: str, end: str) -> ValidationResult:
        """Check that the range lasts a positive multiple of the granularity."""
        parsed, result = _parse_range(start, end)
        if parsed is None:
            return result
        start_min, end_min = parsed
        if (end_min - start_min) % self.granularity:
            return ValidationResult(
                passed=False,
                reason=ValidationReason.OFF_GRID,
                message=f"Bookings must last a multiple of {self.granularity} minutes.",
            )
        return result

    def selectable(
        self, slots: Iterable[TimeSlot], windows: Iterable[AvailabilityWindow]
    ) -> list[TimeSlot]:
        """Unbooked, settled slots that fall entirely inside some window."""
        windows = list(windows)
        return [
            slot for slot in slots
            if slot.state == SlotState.UNBOOKED
            and self.is_bookable(slot.start_time, slot.end_time, windows)
        ]
