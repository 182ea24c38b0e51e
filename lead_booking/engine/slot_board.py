"""
Slot board for one (resource, date).

Holds the candidate slots of the day and drives each through its
SlotLifecycle. The board is a soft cache: local writes only mark slots
pending, and ``reconcile`` against a fresh bookings load settles them.

Usage:
    board = SlotBoard("2025-03-18", "09:00", "18:00")
    board.mark_pending_commit("09:00", "09:30", booked_by)
    board.reconcile(store.records)
"""

import logging
from collections.abc import Iterable
from typing import Any, Optional

from lead_booking.engine.slot_state import SlotLifecycle, SlotTrigger
from lead_booking.schemas.booking_schema import (
    BookedBy,
    BookingRecord,
    Confirmation,
    SlotState,
    TimeSlot,
)
from lead_booking.tools.slots import SLOT_GRANULARITY_MINUTES, SlotGenerator
from lead_booking.utils import range_minutes

logger = logging.getLogger(__name__)


def _record_minutes(record: BookingRecord) -> Optional[tuple[int, int]]:
    try:
        return range_minutes(record.start_time, record.end_time)
    except ValueError:
        return None


class SlotBoard:
    """Candidate slots of one day and their client-observed states."""

    def __init__(
        self,
        date: str,
        start: str,
        end: str,
        granularity_minutes: int = SLOT_GRANULARITY_MINUTES,
    ) -> None:
        self.date = date
        self.slots: dict[str, TimeSlot] = {
            slot.id: slot for slot in SlotGenerator(date, start, end, granularity_minutes)
        }
        self._lifecycles: dict[str, SlotLifecycle] = {
            slot_id: SlotLifecycle() for slot_id in self.slots
        }

    def get(self, slot_id: str) -> TimeSlot:
        try:
            return self.slots[slot_id]
        except KeyError:
            raise ValueError(f"Unknown slot: {slot_id}") from None

    def lifecycle(self, slot_id: str) -> SlotLifecycle:
        self.get(slot_id)
        return self._lifecycles[slot_id]

    def slots_in_range(self, start: str, end: str) -> list[TimeSlot]:
        """Slots overlapping ``[start, end)``."""
        start_min, end_min = range_minutes(start, end)
        found = []
        for slot in self.slots.values():
            slot_start, slot_end = range_minutes(slot.start_time, slot.end_time)
            if slot_start < end_min and slot_end > start_min:
                found.append(slot)
        return found

    def _apply(self, slot: TimeSlot, trigger: SlotTrigger) -> None:
        slot.state = self._lifecycles[slot.id].transition(trigger)

    def mark_pending_commit(
        self, start: str, end: str, booked_by: BookedBy, booking_id: Optional[str] = None
    ) -> list[TimeSlot]:
        """Provisionally take every unbooked slot in the range."""
        marked = []
        for slot in self.slots_in_range(start, end):
            if slot.state != SlotState.UNBOOKED:
                logger.debug("Slot %s is %s, not marking pending", slot.id, slot.state.value)
                continue
            self._apply(slot, SlotTrigger.COMMIT_ACCEPTED)
            slot.confirmation = Confirmation.PROVISIONAL
            slot.booked_by = booked_by
            slot.booking_id = booking_id
            marked.append(slot)
        return marked

    def mark_pending_cancel(self, booking_id: str) -> list[TimeSlot]:
        """Provisionally release the booked slots of a booking."""
        marked = []
        for slot in self.slots.values():
            if slot.booking_id != booking_id or slot.state != SlotState.BOOKED:
                continue
            self._apply(slot, SlotTrigger.CANCEL_ACCEPTED)
            slot.confirmation = Confirmation.PROVISIONAL
            marked.append(slot)
        return marked

    def reconcile(self, records: Iterable[BookingRecord]) -> None:
        """Settle every slot against the server's bookings for this date."""
        ranges = []
        for record in records:
            if record.date != self.date:
                continue
            minutes = _record_minutes(record)
            if minutes is not None:
                ranges.append((minutes, record))

        for slot in self.slots.values():
            slot_start, slot_end = range_minutes(slot.start_time, slot.end_time)
            holder = next(
                (rec for (start, end), rec in ranges if start < slot_end and end > slot_start),
                None,
            )
            if holder is None:
                self._apply(slot, SlotTrigger.REFRESH_FREE)
                slot.booked_by = None
                slot.booking_id = None
            else:
                self._apply(slot, SlotTrigger.REFRESH_BOOKED)
                slot.booked_by = BookedBy(
                    resource_id=holder.resource_id or "",
                    name=holder.resource_name,
                    email=holder.resource_email,
                )
                slot.booking_id = holder.id
            slot.confirmation = Confirmation.CONFIRMED

    def to_list(self) -> list[TimeSlot]:
        return list(self.slots.values())

    def booked(self) -> list[TimeSlot]:
        return [s for s in self.slots.values() if s.state == SlotState.BOOKED]

    def free(self) -> list[TimeSlot]:
        return [s for s in self.slots.values() if s.state == SlotState.UNBOOKED]

    def pending(self) -> list[TimeSlot]:
        return [s for s in self.slots.values() if self._lifecycles[s.id].is_pending()]

    def get_stats(self) -> dict[str, Any]:
        """Slot counts by state."""
        counts = {state.value: 0 for state in SlotState}
        for slot in self.slots.values():
            counts[slot.state.value] += 1
        counts["total"] = len(self.slots)
        counts["provisional"] = sum(1 for s in self.slots.values() if s.is_provisional)
        return counts
