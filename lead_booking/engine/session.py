"""
Booking session for one lead.

Composes the resolver, validator, store, committer and cancellation
handler around a BookingContext, and owns the in-flight guard: a session
runs at most one commit or cancellation at a time.

Usage:
    session = BookingSession(backend, lead_id="L-100", created_by="agent-7")
    await session.load_resources()
    await session.select("c-1", "2025-03-18")
    slot = session.first_available()
    outcome = await session.commit(slot.start_time, slot.end_time)
"""

import asyncio
import logging
from typing import Optional

from lead_booking.config import ScheduleConfig, settings
from lead_booking.engine.booked_slots import BookedSlotsStore
from lead_booking.engine.cancellation import CancellationHandler
from lead_booking.engine.committer import BookingCommitter, CommitOutcome, CommitStatus
from lead_booking.engine.notifications import LoggingNotifier, Notification, Notifier, Severity
from lead_booking.engine.slot_board import SlotBoard
from lead_booking.engine.validator import BookingValidator
from lead_booking.schemas.booking_schema import (
    AvailabilityWindow,
    BookingRecord,
    SlotState,
    TimeSlot,
)
from lead_booking.schemas.resource_schema import BookingContext, Resource
from lead_booking.tools.availability import AvailabilityResolver
from lead_booking.tools.backend import BookingBackend
from lead_booking.tools.resources import ResourceDirectory
from lead_booking.tools.slots import expand_windows
from lead_booking.utils import parse_date

logger = logging.getLogger(__name__)

MSG_BUSY = "Another booking operation is in progress. Please wait."
MSG_NO_DAY = "Select a resource and a date first."
MSG_SLOT_TAKEN = "This slot is already booked. Please select another time."


class BookingSession:
    """One operator booking for one lead."""

    def __init__(
        self,
        backend: BookingBackend,
        lead_id: str,
        *,
        directory: Optional[ResourceDirectory] = None,
        notifier: Optional[Notifier] = None,
        created_by: Optional[str] = None,
        tz_offset_minutes: Optional[int] = None,
        schedule: Optional[ScheduleConfig] = None,
    ) -> None:
        self.schedule = schedule or settings.schedule
        self.backend = backend
        self.directory = directory if directory is not None else ResourceDirectory()
        self.notifier = notifier or LoggingNotifier()
        if tz_offset_minutes is None:
            tz_offset_minutes = self.schedule.viewer_tz_offset_minutes
        self.context = BookingContext(
            lead_id=lead_id, tz_offset_minutes=tz_offset_minutes, created_by=created_by
        )

        self.validator = BookingValidator(self.schedule.slot_minutes)
        self.resolver = AvailabilityResolver(backend)
        self.store = BookedSlotsStore(backend, self.directory)
        self.committer = BookingCommitter(
            backend, self.validator, self.directory, self.notifier, self.refresh, self.schedule
        )
        self.canceller = CancellationHandler(backend, self.notifier, self.refresh)

        self.board: Optional[SlotBoard] = None
        self.windows: list[AvailabilityWindow] = []
        self.lead_bookings: list[BookingRecord] = []
        self._in_flight = False

    @property
    def busy(self) -> bool:
        return self._in_flight

    async def load_resources(self) -> list[Resource]:
        return await self.directory.load(self.backend)

    async def select(self, resource_id: str, date: str) -> SlotBoard:
        """Switch to a (resource, date), building a fresh board and loading it."""
        parse_date(date)
        self.context.resource_id = resource_id
        self.context.date = date
        self.board = SlotBoard(
            date,
            self.schedule.business_hours_start,
            self.schedule.business_hours_end,
            self.schedule.slot_minutes,
        )
        self.windows = []
        await self.refresh()
        return self.board

    async def refresh(self) -> None:
        """Re-fetch bookings and availability, then settle the board."""
        if not self.context.has_active_day():
            if self.context.lead_id:
                self.lead_bookings = await self.store.load_for_lead(self.context.lead_id)
            return

        resource_id, date = self.context.resource_id, self.context.date
        records, self.windows = await asyncio.gather(
            self.store.load_for_day(resource_id, date),
            self.resolver.resolve(resource_id, date, self.context.tz_offset_minutes),
        )
        if self.board is None:
            return
        if self.store.stale:
            logger.warning(
                "Bookings for %s on %s unavailable; %d slots left unsettled",
                resource_id, date, len(self.board.pending()),
            )
            return
        self.board.reconcile(records)

    def _reject_busy(self) -> bool:
        if not self._in_flight:
            return False
        logger.info("Rejected overlapping booking operation")
        self.notifier.notify(Notification(MSG_BUSY, Severity.WARNING))
        return True

    async def commit(self, start: str, end: str) -> CommitOutcome:
        if self._reject_busy():
            return CommitOutcome(CommitStatus.REJECTED, MSG_BUSY)
        self._in_flight = True
        try:
            return await self.committer.commit(
                self.context, start, end, self.board, self.windows
            )
        finally:
            self._in_flight = False

    async def commit_slot(self, slot_id: str) -> CommitOutcome:
        """Commit one candidate slot from the board.

        Raises:
            ValueError: If the slot id is not on the board.
        """
        if self.board is None:
            self.notifier.notify(Notification(MSG_NO_DAY, Severity.ERROR))
            return CommitOutcome(CommitStatus.REJECTED, MSG_NO_DAY)
        slot = self.board.get(slot_id)
        if slot.state != SlotState.UNBOOKED:
            self.notifier.notify(Notification(MSG_SLOT_TAKEN, Severity.WARNING))
            return CommitOutcome(CommitStatus.REJECTED, MSG_SLOT_TAKEN)
        return await self.commit(slot.start_time, slot.end_time)

    async def cancel(self, booking_id: str) -> bool:
        if self._reject_busy():
            return False
        self._in_flight = True
        try:
            return await self.canceller.cancel(booking_id, self.board)
        finally:
            self._in_flight = False

    def candidates(self) -> list[TimeSlot]:
        """Board slots the operator may pick right now."""
        if self.board is None:
            return []
        return self.validator.selectable(self.board.to_list(), self.windows)

    def first_available(self) -> Optional[TimeSlot]:
        return next(iter(self.candidates()), None)

    def available_slots(self) -> list[TimeSlot]:
        """Every slot the availability windows allow, ignoring business hours."""
        if not self.context.date:
            return []
        return expand_windows(self.windows, self.context.date, self.schedule.slot_minutes)

    async def summary(self) -> list[BookingRecord]:
        """All bookings of the lead across dates, scheduled first, newest first."""
        self.lead_bookings = await self.store.load_for_lead(self.context.lead_id)
        return self.lead_bookings
