"""
Booking commit path: Guard -> Pre-check -> Commit -> Refresh.

The pre-check is advisory and only saves a round trip when the range is
obviously gone. The commit is authoritative: the server decides conflicts,
and whatever happens the (resource, date) is re-fetched afterwards so the
slot board ends up showing the server's view. Nothing is retried.
"""

import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from pydantic import ValidationError

from lead_booking.config import ScheduleConfig, settings
from lead_booking.engine.notifications import Notification, Notifier, Severity, classify_failure
from lead_booking.engine.slot_board import SlotBoard
from lead_booking.engine.validator import BookingValidator
from lead_booking.logging_context import get_op_logger, new_operation_id
from lead_booking.schemas.booking_schema import (
    AvailabilityCheck,
    AvailabilityWindow,
    BookingRequest,
)
from lead_booking.schemas.resource_schema import BookingContext
from lead_booking.tools.backend import BackendError, BookingBackend
from lead_booking.tools.resources import ResourceDirectory

logger = get_op_logger(__name__)

MSG_MISSING_CONTEXT = "Select a lead, a resource and a date before booking."
MSG_SLOT_GONE = "Slot is no longer available. Please select another time."
MSG_COMMIT_FAILED = "Failed to create booking."

RefreshCallback = Callable[[], Awaitable[None]]


class CommitStatus(str, Enum):
    COMMITTED = "committed"
    REJECTED = "rejected"
    UNAVAILABLE = "unavailable"
    CONFLICT = "conflict"
    FAILED = "failed"


@dataclass
class CommitOutcome:
    """What happened to one commit attempt."""
    status: CommitStatus
    message: str
    booking_id: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == CommitStatus.COMMITTED


class BookingCommitter:
    """Submits one booking and hands every outcome to the notifier."""

    def __init__(
        self,
        backend: BookingBackend,
        validator: BookingValidator,
        directory: ResourceDirectory,
        notifier: Notifier,
        refresh: RefreshCallback,
        schedule: Optional[ScheduleConfig] = None,
    ) -> None:
        self._backend = backend
        self._validator = validator
        self._directory = directory
        self._notifier = notifier
        self._refresh = refresh
        self._schedule = schedule or settings.schedule

    def _notify(self, message: str, severity: Severity) -> None:
        self._notifier.notify(Notification(message=message, severity=severity))

    async def commit(
        self,
        context: BookingContext,
        start: str,
        end: str,
        board: Optional[SlotBoard],
        windows: Iterable[AvailabilityWindow],
    ) -> CommitOutcome:
        """
        Commit ``[start, end)`` for the context's lead, resource and date.

        Returns:
            A CommitOutcome. Only COMMITTED means the server accepted the
            booking; the slot board still shows it as provisional until the
            refresh that follows confirms it.
        """
        op_id = new_operation_id()

        if not (context.lead_id and context.resource_id and context.date):
            logger.warning("Commit %s rejected: missing lead, resource or date", op_id)
            self._notify(MSG_MISSING_CONTEXT, Severity.ERROR)
            return CommitOutcome(CommitStatus.REJECTED, MSG_MISSING_CONTEXT)

        for check in (
            self._validator.validate(start, end, windows),
            self._validator.check_duration(start, end),
        ):
            if not check.passed:
                message = check.message or MSG_COMMIT_FAILED
                logger.info("Commit %s rejected locally (%s)", op_id, check.reason.value)
                self._notify(message, Severity.WARNING)
                return CommitOutcome(CommitStatus.REJECTED, message)

        resource_id, date = context.resource_id, context.date

        # --- Pre-check (advisory) ---
        try:
            raw = await self._backend.check_availability(resource_id, date, start, end)
            precheck = AvailabilityCheck.model_validate(raw)
        except (BackendError, ValidationError) as exc:
            logger.warning("Pre-check failed, proceeding to commit: %s", exc)
        else:
            if not precheck.available:
                message = precheck.message or MSG_SLOT_GONE
                logger.info("Pre-check reports %s-%s unavailable: %s", start, end, message)
                self._notify(message, Severity.WARNING)
                await self._refresh()
                return CommitOutcome(CommitStatus.UNAVAILABLE, message)

        # --- Commit (authoritative) ---
        request = BookingRequest(
            lead_id=context.lead_id,
            resource_id=resource_id,
            date=date,
            start_time=start,
            end_time=end,
            created_by=context.created_by,
            booking_type=self._schedule.booking_type,
            booking_source=self._schedule.booking_source,
        )
        logger.info(
            "Submitting booking for lead %s with %s on %s %s-%s",
            request.lead_id, resource_id, date, start, end,
        )
        try:
            created = await self._backend.book_slot(request)
        except BackendError as exc:
            message = str(exc) or MSG_COMMIT_FAILED
            severity = classify_failure(message)
            logger.log(
                logging.WARNING if severity == Severity.WARNING else logging.ERROR,
                "Booking rejected: %s", message,
            )
            self._notify(message, severity)
            await self._refresh()
            status = CommitStatus.CONFLICT if severity == Severity.WARNING else CommitStatus.FAILED
            return CommitOutcome(status, message)

        booking_id = created.get("id") or created.get("_id")
        booking_id = str(booking_id) if booking_id is not None else None
        booked_by = self._directory.display(resource_id)
        if board is not None:
            board.mark_pending_commit(start, end, booked_by, booking_id)

        message = f"Booking confirmed with {booked_by.name} on {date} from {start} to {end}"
        logger.info("Booking %s accepted", booking_id)
        self._notify(message, Severity.SUCCESS)
        await self._refresh()
        return CommitOutcome(CommitStatus.COMMITTED, message, booking_id)
