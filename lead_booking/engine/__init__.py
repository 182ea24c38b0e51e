from lead_booking.engine.booked_slots import BookedSlotsStore
from lead_booking.engine.cancellation import CancellationHandler
from lead_booking.engine.committer import BookingCommitter, CommitOutcome, CommitStatus
from lead_booking.engine.notifications import (
    LoggingNotifier,
    Notification,
    Notifier,
    RecordingNotifier,
    Severity,
)
from lead_booking.engine.session import BookingSession
from lead_booking.engine.slot_board import SlotBoard
from lead_booking.engine.slot_state import SlotLifecycle, SlotTrigger
from lead_booking.engine.validator import BookingValidator, ValidationReason, ValidationResult

__all__ = [
    "BookingSession",
    "BookingCommitter",
    "CommitOutcome",
    "CommitStatus",
    "CancellationHandler",
    "BookedSlotsStore",
    "BookingValidator",
    "ValidationReason",
    "ValidationResult",
    "SlotBoard",
    "SlotLifecycle",
    "SlotTrigger",
    "Notification",
    "Notifier",
    "Severity",
    "LoggingNotifier",
    "RecordingNotifier",
]
