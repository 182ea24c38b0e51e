"""Booking cancellation: the commit path in reverse, without the pre-check."""

from collections.abc import Awaitable, Callable
from typing import Optional

from lead_booking.engine.notifications import Notification, Notifier, Severity
from lead_booking.engine.slot_board import SlotBoard
from lead_booking.logging_context import get_op_logger, new_operation_id
from lead_booking.tools.backend import BackendError, BookingBackend

logger = get_op_logger(__name__)

MSG_CANCELLED = "Booking cancelled successfully!"
MSG_NO_BOOKING = "No booking selected to cancel."


class CancellationHandler:
    """
    Cancels bookings by id.

    Slots are released only after the server accepts the cancellation, and
    even then only provisionally: the refresh that follows settles them.
    A failed cancellation leaves every slot exactly as it was.
    """

    def __init__(
        self,
        backend: BookingBackend,
        notifier: Notifier,
        refresh: Callable[[], Awaitable[None]],
    ) -> None:
        self._backend = backend
        self._notifier = notifier
        self._refresh = refresh

    async def cancel(self, booking_id: str, board: Optional[SlotBoard] = None) -> bool:
        """Cancel a booking. Returns True when the server accepted it."""
        new_operation_id()
        if not booking_id:
            self._notifier.notify(Notification(MSG_NO_BOOKING, Severity.ERROR))
            return False

        logger.info("Cancelling booking %s", booking_id)
        try:
            await self._backend.cancel_booking(booking_id)
        except BackendError as exc:
            logger.error("Cancellation of %s failed: %s", booking_id, exc)
            message = f"Failed to cancel booking: {exc}" if str(exc) else "Failed to cancel booking."
            self._notifier.notify(Notification(message, Severity.ERROR))
            return False

        if board is not None:
            released = board.mark_pending_cancel(booking_id)
            logger.debug("Marked %d slots pending cancel", len(released))
        self._notifier.notify(Notification(MSG_CANCELLED, Severity.SUCCESS))
        await self._refresh()
        return True
