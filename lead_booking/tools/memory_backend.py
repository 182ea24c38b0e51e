"""
Mock bookings server.

Authoritative in-process stand-in for the deals-pipeline API: it owns the
resources, their working hours and every booking, decides conflicts, and
publishes availability the way the production feed does (absolute UTC
timestamps computed from the viewer's offset).
"""

import asyncio
import logging
import uuid
from collections import Counter
from datetime import datetime, time, timedelta, timezone
from typing import Any, Optional, TypedDict

from lead_booking.schemas.booking_schema import BookingRequest
from lead_booking.tools.backend import BackendError, BackendRequestError, RawPayload
from lead_booking.utils import parse_date, range_minutes

logger = logging.getLogger(__name__)

DEFAULT_WORKING_HOURS = ("09:00", "18:00")

MSG_ALREADY_BOOKED = "This slot is already booked."
MSG_BUFFER = "Requested time falls within the buffer period of another booking."
MSG_OUTSIDE_HOURS = "Resource is unavailable at the requested time."


class StoredBooking(TypedDict):
    """Full booking record held by the mock server."""

    id: str
    lead_id: str
    resource_id: str
    resource_name: str
    resource_email: str
    booking_date: str
    start_time: str
    end_time: str
    booking_type: str
    created_by: Optional[str]
    status: str
    created_at: str


def _utc_stamp(date: str, minutes: int, tz_offset_minutes: int) -> str:
    """Render viewer-local ``date`` + ``minutes`` as an absolute UTC timestamp."""
    viewer_tz = timezone(timedelta(minutes=tz_offset_minutes))
    local = datetime.combine(parse_date(date), time.min, tzinfo=viewer_tz)
    local += timedelta(minutes=minutes)
    return local.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


class InMemoryBookingBackend:
    """BookingBackend that keeps all state in memory."""

    def __init__(self, buffer_minutes: int = 0) -> None:
        self.buffer_minutes = buffer_minutes
        self._resources: dict[str, dict[str, str]] = {}
        self._hours: dict[str, tuple[str, str]] = {}
        self._bookings: dict[str, StoredBooking] = {}
        self._failures: dict[str, BackendError] = {}
        self._lock = asyncio.Lock()
        self.calls: Counter[str] = Counter()

    # ------------------------------------------------------------------ #
    # Test and demo setup
    # ------------------------------------------------------------------ #

    def add_resource(
        self,
        resource_id: str,
        name: str,
        email: str = "",
        hours: tuple[str, str] = DEFAULT_WORKING_HOURS,
    ) -> None:
        self._resources[resource_id] = {"id": resource_id, "name": name, "email": email}
        self._hours[resource_id] = hours

    def fail_next(self, operation: str, error: BackendError) -> None:
        """Make the next call to ``operation`` raise ``error``."""
        self._failures[operation] = error

    def get_booking(self, booking_id: str) -> Optional[StoredBooking]:
        return self._bookings.get(booking_id)

    def reset(self) -> None:
        """Clear all bookings, failures and call counts."""
        self._bookings.clear()
        self._failures.clear()
        self.calls.clear()

    def _enter(self, operation: str) -> None:
        self.calls[operation] += 1
        error = self._failures.pop(operation, None)
        if error is not None:
            raise error

    # ------------------------------------------------------------------ #
    # Server-side rules
    # ------------------------------------------------------------------ #

    def _active(self, resource_id: str, date: str) -> list[StoredBooking]:
        return [
            b for b in self._bookings.values()
            if b["resource_id"] == resource_id
            and b["booking_date"] == date
            and b["status"] != "cancelled"
        ]

    def _conflict(self, resource_id: str, date: str, start: str, end: str) -> Optional[str]:
        """Return the rejection message for a range, or None if it is free."""
        hours = self._hours.get(resource_id)
        if hours is None:
            return MSG_OUTSIDE_HOURS
        start_min, end_min = range_minutes(start, end)
        open_min, close_min = range_minutes(*hours)
        if start_min < open_min or end_min > close_min:
            return MSG_OUTSIDE_HOURS

        for booking in self._active(resource_id, date):
            b_start, b_end = range_minutes(booking["start_time"], booking["end_time"])
            if start_min < b_end and end_min > b_start:
                return MSG_ALREADY_BOOKED
            if (
                self.buffer_minutes
                and start_min < b_end + self.buffer_minutes
                and end_min > b_start - self.buffer_minutes
            ):
                return MSG_BUFFER
        return None

    def _free_ranges(self, resource_id: str, date: str) -> list[tuple[int, int]]:
        """Working hours minus active bookings (and their buffers)."""
        hours = self._hours.get(resource_id)
        if hours is None:
            return []
        free = [range_minutes(*hours)]
        busy = sorted(
            range_minutes(b["start_time"], b["end_time"]) for b in self._active(resource_id, date)
        )
        for b_start, b_end in busy:
            b_start -= self.buffer_minutes
            b_end += self.buffer_minutes
            remaining = []
            for f_start, f_end in free:
                if b_end <= f_start or b_start >= f_end:
                    remaining.append((f_start, f_end))
                    continue
                if f_start < b_start:
                    remaining.append((f_start, b_start))
                if b_end < f_end:
                    remaining.append((b_end, f_end))
            free = remaining
        return free

    # ------------------------------------------------------------------ #
    # BookingBackend
    # ------------------------------------------------------------------ #

    async def get_availability(
        self, resource_id: str, date: str, tz_offset_minutes: int
    ) -> RawPayload:
        self._enter("get_availability")
        slots = [
            {
                "start": _utc_stamp(date, start, tz_offset_minutes),
                "end": _utc_stamp(date, end, tz_offset_minutes),
            }
            for start, end in self._free_ranges(resource_id, date)
        ]
        return {"available_slots": slots}

    async def get_bookings(
        self,
        resource_id: Optional[str] = None,
        lead_id: Optional[str] = None,
        date: Optional[str] = None,
    ) -> list[dict[str, Any]]:
        self._enter("get_bookings")
        results = []
        for booking in self._bookings.values():
            if resource_id and booking["resource_id"] != resource_id:
                continue
            if lead_id and booking["lead_id"] != lead_id:
                continue
            if date and booking["booking_date"] != date:
                continue
            record = dict(booking)
            # The API reports times with seconds
            record["start_time"] = f"{booking['start_time']}:00"
            record["end_time"] = f"{booking['end_time']}:00"
            results.append(record)
        return results

    async def check_availability(
        self, resource_id: str, date: str, start_time: str, end_time: str
    ) -> dict[str, Any]:
        self._enter("check_availability")
        conflict = self._conflict(resource_id, date, start_time, end_time)
        if conflict:
            return {"available": False, "message": conflict}
        return {"available": True}

    async def book_slot(self, request: BookingRequest) -> dict[str, Any]:
        self._enter("book_slot")
        async with self._lock:
            # Yield inside the critical section so concurrent commits really race for it
            await asyncio.sleep(0)
            conflict = self._conflict(
                request.resource_id, request.date, request.start_time, request.end_time
            )
            if conflict:
                logger.info(
                    "Booking rejected for %s on %s %s-%s: %s",
                    request.resource_id, request.date,
                    request.start_time, request.end_time, conflict,
                )
                raise BackendRequestError(conflict, status_code=409)

            ref = f"BK-{uuid.uuid4().hex[:6].upper()}"
            resource = self._resources.get(request.resource_id, {})
            booking: StoredBooking = {
                "id": ref,
                "lead_id": request.lead_id,
                "resource_id": request.resource_id,
                "resource_name": resource.get("name", ""),
                "resource_email": resource.get("email", ""),
                "booking_date": request.date,
                "start_time": request.start_time,
                "end_time": request.end_time,
                "booking_type": request.booking_type,
                "created_by": request.created_by,
                "status": "scheduled",
                "created_at": datetime.now(timezone.utc).isoformat(),
            }
            self._bookings[ref] = booking

        logger.info(
            "Booking created: %s for lead %s with %s on %s %s-%s",
            ref, request.lead_id, request.resource_id,
            request.date, request.start_time, request.end_time,
        )
        return dict(booking)

    async def cancel_booking(self, booking_id: str) -> None:
        self._enter("cancel_booking")
        booking = self._bookings.get(booking_id)
        if booking is None or booking["status"] == "cancelled":
            logger.info("Booking %s already gone", booking_id)
            return
        booking["status"] = "cancelled"
        logger.info("Booking cancelled: %s", booking_id)

    async def list_resources(self) -> RawPayload:
        self._enter("list_resources")
        return {"data": [dict(r) for r in self._resources.values()]}
