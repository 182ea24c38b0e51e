"""
Read-only projection of the bookings feed.

Raw booking records name their fields inconsistently depending on which
API generation wrote them. ``map_booking`` folds every known variant into
a BookingRecord and resolves the resource's display name through the
resource directory.
"""

import logging
from datetime import datetime
from typing import Any, Optional

from lead_booking.schemas.booking_schema import BookingRecord
from lead_booking.tools.backend import BackendError, BookingBackend
from lead_booking.tools.resources import ResourceDirectory
from lead_booking.utils import normalize_wall_clock

logger = logging.getLogger(__name__)

START_KEYS = ("scheduled_at", "start_time", "startTime", "booking_time")
# Newer records store the end (including any buffer) as buffer_until
END_KEYS = ("buffer_until", "end_time", "endTime")
DATE_KEYS = ("booking_date", "date")
RESOURCE_KEYS = (
    "resource_id", "counsellor_id", "counsellorId", "user_id", "userId", "assigned_user_id",
)
NAME_KEYS = ("resource_name", "counsellor_name", "counsellorName", "user_name", "userName")
EMAIL_KEYS = (
    "resource_email", "counsellor_email", "counsellorEmail", "user_email", "userEmail",
)
TYPE_KEYS = ("booking_type", "bookingType", "type")

CANCELLED_STATUSES = frozenset({"cancelled", "canceled"})

_STATUS_RANK = {"completed": 2, "cancelled": 3, "canceled": 3}


def _first(raw: dict[str, Any], keys: tuple[str, ...]) -> Any:
    for key in keys:
        value = raw.get(key)
        if value not in (None, ""):
            return value
    return None


def extract_hhmm(value: Any) -> Optional[str]:
    """Wall-clock ``HH:MM`` from a bare time or the time part of an ISO stamp.

    The time part is read as written, without any zone conversion.
    """
    text = str(value or "").strip()
    if not text:
        return None
    if "T" in text:
        text = text.split("T", 1)[1][:5]
    return normalize_wall_clock(text)


def map_booking(raw: Any, directory: ResourceDirectory) -> Optional[BookingRecord]:
    """Map one raw booking to a BookingRecord, or None when it is unusable."""
    if not isinstance(raw, dict):
        return None
    booking_id = raw.get("id") or raw.get("_id")
    start_value = _first(raw, START_KEYS)
    end_value = _first(raw, END_KEYS)

    if isinstance(start_value, str) and "T" in start_value:
        date = start_value[:10]
    else:
        date = _first(raw, DATE_KEYS)
    start = extract_hhmm(start_value)
    end = extract_hhmm(end_value)

    if booking_id is None or not date or start is None or end is None:
        logger.debug("Skipping unusable booking record: %s", raw.get("id", raw))
        return None

    resource_id = _first(raw, RESOURCE_KEYS)
    booked_by = directory.display(
        resource_id,
        fallback_name=_first(raw, NAME_KEYS) or "",
        fallback_email=_first(raw, EMAIL_KEYS) or "",
    )
    lead_id = raw.get("lead_id") or raw.get("leadId")
    return BookingRecord(
        id=str(booking_id),
        lead_id=str(lead_id) if lead_id is not None else None,
        resource_id=booked_by.resource_id or None,
        date=str(date)[:10],
        start_time=start,
        end_time=end,
        created_by=raw.get("created_by"),
        resource_name=booked_by.name,
        resource_email=booked_by.email,
        status=str(raw.get("status") or "scheduled").lower(),
        booking_type=str(_first(raw, TYPE_KEYS) or ""),
    )


def _sort_stamp(record: BookingRecord) -> datetime:
    try:
        return datetime.strptime(f"{record.date}T{record.start_time}", "%Y-%m-%dT%H:%M")
    except ValueError:
        return datetime.min


def sort_for_summary(records: list[BookingRecord]) -> list[BookingRecord]:
    """Scheduled first, then completed, then cancelled; newest first within each."""
    ordered = sorted(records, key=_sort_stamp, reverse=True)
    ordered.sort(key=lambda r: _STATUS_RANK.get(r.status, 1))
    return ordered


class BookedSlotsStore:
    """
    Committed bookings for the active (resource, date), plus lead summaries.

    ``records`` always holds the last day-scope load. A failed load empties
    it and sets ``stale`` so callers can tell "no bookings" from "unknown".
    """

    def __init__(self, backend: BookingBackend, directory: ResourceDirectory) -> None:
        self._backend = backend
        self._directory = directory
        self.records: list[BookingRecord] = []
        self.stale = False

    def _map_all(self, payload: list[dict[str, Any]]) -> list[BookingRecord]:
        return [
            record
            for record in (map_booking(raw, self._directory) for raw in payload)
            if record is not None
        ]

    async def load_for_day(self, resource_id: str, date: str) -> list[BookingRecord]:
        """Active bookings of one resource on one date, across all leads."""
        try:
            payload = await self._backend.get_bookings(resource_id=resource_id, date=date)
        except BackendError as exc:
            logger.error(
                "Bookings fetch failed for resource %s on %s: %s", resource_id, date, exc
            )
            self.records = []
            self.stale = True
            return []

        self.records = [
            record for record in self._map_all(payload)
            if record.status not in CANCELLED_STATUSES
            and record.date == date
            and (record.resource_id is None or record.resource_id == str(resource_id))
        ]
        self.stale = False
        logger.info(
            "Loaded %d active bookings for resource %s on %s",
            len(self.records), resource_id, date,
        )
        return list(self.records)

    async def load_for_lead(self, lead_id: str) -> list[BookingRecord]:
        """Every booking of a lead across all dates, in summary order."""
        try:
            payload = await self._backend.get_bookings(lead_id=lead_id)
        except BackendError as exc:
            logger.error("Bookings fetch failed for lead %s: %s", lead_id, exc)
            return []
        return sort_for_summary(self._map_all(payload))
