"""
Availability feed normalization.

The availability endpoint is loosely typed: the window list sits under one
of several keys, each window names its boundaries in one of several ways,
and a boundary is either an absolute ISO-8601 timestamp or a bare
wall-clock string. Everything here turns that feed into a plain list of
resource-local AvailabilityWindow values for one (resource, date).
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Optional, TypedDict

from pydantic import ValidationError

from lead_booking.schemas.booking_schema import AvailabilityWindow
from lead_booking.tools.backend import BackendError, BookingBackend
from lead_booking.utils import normalize_wall_clock, parse_date

logger = logging.getLogger(__name__)

WINDOW_LIST_KEYS = ("available_slots", "availableSlots", "slots", "timeSlots", "data")
START_KEYS = ("start", "startTime", "start_time", "scheduled_at")
END_KEYS = ("end", "endTime", "end_time", "ends_at")

END_OF_DAY = "00:00"


class RawWindow(TypedDict):
    """A feed entry reduced to its two boundary strings."""

    start: str
    end: str


def _first_present(entry: dict[str, Any], keys: tuple[str, ...]) -> Optional[str]:
    for key in keys:
        value = entry.get(key)
        if value not in (None, ""):
            return str(value)
    return None


def extract_raw_windows(payload: Any) -> list[RawWindow]:
    """
    Reduce any supported feed payload to a list of raw boundary pairs.

    Accepted payload variants, checked in this order:

    - a bare list of window entries
    - ``{"available_slots": [...]}``
    - ``{"availableSlots": [...]}``
    - ``{"slots": [...]}``
    - ``{"timeSlots": [...]}``
    - ``{"data": [...]}``

    The first key holding a list wins. Anything else (None, a string, a
    dict with none of these keys) yields no windows.

    Within an entry the start boundary is the first non-empty value of
    ``start``, ``startTime``, ``start_time``, ``scheduled_at``; the end
    boundary is the first non-empty value of ``end``, ``endTime``,
    ``end_time``, ``ends_at``. Entries that are not objects, or that lack
    either boundary, are dropped.
    """
    entries: list[Any] = []
    if isinstance(payload, list):
        entries = payload
    elif isinstance(payload, dict):
        for key in WINDOW_LIST_KEYS:
            if isinstance(payload.get(key), list):
                entries = payload[key]
                break

    raw: list[RawWindow] = []
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        start = _first_present(entry, START_KEYS)
        end = _first_present(entry, END_KEYS)
        if start is None or end is None:
            continue
        raw.append({"start": start, "end": end})
    return raw


def _has_window_list(payload: Any) -> bool:
    if isinstance(payload, list):
        return True
    return isinstance(payload, dict) and any(
        isinstance(payload.get(key), list) for key in WINDOW_LIST_KEYS
    )


def is_absolute(value: str) -> bool:
    """True when a boundary carries a date/time marker rather than a bare time."""
    return "T" in value or "Z" in value or "+" in value


def to_viewer_local(value: str, tz_offset_minutes: int) -> Optional[datetime]:
    """Parse an absolute timestamp and shift it onto the viewer's wall clock.

    Timestamps without a zone are taken as already viewer-local. Returns
    None when the value does not parse.
    """
    text = value.strip()
    if text[-1:] in ("Z", "z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        return parsed
    return parsed.astimezone(timezone(timedelta(minutes=tz_offset_minutes)))


def normalize_window(
    raw: RawWindow, date: str, tz_offset_minutes: int
) -> Optional[AvailabilityWindow]:
    """Turn one raw boundary pair into a window on ``date``, or None to drop it."""
    requested = parse_date(date)

    if is_absolute(raw["start"]):
        local_start = to_viewer_local(raw["start"], tz_offset_minutes)
        if local_start is None:
            return None
        if local_start.date() != requested:
            logger.debug(
                "Dropping window starting %s: local date %s is not %s",
                raw["start"], local_start.date(), date,
            )
            return None
        start = local_start.strftime("%H:%M")
    else:
        start = normalize_wall_clock(raw["start"])

    if is_absolute(raw["end"]):
        local_end = to_viewer_local(raw["end"], tz_offset_minutes)
        if local_end is None or local_end.date() < requested:
            return None
        # Anything past the requested day is clamped to its end
        end = local_end.strftime("%H:%M") if local_end.date() == requested else END_OF_DAY
    else:
        end = normalize_wall_clock(raw["end"])

    if start is None or end is None:
        return None
    try:
        return AvailabilityWindow(start_time=start, end_time=end)
    except ValidationError:
        return None


class AvailabilityResolver:
    """Fetches and normalizes a resource's free windows for a date.

    Fails closed: any fetch error resolves to no availability, so nothing
    is bookable until a later refresh succeeds.
    """

    def __init__(self, backend: BookingBackend) -> None:
        self._backend = backend

    async def resolve(
        self, resource_id: str, date: str, tz_offset_minutes: int = 0
    ) -> list[AvailabilityWindow]:
        parse_date(date)
        try:
            payload = await self._backend.get_availability(resource_id, date, tz_offset_minutes)
        except BackendError as exc:
            logger.warning(
                "Availability fetch failed for resource %s on %s: %s", resource_id, date, exc
            )
            return []

        raw_windows = extract_raw_windows(payload)
        if payload and not _has_window_list(payload):
            logger.warning(
                "Unrecognized availability payload for resource %s on %s", resource_id, date
            )

        windows = [
            window
            for window in (normalize_window(raw, date, tz_offset_minutes) for raw in raw_windows)
            if window is not None
        ]
        logger.info(
            "Resolved %d availability windows for resource %s on %s (%d raw)",
            len(windows), resource_id, date, len(raw_windows),
        )
        return windows
