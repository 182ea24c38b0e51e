"""Shared test fixtures and helpers."""

from typing import Any, Optional

import pytest

from lead_booking.config import ScheduleConfig
from lead_booking.engine.notifications import RecordingNotifier
from lead_booking.engine.session import BookingSession
from lead_booking.schemas.booking_schema import AvailabilityWindow
from lead_booking.schemas.resource_schema import Resource
from lead_booking.tools.memory_backend import InMemoryBookingBackend
from lead_booking.tools.resources import ResourceDirectory

TEST_DATE = "2025-03-18"
TEST_LEAD = "L-100"


@pytest.fixture
def schedule():
    return ScheduleConfig(
        business_hours_start="09:00",
        business_hours_end="18:00",
        slot_minutes=15,
        viewer_tz_offset_minutes=0,
        booking_type="manual_followup",
        booking_source="user_ui",
    )


@pytest.fixture
def backend():
    backend = InMemoryBookingBackend()
    backend.add_resource("c-1", "Priya Raman", "priya@example.com")
    backend.add_resource("c-2", "Tom Okafor", "tom@example.com", hours=("12:00", "20:00"))
    return backend


@pytest.fixture
def directory():
    return ResourceDirectory([
        Resource(id="c-1", name="Priya Raman", email="priya@example.com"),
        Resource(id="c-2", name="Tom Okafor", email="tom@example.com"),
    ])


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def session(backend, directory, notifier, schedule):
    return BookingSession(
        backend,
        TEST_LEAD,
        directory=directory,
        notifier=notifier,
        created_by="agent-7",
        tz_offset_minutes=0,
        schedule=schedule,
    )


def make_window(start: str, end: str) -> AvailabilityWindow:
    """Helper to create an AvailabilityWindow."""
    return AvailabilityWindow(start_time=start, end_time=end)


def make_raw_booking(
    booking_id: str = "BK-1",
    date: str = TEST_DATE,
    start: str = "09:00:00",
    end: str = "09:30:00",
    resource_id: Optional[str] = "c-1",
    status: str = "scheduled",
    **extra: Any,
) -> dict[str, Any]:
    """Helper to create a raw booking record in the snake_case API shape."""
    raw: dict[str, Any] = {
        "id": booking_id,
        "lead_id": TEST_LEAD,
        "booking_date": date,
        "start_time": start,
        "end_time": end,
        "status": status,
    }
    if resource_id is not None:
        raw["resource_id"] = resource_id
    raw.update(extra)
    return raw
