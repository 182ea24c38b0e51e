"""Slot, availability and booking data models."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, model_validator

from lead_booking.utils import range_minutes


class SlotState(str, Enum):
    """Client-observed lifecycle of a single time slot."""

    UNBOOKED = "unbooked"
    PENDING_COMMIT = "pending_commit"
    BOOKED = "booked"
    PENDING_CANCEL = "pending_cancel"


class Confirmation(str, Enum):
    """Whether a slot's state came from the server or from a local write."""

    CONFIRMED = "confirmed"
    PROVISIONAL = "provisional"


class BookedBy(BaseModel):
    """Display details of the resource holding a slot."""
    resource_id: str
    name: str
    email: str = ""


class TimeSlot(BaseModel):
    """One candidate window on the slot board."""

    id: str
    date: str
    start_time: str
    end_time: str
    state: SlotState = SlotState.UNBOOKED
    confirmation: Confirmation = Confirmation.CONFIRMED
    booked_by: Optional[BookedBy] = None
    booking_id: Optional[str] = None

    @property
    def is_booked(self) -> bool:
        return self.state in (SlotState.BOOKED, SlotState.PENDING_COMMIT)

    @property
    def is_provisional(self) -> bool:
        return self.confirmation == Confirmation.PROVISIONAL


class AvailabilityWindow(BaseModel):
    """A resource-local free window on one (resource, date)."""

    model_config = ConfigDict(frozen=True)

    start_time: str
    end_time: str

    @model_validator(mode="after")
    def _start_before_end(self) -> "AvailabilityWindow":
        start, end = range_minutes(self.start_time, self.end_time)
        if start >= end:
            raise ValueError(
                f"Window start {self.start_time} must be before end {self.end_time}"
            )
        return self

    @property
    def minutes(self) -> tuple[int, int]:
        return range_minutes(self.start_time, self.end_time)


class BookingRecord(BaseModel):
    """A committed booking as projected from the bookings feed."""

    id: str
    lead_id: Optional[str] = None
    resource_id: Optional[str] = None
    date: str
    start_time: str
    end_time: str
    created_by: Optional[str] = None
    resource_name: str = ""
    resource_email: str = ""
    status: str = "scheduled"
    booking_type: str = ""


class BookingRequest(BaseModel):
    """Validated booking submission."""
    lead_id: str
    resource_id: str
    date: str
    start_time: str
    end_time: str
    created_by: Optional[str] = None
    booking_type: str = "manual_followup"
    booking_source: str = "user_ui"

    @property
    def scheduled_at(self) -> str:
        # Wall-clock start stamped with Z, matching what the bookings API stores
        return f"{self.date}T{self.start_time}:00Z"


class AvailabilityCheck(BaseModel):
    """Result of the targeted range pre-check."""
    available: bool = True
    message: Optional[str] = None
