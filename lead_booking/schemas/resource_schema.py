"""Resource data models and per-session booking context."""

from pydantic import BaseModel
from typing import Optional
from dataclasses import dataclass


class Resource(BaseModel):
    """Bookable staff member from the resource directory."""
    id: str
    name: str = ""
    email: str = ""


@dataclass
class BookingContext:
    """
    Per-session booking context shared by the engine components.

    Holds the lead being booked for and the (resource, date) pair the
    operator is currently looking at. Components read it instead of
    receiving these values on every call.
    """
    lead_id: Optional[str] = None
    resource_id: Optional[str] = None
    date: Optional[str] = None
    tz_offset_minutes: int = 0
    created_by: Optional[str] = None

    def has_active_day(self) -> bool:
        """True when a resource and a date are both selected."""
        return bool(self.resource_id and self.date)
