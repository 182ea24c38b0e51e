"""
Booking backend port.

The engine talks to the bookings server only through this protocol.
``HttpBookingBackend`` implements it over the deals-pipeline REST API;
``InMemoryBookingBackend`` implements it as an authoritative mock server
for the console demo and tests.
"""

from typing import Any, Optional, Protocol, Union

from lead_booking.schemas.booking_schema import BookingRequest


class BackendError(Exception):
    """Base error for backend request failures.

    ``str(error)`` is the message shown to the operator.
    """


class BackendConnectionError(BackendError):
    """Raised when the backend cannot be reached or times out."""


class BackendNotFoundError(BackendError):
    """Raised when the backend resource is not found."""


class BackendRequestError(BackendError):
    """Raised for rejected requests, including booking conflicts."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


RawPayload = Union[dict[str, Any], list[Any]]


class BookingBackend(Protocol):
    """Operations the booking server exposes."""

    async def get_availability(
        self, resource_id: str, date: str, tz_offset_minutes: int
    ) -> RawPayload:
        """Free windows for a resource on a date, in any supported feed shape."""
        ...

    async def get_bookings(
        self,
        resource_id: Optional[str] = None,
        lead_id: Optional[str] = None,
        date: Optional[str] = None,
    ) -> list[dict[str, Any]]:
        """Raw booking records matching the given filters."""
        ...

    async def check_availability(
        self, resource_id: str, date: str, start_time: str, end_time: str
    ) -> dict[str, Any]:
        """Targeted check for one exact range: ``{available, message?}``."""
        ...

    async def book_slot(self, request: BookingRequest) -> dict[str, Any]:
        """Create a booking. Raises BackendError with the server's message."""
        ...

    async def cancel_booking(self, booking_id: str) -> None:
        """Cancel a booking. Raises BackendError with the server's message."""
        ...

    async def list_resources(self) -> RawPayload:
        """The resource directory, in any supported shape."""
        ...
