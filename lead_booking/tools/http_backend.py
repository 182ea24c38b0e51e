"""HTTP client for the deals-pipeline bookings API."""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from lead_booking.config import ApiConfig, settings
from lead_booking.schemas.booking_schema import BookingRequest
from lead_booking.tools.backend import (
    BackendConnectionError,
    BackendNotFoundError,
    BackendRequestError,
    RawPayload,
)

logger = logging.getLogger(__name__)

BOOKINGS_PATH = "/api/deals-pipeline/bookings"
LEGACY_BOOKINGS_PATH = "/api/deals-pipeline/booking"
AVAILABILITY_PATH = "/api/deals-pipeline/availability"
RESOURCES_PATH = "/api/deals-pipeline/counsellors"


def _error_message(response: httpx.Response, default: str) -> str:
    """Pull the operator-facing message out of an error body."""
    try:
        body = response.json()
    except ValueError:
        return default
    if isinstance(body, dict):
        for key in ("error", "message", "detail"):
            value = body.get(key)
            if isinstance(value, str) and value:
                return value
    return default


def _json_body(response: httpx.Response) -> Any:
    if not response.content:
        return {}
    try:
        return response.json()
    except ValueError:
        logger.warning("Non-JSON body from %s", response.request.url)
        return {}


class HttpBookingBackend:
    """BookingBackend over the deals-pipeline REST API."""

    def __init__(
        self,
        config: ApiConfig | None = None,
        http: httpx.AsyncClient | None = None,
    ) -> None:
        self.config = config or settings.api
        self.http = http or httpx.AsyncClient(
            base_url=self.config.base_url,
            timeout=httpx.Timeout(self.config.timeout_sec),
        )

    async def aclose(self) -> None:
        await self.http.aclose()

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.config.token:
            headers["Authorization"] = f"Bearer {self.config.token}"
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
    ) -> httpx.Response:
        try:
            response = await self.http.request(
                method, path, params=params, json=json, headers=self._headers()
            )
        except httpx.TimeoutException as exc:
            raise BackendConnectionError(
                f"Request to {path} timed out after {self.config.timeout_sec}s"
            ) from exc
        except httpx.HTTPError as exc:
            raise BackendConnectionError(f"Could not reach booking server: {exc}") from exc

        if response.status_code == 404:
            raise BackendNotFoundError(_error_message(response, f"Not found: {path}"))
        if response.status_code >= 400:
            raise BackendRequestError(
                _error_message(response, f"Request failed with status {response.status_code}"),
                status_code=response.status_code,
            )
        return response

    async def get_availability(
        self, resource_id: str, date: str, tz_offset_minutes: int
    ) -> RawPayload:
        params = {"counsellorId": resource_id, "date": date, "tzOffset": tz_offset_minutes}
        try:
            response = await self._request("GET", AVAILABILITY_PATH, params=params)
        except BackendNotFoundError:
            return {}
        body = _json_body(response)
        return body if isinstance(body, (dict, list)) else {}

    async def get_bookings(
        self,
        resource_id: Optional[str] = None,
        lead_id: Optional[str] = None,
        date: Optional[str] = None,
    ) -> list[dict[str, Any]]:
        # Deployed backends disagree on key casing, so both are sent
        params: dict[str, str] = {}
        if lead_id:
            params["leadId"] = params["lead_id"] = str(lead_id)
        if resource_id:
            params["userId"] = params["user_id"] = str(resource_id)
        if date:
            params["date"] = date

        try:
            try:
                response = await self._request("GET", BOOKINGS_PATH, params=params)
            except BackendNotFoundError:
                response = await self._request("GET", LEGACY_BOOKINGS_PATH, params=params)
        except BackendNotFoundError:
            return []

        body = _json_body(response)
        if isinstance(body, list):
            return body
        if isinstance(body, dict) and isinstance(body.get("data"), list):
            return body["data"]
        return []

    async def check_availability(
        self, resource_id: str, date: str, start_time: str, end_time: str
    ) -> dict[str, Any]:
        params = {
            "counsellorId": resource_id,
            "date": date,
            "startTime": start_time,
            "endTime": end_time,
        }
        try:
            response = await self._request("GET", AVAILABILITY_PATH, params=params)
        except BackendNotFoundError:
            return {"available": True, "message": "Availability check not available"}
        body = _json_body(response)
        return body if isinstance(body, dict) else {}

    async def book_slot(self, request: BookingRequest) -> dict[str, Any]:
        payload = {
            "lead_id": request.lead_id,
            "student_id": request.lead_id,
            "counsellor_id": request.resource_id,
            "booking_type": request.booking_type,
            "booking_source": request.booking_source,
            "booking_date": request.date,
            "booking_time": request.start_time,
            "end_time": request.end_time,
            "scheduled_at": request.scheduled_at,
            "created_by": request.created_by,
        }
        payload = {k: v for k, v in payload.items() if v is not None}
        try:
            response = await self._request("POST", BOOKINGS_PATH, json=payload)
        except BackendNotFoundError:
            legacy_payload = {
                "leadId": request.lead_id,
                "counsellorId": request.resource_id,
                "date": request.date,
                "startTime": request.start_time,
                "endTime": request.end_time,
            }
            response = await self._request("POST", LEGACY_BOOKINGS_PATH, json=legacy_payload)

        body = _json_body(response)
        if not isinstance(body, dict):
            return {}
        for key in ("data", "booking"):
            if isinstance(body.get(key), dict):
                return body[key]
        return body

    async def cancel_booking(self, booking_id: str) -> None:
        try:
            try:
                await self._request("DELETE", f"{BOOKINGS_PATH}/{booking_id}")
            except BackendNotFoundError:
                await self._request("DELETE", f"{LEGACY_BOOKINGS_PATH}/{booking_id}")
        except BackendNotFoundError:
            logger.info("Booking %s already gone on the server", booking_id)

    async def list_resources(self) -> RawPayload:
        try:
            response = await self._request("GET", RESOURCES_PATH)
        except BackendNotFoundError:
            return []
        body = _json_body(response)
        return body if isinstance(body, (dict, list)) else []
