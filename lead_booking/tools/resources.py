"""
Read-only resource directory.

Resolves resource ids to display names for booking views. The directory is
loaded once from the backend; managing resources happens elsewhere.
"""

import logging
from collections.abc import Iterable, Iterator
from typing import Any, Optional

from lead_booking.schemas.booking_schema import BookedBy
from lead_booking.schemas.resource_schema import Resource
from lead_booking.tools.backend import BackendError, BookingBackend

logger = logging.getLogger(__name__)

UNKNOWN_RESOURCE_NAME = "Unknown resource"


def normalize_resources(payload: Any) -> list[Resource]:
    """Map a directory payload (bare list, ``counsellors`` or ``data``) to Resources."""
    if isinstance(payload, list):
        entries = payload
    elif isinstance(payload, dict):
        entries = next(
            (payload[k] for k in ("counsellors", "data") if isinstance(payload.get(k), list)),
            [],
        )
    else:
        entries = []

    resources = []
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        resource_id = entry.get("id") or entry.get("_id")
        if resource_id is None:
            continue
        resources.append(
            Resource(
                id=str(resource_id),
                name=entry.get("name") or entry.get("full_name") or "",
                email=entry.get("email") or "",
            )
        )
    return resources


class ResourceDirectory:
    """In-memory id -> Resource lookup."""

    def __init__(self, resources: Optional[Iterable[Resource]] = None) -> None:
        self._resources: dict[str, Resource] = {}
        for resource in resources or ():
            self._resources[resource.id] = resource

    def __len__(self) -> int:
        return len(self._resources)

    def __iter__(self) -> Iterator[Resource]:
        return iter(self._resources.values())

    async def load(self, backend: BookingBackend) -> list[Resource]:
        """Replace the directory with the backend's list. Keeps the old one on failure."""
        try:
            payload = await backend.list_resources()
        except BackendError as exc:
            logger.warning("Resource directory load failed: %s", exc)
            return list(self)
        self._resources = {r.id: r for r in normalize_resources(payload)}
        logger.info("Resource directory loaded: %d resources", len(self._resources))
        return list(self)

    def get(self, resource_id: Optional[Any]) -> Optional[Resource]:
        if resource_id is None:
            return None
        return self._resources.get(str(resource_id))

    def display(
        self,
        resource_id: Optional[Any],
        fallback_name: str = "",
        fallback_email: str = "",
    ) -> BookedBy:
        """Display details for a resource, falling back to what the record carried."""
        resource = self.get(resource_id)
        if resource is not None:
            return BookedBy(resource_id=resource.id, name=resource.name, email=resource.email)
        return BookedBy(
            resource_id=str(resource_id) if resource_id is not None else "",
            name=fallback_name or UNKNOWN_RESOURCE_NAME,
            email=fallback_email,
        )
