"""
Directory Service

Read-only access to the identity store (subject profiles) and the building
roster (room occupants). Both are owned by another service; this module
only defines what the inspection pipeline needs from them.
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional, Protocol

import httpx

from roomcheck.config import Settings, get_settings
from roomcheck.errors import RoomCheckError

logger = logging.getLogger(__name__)


@dataclass
class SubjectProfile:
    """A student as known to the identity store."""
    subject_id: str
    name: str = ""
    room_number: Optional[str] = None
    building: Optional[str] = None
    active: bool = True


@dataclass
class Occupant:
    """One resident of a building room."""
    subject_id: str
    name: str
    room_number: str


class IdentityStore(Protocol):
    async def get_subject_profile(self, subject_id: str) -> Optional[SubjectProfile]: ...


class BuildingRoster(Protocol):
    async def list_occupants(self, building: str) -> list[Occupant]: ...


class DirectoryError(RoomCheckError):
    """Directory service unreachable or returned garbage."""

    status_code = 503
    kind = "directory_unavailable"


class DirectoryClient:
    """
    HTTP client for the dormitory directory service.

    Endpoints:
    - GET {directory_url}/subjects/{subject_id}
    - GET {directory_url}/buildings/{building}/occupants
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings or get_settings()
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.settings.directory_url,
            timeout=self.settings.directory_timeout_seconds,
            transport=self.transport,
        )

    async def get_subject_profile(self, subject_id: str) -> Optional[SubjectProfile]:
        data = await self._get(f"/subjects/{subject_id}")
        if data is None:
            return None
        return SubjectProfile(
            subject_id=str(data.get("subject_id", subject_id)),
            name=data.get("name") or "",
            room_number=data.get("room_number") or None,
            building=data.get("building") or None,
            active=bool(data.get("active", True)),
        )

    async def list_occupants(self, building: str) -> list[Occupant]:
        data = await self._get(f"/buildings/{building}/occupants")
        if not data:
            return []
        return [
            Occupant(
                subject_id=str(item["subject_id"]),
                name=item.get("name") or "",
                room_number=str(item.get("room_number") or ""),
            )
            for item in data
        ]

    async def _get(self, path: str) -> Any:
        try:
            async with self._client() as client:
                response = await client.get(path)
        except httpx.HTTPError as e:
            logger.error("Directory request %s failed: %s", path, e)
            raise DirectoryError(f"Directory service unavailable: {e}") from e

        if response.status_code == 404:
            return None
        if response.status_code != 200:
            logger.error("Directory returned %s for %s", response.status_code, path)
            raise DirectoryError(f"Directory returned status {response.status_code}")
        return response.json()
