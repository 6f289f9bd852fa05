"""
policyserv REST client.

Thin async wrapper over the policyserv admin API. Every call is
authenticated with a bearer token; a 200 response is success and any
other status raises PolicyBackendError carrying the status code.
"""

import logging
from typing import Any, Dict, Optional
from urllib.parse import quote

import httpx

from ..errors import PolicyBackendError
from .models import Community, RoomMapping

logger = logging.getLogger(__name__)


class PolicyservClient:
    """
    Client for the policyserv community/room API.

    Configuration:
        base_url: Server base URL (e.g. "https://policyserv.example.org")
        api_key: Bearer token
        timeout: Request timeout in seconds (default: 30.0)
    """

    API_PREFIX = "/api/v1"

    def __init__(self, base_url: str, api_key: str, timeout: float = 30.0):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout

    def _get_headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }

    async def _request(
        self,
        method: str,
        path: str,
        body: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """
        Perform one API call.

        Args:
            method: HTTP method
            path: Path below the API prefix
            body: Optional JSON body

        Returns:
            Decoded JSON response (None for empty bodies)

        Raises:
            PolicyBackendError: On any non-200 status or transport failure
        """
        url = f"{self.base_url}{self.API_PREFIX}{path}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.request(
                    method,
                    url,
                    json=body,
                    headers=self._get_headers(),
                )
        except httpx.RequestError as e:
            raise PolicyBackendError(f"Request ({path}) failed: {e}")

        if response.status_code != 200:
            raise PolicyBackendError(
                f"Request ({path}) failed with status {response.status_code}: {response.text}",
                status_code=response.status_code,
            )

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise PolicyBackendError(f"Request ({path}) returned invalid JSON: {e}", status_code=200)

    # ========================================================================
    # Communities
    # ========================================================================

    async def create_community(self, name: str) -> Community:
        """
        Create a community.

        Raises:
            PolicyBackendError: If the name is rejected or the call fails
        """
        data = await self._request("POST", "/communities/new", {"name": name})
        try:
            community = Community.from_dict(data)
        except (KeyError, TypeError) as e:
            raise PolicyBackendError(f"Unexpected community response: missing {e}", status_code=200)
        logger.info(f"Created community {community.community_id} ({name!r})")
        return community

    async def get_community(self, community_id: str) -> Optional[Community]:
        """Fetch a community, or None if policyserv doesn't know it."""
        try:
            data = await self._request("GET", f"/communities/{quote(community_id, safe='')}")
        except PolicyBackendError as e:
            if e.is_not_found:
                return None
            raise
        try:
            return Community.from_dict(data)
        except (KeyError, TypeError) as e:
            raise PolicyBackendError(f"Unexpected community response: missing {e}", status_code=200)

    async def get_instance_community_config(self) -> Dict[str, Any]:
        """Fetch the instance-wide default community configuration."""
        data = await self._request("GET", "/instance/community_config")
        return dict(data or {})

    async def set_community_config(self, community_id: str, config: Dict[str, Any]) -> None:
        """Replace a community's configuration."""
        await self._request(
            "POST",
            f"/communities/{quote(community_id, safe='')}/config",
            {"config": config},
        )
        logger.info(f"Updated config for community {community_id}")

    # ========================================================================
    # Rooms
    # ========================================================================

    async def get_room(self, room_id: str) -> Optional[RoomMapping]:
        """Fetch a room's community mapping, or None if unregistered."""
        try:
            data = await self._request("GET", f"/rooms/{quote(room_id, safe='')}")
        except PolicyBackendError as e:
            if e.is_not_found:
                return None
            raise
        if not data:
            return None
        return RoomMapping(
            room_id=data.get("room_id", room_id),
            community_id=data.get("community_id", ""),
        )

    async def add_room(self, room_id: str, community_id: str) -> None:
        """Register a room with policyserv under a community."""
        await self._request(
            "POST",
            f"/rooms/{quote(room_id, safe='')}/join",
            {"community_id": community_id},
        )
        logger.info(f"Added room {room_id} to community {community_id}")
