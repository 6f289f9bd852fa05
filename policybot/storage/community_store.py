"""
Typed access to the bot's persisted state.

Key layout:
    room:{roomId}              -> {"id": communityId}
    application:{roomId}       -> communityId
    resolution:{promptEventId} -> "approved" | "denied"
"""

import logging
from typing import Optional

from ..errors import DuplicateLinkError
from .adapter import KeyValueStore

logger = logging.getLogger(__name__)

APPROVED = "approved"
DENIED = "denied"


class CommunityStore:
    """
    Owner of room links, application records and resolutions.

    Application records are never removed: a record guards against
    resubmission while pending and, after a denial, until an operator
    edits the store by hand.
    """

    def __init__(self, kv: KeyValueStore):
        self.kv = kv

    # ========================================================================
    # Room links
    # ========================================================================

    async def get_community_id(self, room_id: str) -> Optional[str]:
        """Return the community linked to an admin room, if any."""
        record = await self.kv.get(f"room:{room_id}")
        if not isinstance(record, dict):
            return None
        return record.get("id") or None

    async def link_room(self, room_id: str, community_id: str) -> None:
        """
        Link an admin room to a community.

        Raises:
            DuplicateLinkError: If the room is already linked
        """
        if await self.get_community_id(room_id):
            raise DuplicateLinkError(f"{room_id} is already linked to a community")
        await self.kv.set(f"room:{room_id}", {"id": community_id})
        logger.info(f"Linked {room_id} to community {community_id}")

    # ========================================================================
    # Applications
    # ========================================================================

    async def has_application(self, room_id: str) -> bool:
        """Check whether a room has ever applied to a community."""
        return await self.kv.exists(f"application:{room_id}")

    async def record_application(self, room_id: str, community_id: str) -> None:
        await self.kv.set(f"application:{room_id}", community_id)

    # ========================================================================
    # Resolutions
    # ========================================================================

    async def get_resolution(self, prompt_event_id: str) -> Optional[str]:
        return await self.kv.get(f"resolution:{prompt_event_id}")

    async def record_resolution(self, prompt_event_id: str, approved: bool) -> None:
        await self.kv.set(f"resolution:{prompt_event_id}", APPROVED if approved else DENIED)
