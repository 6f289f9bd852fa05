"""
In-memory policyserv backend for testing without HTTP
"""
import itertools
from typing import Any, Dict, List, Optional

from policybot.errors import PolicyBackendError
from policybot.policyserv import Community, RoomMapping


class FakePolicyserv:
    """In-memory stand-in for PolicyservClient."""

    def __init__(self):
        self.communities: Dict[str, Community] = {}
        self.rooms: Dict[str, str] = {}
        self.instance_config: Dict[str, Any] = {
            "keyword_filter_keywords": ["spam"],
            "mention_filter_max_mentions": 10,
            "spam_threshold": 0.8,
            "mjolnir_filter_enabled": None,
            "some_unregistered_property": 1,
        }
        self.calls: List[tuple] = []
        self.failures: Dict[str, Exception] = {}
        self._ids = itertools.count(1)

    def _maybe_fail(self, method: str) -> None:
        if method in self.failures:
            raise self.failures[method]

    @property
    def writes(self) -> List[tuple]:
        return [c for c in self.calls if c[0] in ("create_community", "set_community_config", "add_room")]

    async def create_community(self, name: str) -> Community:
        self.calls.append(("create_community", name))
        self._maybe_fail("create_community")
        community = Community(community_id=f"community{next(self._ids)}", name=name, config={})
        self.communities[community.community_id] = community
        return community

    async def get_community(self, community_id: str) -> Optional[Community]:
        self.calls.append(("get_community", community_id))
        self._maybe_fail("get_community")
        community = self.communities.get(community_id)
        if community is None:
            return None
        return Community(community.community_id, community.name, dict(community.config))

    async def get_instance_community_config(self) -> Dict[str, Any]:
        self.calls.append(("get_instance_community_config",))
        self._maybe_fail("get_instance_community_config")
        return dict(self.instance_config)

    async def set_community_config(self, community_id: str, config: Dict[str, Any]) -> None:
        self.calls.append(("set_community_config", community_id, config))
        self._maybe_fail("set_community_config")
        if community_id not in self.communities:
            raise PolicyBackendError("not found", status_code=404)
        self.communities[community_id].config = dict(config)

    async def get_room(self, room_id: str) -> Optional[RoomMapping]:
        self.calls.append(("get_room", room_id))
        self._maybe_fail("get_room")
        if room_id not in self.rooms:
            return None
        return RoomMapping(room_id=room_id, community_id=self.rooms[room_id])

    async def add_room(self, room_id: str, community_id: str) -> None:
        self.calls.append(("add_room", room_id, community_id))
        self._maybe_fail("add_room")
        self.rooms[room_id] = community_id
