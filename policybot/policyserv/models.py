"""
Response models for the policyserv REST API.
"""

from dataclasses import dataclass, field
from typing import Any, Dict


@dataclass
class Community:
    """A community as held by policyserv."""
    community_id: str
    name: str
    config: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Community":
        return cls(
            community_id=data["community_id"],
            name=data.get("name", ""),
            config=dict(data.get("config") or {}),
        )


@dataclass
class RoomMapping:
    """A room registered with policyserv and the community protecting it."""
    room_id: str
    community_id: str
