"""
Normalized inbound chat events.

The messaging client converts raw homeserver events into these
dataclasses before handing them to bot callbacks.
"""

from dataclasses import dataclass, field
from typing import Any, Dict

# Normalized event names passed to MessagingClient.on_event()
ROOM_JOIN = "room.join"
ROOM_MESSAGE = "room.message"
ROOM_REACTION = "room.reaction"


@dataclass
class JoinEvent:
    """The bot joined a room."""
    room_id: str


@dataclass
class MessageEvent:
    """
    Text message in a room.

    Attributes:
        room_id: Room the message was sent in
        event_id: Event ID of the message
        sender: User ID of the sender
        body: Plain-text body
        msgtype: Message type (only m.text carries commands)
        raw: Original event dict, used when replying
    """
    room_id: str
    event_id: str
    sender: str
    body: str
    msgtype: str = "m.text"
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)


@dataclass
class ReactionEvent:
    """
    Annotation (reaction) on an earlier event.

    Attributes:
        room_id: Room the reaction was sent in
        event_id: Event ID of the reaction itself
        sender: User ID of the reacting user
        relates_to: Event ID the reaction annotates
        key: Reaction key (usually an emoji)
    """
    room_id: str
    event_id: str
    sender: str
    relates_to: str
    key: str
