"""
Chat transport abstraction.

The bot talks to the chat network only through MessagingClient; the
concrete transport (login, sync, encryption) lives outside this package.
"""

from .adapter import MessagingClient
from .errors import EventNotFoundError, JoinError, MessagingError, SendError
from .events import (
    ROOM_JOIN,
    ROOM_MESSAGE,
    ROOM_REACTION,
    JoinEvent,
    MessageEvent,
    ReactionEvent,
)
from .permalinks import is_permalink, parse_permalink

__all__ = [
    'MessagingClient',
    'MessagingError',
    'SendError',
    'JoinError',
    'EventNotFoundError',
    'ROOM_JOIN',
    'ROOM_MESSAGE',
    'ROOM_REACTION',
    'JoinEvent',
    'MessageEvent',
    'ReactionEvent',
    'is_permalink',
    'parse_permalink',
]
