"""
Abstract messaging client for the chat network.

This module defines the MessagingClient abstract base class. The bot
never speaks the chat protocol itself; a transport implementation
(login, sync, encryption) subclasses this and the bot drives it
through the primitives below.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional, Sequence


class MessagingClient(ABC):
    """
    Abstract interface for the chat transport.

    Implementations normalize inbound events into
    ``policybot.connection.events`` dataclasses and dispatch them to
    callbacks registered with on_event(). Callbacks may be sync or async.

    Attributes:
        logger: Logger instance for transport events

    Example:
        >>> class MyClient(MessagingClient):
        ...     async def send_notice(self, room_id, text, html=None):
        ...         ...
        >>> client = MyClient()
        >>> client.on_event(ROOM_MESSAGE, handle_message)
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        """
        Initialize messaging client.

        Args:
            logger: Optional logger instance. If None, creates default logger
                    named after the class.
        """
        self.logger = logger or logging.getLogger(self.__class__.__name__)

    @abstractmethod
    async def get_user_id(self) -> str:
        """Return the bot's own user ID."""
        pass

    @abstractmethod
    async def resolve_room(self, room_id_or_alias: str) -> str:
        """
        Resolve a room alias to a room ID.

        Room IDs are returned unchanged.

        Raises:
            JoinError: If the alias does not resolve
        """
        pass

    @abstractmethod
    async def join_room(self, room_id_or_alias: str, via: Sequence[str] = ()) -> str:
        """
        Join a room, using routing hints to reach it.

        Args:
            room_id_or_alias: Room to join
            via: Server names to attempt the join through

        Returns:
            The joined room ID

        Raises:
            JoinError: If the join fails
        """
        pass

    @abstractmethod
    async def get_room_state(self, room_id: str) -> List[Dict[str, Any]]:
        """
        Fetch the full current state of a room.

        Returns:
            List of state event dicts with ``type``, ``state_key`` and ``content``
        """
        pass

    @abstractmethod
    async def get_state_event(self, room_id: str, event_type: str, state_key: str = "") -> Dict[str, Any]:
        """
        Fetch the content of a single state event.

        Raises:
            EventNotFoundError: If no such state event exists
        """
        pass

    @abstractmethod
    async def get_event(self, room_id: str, event_id: str) -> Dict[str, Any]:
        """
        Fetch a single event by ID.

        Raises:
            EventNotFoundError: If the event is unknown
        """
        pass

    @abstractmethod
    async def send_message(self, room_id: str, content: Dict[str, Any]) -> str:
        """
        Send an arbitrary m.room.message event.

        Returns:
            Event ID of the sent message

        Raises:
            SendError: If the message fails to send
        """
        pass

    @abstractmethod
    async def send_notice(self, room_id: str, text: str, html: Optional[str] = None) -> str:
        """Send an m.notice, optionally with an HTML body. Returns the event ID."""
        pass

    @abstractmethod
    async def reply_notice(
        self,
        room_id: str,
        event: Dict[str, Any],
        text: str,
        html: Optional[str] = None,
    ) -> str:
        """Send an m.notice in reply to ``event``. Returns the event ID."""
        pass

    @abstractmethod
    async def react(self, room_id: str, event_id: str, key: str) -> str:
        """Annotate ``event_id`` with ``key``. Returns the reaction event ID."""
        pass

    @abstractmethod
    async def redact(self, room_id: str, event_id: str, reason: Optional[str] = None) -> None:
        """Redact an event."""
        pass

    @abstractmethod
    async def send_state_event(
        self,
        room_id: str,
        event_type: str,
        state_key: str,
        content: Dict[str, Any],
    ) -> str:
        """
        Send a state event.

        Raises:
            SendError: If the bot lacks permission or the send fails
        """
        pass

    @abstractmethod
    def on_event(self, event: str, callback: Callable) -> None:
        """
        Register callback for a normalized event.

        Args:
            event: Normalized event name (``room.join``, ``room.message``,
                   ``room.reaction``)
            callback: Callable receiving the event dataclass
        """
        pass

    @abstractmethod
    def off_event(self, event: str, callback: Callable) -> None:
        """Unregister a previously registered callback."""
        pass
