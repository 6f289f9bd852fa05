"""
Messaging client exceptions.

This module defines the exception hierarchy for chat transport errors.
All exceptions inherit from MessagingError for easy catching.
"""


class MessagingError(Exception):
    """
    Base exception for messaging client errors.

    All transport-related exceptions inherit from this class,
    allowing catch-all exception handling when needed.
    """
    pass


class SendError(MessagingError):
    """
    Failed to send an event.

    Raised when a message, reaction, redaction or state event is
    rejected by the homeserver (permissions, rate limits, network).
    """
    pass


class JoinError(MessagingError):
    """
    Failed to resolve or join a room.

    Raised when an alias does not resolve, the room is unreachable
    over every routing hint, or the bot is not allowed in.
    """
    pass


class EventNotFoundError(MessagingError):
    """Referenced event or state event does not exist."""
    pass
