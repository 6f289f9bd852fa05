"""
Domain exceptions for the policyserv bot.

This module defines the exception hierarchy raised by the application
workflow, the configuration registry and the policyserv client.
All exceptions inherit from PolicyBotError for easy catching.
"""

import uuid
from typing import Optional


class PolicyBotError(Exception):
    """
    Base exception for policyserv bot errors.

    All domain exceptions inherit from this class, allowing
    catch-all exception handling at the command boundary.
    """
    pass


class ValidationError(PolicyBotError):
    """
    Malformed or missing user input.

    Always shown to the user, never retried.
    """
    pass


class PublicAdminRoomError(ValidationError):
    """Community management rooms must not be publicly joinable."""
    pass


class RoomNotPublicError(ValidationError):
    """
    Applied room is not publicly joinable.

    Raised before any backend mutation or application record is written.
    """
    pass


class NotLinkedError(PolicyBotError):
    """Admin room has no community yet."""
    pass


class DuplicateLinkError(PolicyBotError):
    """Admin room is already linked to a community."""
    pass


class AlreadyProtectedError(PolicyBotError):
    """
    Target room is already known.

    Raised when:
    - The room is registered with the policy backend
    - An application for the room has already been submitted
    """
    pass


class UnknownConfigKeyError(PolicyBotError):
    """Configuration key is not in the registry."""

    def __init__(self, key: str):
        super().__init__(f"Unknown configuration key: {key!r}")
        self.key = key


class InvalidValueError(PolicyBotError):
    """
    Configuration value could not be coerced.

    Carries the key and the raw input so the reply can echo it.
    """

    def __init__(self, key: str, raw_value: str, reason: str = ""):
        message = f"Invalid value for {key!r}: {raw_value!r}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)
        self.key = key
        self.raw_value = raw_value
        self.reason = reason


class PolicyBackendError(PolicyBotError):
    """
    Policy backend request failed.

    Attributes:
        status_code: HTTP status code, or None for transport failures
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404


class ConfigError(PolicyBotError):
    """Bot configuration is invalid or incomplete."""
    pass


def new_correlation_token() -> str:
    """
    Short random token tying a user-facing failure to a log entry.

    Logged as ``REF:<token>`` so operators can search for it.
    """
    return uuid.uuid4().hex[:12]
