"""
Community management: configuration keys and the application workflow.
"""

from .config_registry import (
    DEFAULT_DESCRIPTORS,
    ConfigDescriptor,
    ConfigRegistry,
    to_array,
    to_boolean,
    to_integer,
    to_number,
)
from .settings import CommunitySettings
from .workflow import (
    APPROVE_KEY,
    APPROVED_MARKER,
    DENIED_MARKER,
    DENY_KEY,
    METADATA_KEY,
    POLICY_EVENT_TYPE,
    ApplicationWorkflow,
)

__all__ = [
    "ConfigDescriptor",
    "ConfigRegistry",
    "DEFAULT_DESCRIPTORS",
    "to_array",
    "to_boolean",
    "to_integer",
    "to_number",
    "CommunitySettings",
    "ApplicationWorkflow",
    "APPROVE_KEY",
    "DENY_KEY",
    "APPROVED_MARKER",
    "DENIED_MARKER",
    "METADATA_KEY",
    "POLICY_EVENT_TYPE",
]
