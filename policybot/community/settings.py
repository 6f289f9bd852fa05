"""
Community configuration commands.

Reads always merge the instance-wide defaults with the community's own
overrides; writes coerce the raw chat value and replace the community's
configuration as a whole.
"""

import logging
from typing import Any

from ..errors import PolicyBackendError
from ..policyserv import Community, PolicyservClient
from .config_registry import ConfigRegistry

logger = logging.getLogger(__name__)

DEFAULTS_NOTE_HTML = (
    "<b>Note:</b> Instance defaults may change at any time without notice. "
    "Set specific values to override these defaults.<br/><br/>"
)


class CommunitySettings:
    """Show, get and set a community's filter configuration."""

    def __init__(self, policyserv: PolicyservClient, registry: ConfigRegistry):
        self.policyserv = policyserv
        self.registry = registry

    async def _load_community(self, community_id: str) -> Community:
        community = await self.policyserv.get_community(community_id)
        if community is None:
            raise PolicyBackendError(f"Community {community_id} not found", status_code=404)
        return community

    async def show(self, community_id: str) -> str:
        """
        Render every key the instance exposes.

        The instance defaults decide which properties are listed so users
        see every available option, set or not.
        """
        community = await self._load_community(community_id)
        defaults = await self.policyserv.get_instance_community_config()
        rendered = "".join(
            self.registry.render(prop, community.config.get(prop), defaults.get(prop))
            for prop in defaults
        )
        return DEFAULTS_NOTE_HTML + rendered

    async def get(self, community_id: str, key: str) -> str:
        """
        Render a single key.

        Raises:
            UnknownConfigKeyError: If the key is not registered; a known key
                without a value renders normally
        """
        desc = self.registry.get(key)
        community = await self._load_community(community_id)
        defaults = await self.policyserv.get_instance_community_config()
        return DEFAULTS_NOTE_HTML + self.registry.render(
            desc.property,
            community.config.get(desc.property),
            defaults.get(desc.property),
        )

    async def set(self, community_id: str, key: str, raw_value: str) -> Any:
        """
        Coerce and store a value.

        Returns:
            The typed value written

        Raises:
            UnknownConfigKeyError: If the key is not registered
            InvalidValueError: If the value cannot be coerced
            PolicyBackendError: If reading or writing the config fails
        """
        value = self.registry.coerce(key, raw_value)
        desc = self.registry.get(key)
        community = await self._load_community(community_id)
        config = dict(community.config)
        config[desc.property] = value
        await self.policyserv.set_community_config(community_id, config)
        logger.info(f"Set {desc.property}={value!r} for community {community_id}")
        return value
