"""
Community configuration key registry.

Maps the short, stable keys users type in chat to policyserv's internal
community config properties, with a per-key transform that coerces the
raw chat text into the typed value policyserv expects.
"""

import html
import math
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, List, Optional

from ..errors import InvalidValueError, UnknownConfigKeyError

TRUE_TOKENS = frozenset({"true", "t", "yes", "y"})
FALSE_TOKENS = frozenset({"false", "f", "no", "n"})


# ============================================================================
# Transforms
# ============================================================================
# Each transform raises ValueError on bad input; ConfigRegistry.coerce()
# converts that into InvalidValueError with the key attached.

def to_number(raw: str) -> float:
    """Parse a finite decimal number."""
    value = float(raw.strip())
    if not math.isfinite(value):
        raise ValueError("number must be finite")
    return value


def to_integer(raw: str) -> int:
    """Parse a whole number."""
    return int(raw.strip())


def to_boolean(raw: str) -> bool:
    """Parse true/t/yes/y or false/f/no/n, case-insensitively."""
    token = raw.strip().lower()
    if token in TRUE_TOKENS:
        return True
    if token in FALSE_TOKENS:
        return False
    raise ValueError("expected true/false, yes/no, t/f or y/n")


def to_array(raw: str) -> List[str]:
    """Split on commas and trim each element; empty elements are dropped."""
    return [item.strip() for item in raw.split(",") if item.strip()]


@dataclass(frozen=True)
class ConfigDescriptor:
    """
    One user-facing configuration key.

    Attributes:
        key: Name typed by users (e.g. "max_mentions")
        property: policyserv community config property
        description: Human description shown by the config commands
        transform: Coerces raw chat text; None means the text is used as-is
    """
    key: str
    property: str
    description: str
    transform: Optional[Callable[[str], Any]] = None


DEFAULT_DESCRIPTORS = (
    ConfigDescriptor(
        "keywords", "keyword_filter_keywords",
        "Comma-separated keywords which cause a message to be flagged as spam.",
        to_array,
    ),
    ConfigDescriptor(
        "max_mentions", "mention_filter_max_mentions",
        "Maximum number of user mentions allowed in a single message. Positive to enable.",
        to_integer,
    ),
    ConfigDescriptor(
        "max_ats", "many_ats_filter_max_ats",
        "Maximum number of @ symbols allowed in a single message. Positive to enable.",
        to_integer,
    ),
    ConfigDescriptor(
        "media_types", "media_filter_media_types",
        "Comma-separated media types (e.g. m.image, m.video) which are flagged as spam.",
        to_array,
    ),
    ConfigDescriptor(
        "max_density", "density_filter_max_density",
        "Maximum ratio of non-whitespace characters in a message. Positive to enable.",
        to_number,
    ),
    ConfigDescriptor(
        "density_min_length", "density_filter_min_trigger_length",
        "Minimum message length before the density filter applies. Positive to enable.",
        to_integer,
    ),
    ConfigDescriptor(
        "max_trim_difference", "trim_length_filter_max_difference",
        "Maximum length difference between a message and its trimmed form. Positive to enable.",
        to_number,
    ),
    ConfigDescriptor(
        "max_length", "length_filter_max_length",
        "Maximum message length in characters. Positive to enable.",
        to_integer,
    ),
    ConfigDescriptor(
        "allowed_senders", "sender_prefilter_allowed_senders",
        "Comma-separated user IDs which bypass all filters.",
        to_array,
    ),
    ConfigDescriptor(
        "allowed_event_types", "event_type_prefilter_allowed_event_types",
        "Comma-separated event types which are allowed to be sent.",
        to_array,
    ),
    ConfigDescriptor(
        "allowed_state_event_types", "event_type_prefilter_allowed_state_event_types",
        "Comma-separated state event types which are allowed to be sent.",
        to_array,
    ),
    ConfigDescriptor(
        "hellban_minutes", "hellban_postfilter_minutes",
        "Minutes a user's messages are silently dropped after being flagged. Positive to enable.",
        to_integer,
    ),
    ConfigDescriptor(
        "mjolnir_enabled", "mjolnir_filter_enabled",
        "Whether to check senders against the Mjolnir ban lists.",
        to_boolean,
    ),
    ConfigDescriptor(
        "spam_threshold", "spam_threshold",
        "Score (0 to 1) at or above which an event is considered spam.",
        to_number,
    ),
)


def _format_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple)):
        return ",".join(str(item) for item in value)
    return str(value)


class ConfigRegistry:
    """
    Static key -> descriptor mapping.

    Built once at startup and read-only afterwards.

    Example:
        registry = ConfigRegistry()
        desc = registry.get("max_mentions")
        value = registry.coerce("max_mentions", "5")   # 5
    """

    def __init__(self, descriptors=DEFAULT_DESCRIPTORS):
        self._by_key: Dict[str, ConfigDescriptor] = {}
        self._by_property: Dict[str, ConfigDescriptor] = {}
        for desc in descriptors:
            if desc.key in self._by_key or desc.property in self._by_property:
                raise ValueError(f"Duplicate config descriptor: {desc.key} ({desc.property})")
            self._by_key[desc.key] = desc
            self._by_property[desc.property] = desc

    def __contains__(self, key: str) -> bool:
        return key in self._by_key

    def __iter__(self) -> Iterator[ConfigDescriptor]:
        return iter(self._by_key.values())

    def get(self, key: str) -> ConfigDescriptor:
        """
        Look up a user-facing key.

        Raises:
            UnknownConfigKeyError: If the key is not registered
        """
        desc = self._by_key.get(key)
        if desc is None:
            raise UnknownConfigKeyError(key)
        return desc

    def by_property(self, prop: str) -> Optional[ConfigDescriptor]:
        return self._by_property.get(prop)

    def coerce(self, key: str, raw: str) -> Any:
        """
        Convert raw chat text into the typed value for ``key``.

        Raises:
            UnknownConfigKeyError: If the key is not registered
            InvalidValueError: If the key's transform rejects the text
        """
        desc = self.get(key)
        if desc.transform is None:
            return raw
        try:
            return desc.transform(raw)
        except ValueError as e:
            raise InvalidValueError(key, raw, str(e)) from e

    def render(
        self,
        prop: str,
        current: Any,
        default: Any,
    ) -> str:
        """
        Render one property as HTML for a chat notice.

        Args:
            prop: policyserv config property
            current: The community's own value (None if unset)
            default: Instance-wide default value (None if disabled)

        Returns:
            HTML fragment, or "" for properties with no registered key
        """
        desc = self.by_property(prop)
        if desc is None:
            return ""

        current_html = (
            f"<code>{html.escape(_format_value(current))}</code>"
            if current is not None else "use instance default"
        )
        default_html = (
            f"<code>{html.escape(_format_value(default))}</code>"
            if default is not None else "not set (disabled)"
        )
        return (
            f"<b><code>{desc.key}</code></b>: {current_html}<br/>"
            f"Instance default: {default_html}<br/>"
            f"<i>{html.escape(desc.description)}</i><br/><br/>"
        )
