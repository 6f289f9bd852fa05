"""
Bot configuration.

Configuration is read from a JSON or YAML file (chosen by extension) and
then overlaid with environment variables, so secrets never have to live
in the file. Example YAML:

    homeserver:
      url: https://matrix.example.org
      user_id: "@policybot:example.org"
      password: hunter2
    safety_team_room_id: "!safety:example.org"
    policyserv:
      base_url: https://policyserv.example.org
      api_key: secret
      server_name: policyserv.example.org
    rate_limit:
      window_seconds: 60
      max_requests: 10
    logging:
      level: info
"""

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import yaml

from .community.config_registry import to_boolean
from .community.workflow import DEFAULT_APPEAL_DIRECTIONS
from .core.commands import DEFAULT_PREFIXES
from .core.rate_limiter import RateLimitConfig
from .errors import ConfigError

LOG_FORMAT = "[%(asctime).19s] [%(name)s] [%(levelname)s] %(message)s"

# Environment variable -> (section, key); section None means top level
ENV_OVERRIDES: Dict[str, Tuple[Optional[str], str]] = {
    "HOMESERVER_URL": ("homeserver", "url"),
    "USER_ID": ("homeserver", "user_id"),
    "PASSWORD": ("homeserver", "password"),
    "STORAGE_PATH": ("homeserver", "storage_path"),
    "SAFETY_TEAM_ROOM_ID": (None, "safety_team_room_id"),
    "POLICYSERV_BASE_URL": ("policyserv", "base_url"),
    "POLICYSERV_API_KEY": ("policyserv", "api_key"),
    "POLICYSERV_SERVER_NAME": ("policyserv", "server_name"),
    "APPEAL_DIRECTIONS": (None, "appeal_directions"),
}

REQUIRED_KEYS = (
    "homeserver.url",
    "homeserver.user_id",
    "homeserver.password",
    "safety_team_room_id",
    "policyserv.base_url",
    "policyserv.api_key",
    "policyserv.server_name",
)


@dataclass
class HomeserverConfig:
    url: str
    user_id: str
    password: str
    storage_path: str = "bot"


@dataclass
class PolicyservConfig:
    base_url: str
    api_key: str
    server_name: str
    timeout: float = 30.0


@dataclass
class BotConfig:
    """
    Validated bot configuration.

    Attributes:
        homeserver: Chat account and local storage location
        safety_team_room_id: Room where applications are reviewed
        policyserv: Policy backend connection
        appeal_directions: Appended to denial notices
        command_prefixes: Recognized command prefixes
        fallback_via: Routing hint always tried when joining rooms
        rate_limit: Per-sender command rate limit
        database_url: SQLAlchemy URL for the key-value store
        allow_repeat_resolution: Process votes on already-resolved prompts
        log_level: Logging level name
        log_file: Log file path, or None for stderr
    """
    homeserver: HomeserverConfig
    safety_team_room_id: str
    policyserv: PolicyservConfig
    appeal_directions: str = DEFAULT_APPEAL_DIRECTIONS
    command_prefixes: List[str] = field(default_factory=lambda: list(DEFAULT_PREFIXES))
    fallback_via: str = "matrix.org"
    rate_limit: RateLimitConfig = field(default_factory=RateLimitConfig)
    database_url: str = ""
    allow_repeat_resolution: bool = True
    log_level: str = "info"
    log_file: Optional[str] = None

    def __post_init__(self):
        if not self.database_url:
            self.database_url = str(Path(self.homeserver.storage_path) / "policybot.db")

    @classmethod
    def from_dict(cls, conf: Dict[str, Any]) -> "BotConfig":
        """
        Build a validated config from a raw mapping.

        Raises:
            ConfigError: If required keys are missing or values are malformed
        """
        missing = [key for key in REQUIRED_KEYS if not _lookup(conf, key)]
        if missing:
            raise ConfigError(f"Missing required configuration: {', '.join(missing)}")

        homeserver = conf["homeserver"]
        policyserv = conf["policyserv"]
        rate_limit = conf.get("rate_limit") or {}
        logging_conf = conf.get("logging") or {}
        prefixes = conf.get("command_prefixes") or list(DEFAULT_PREFIXES)
        if isinstance(prefixes, str):
            prefixes = [prefixes]

        try:
            return cls(
                homeserver=HomeserverConfig(
                    url=homeserver["url"],
                    user_id=homeserver["user_id"],
                    password=homeserver["password"],
                    storage_path=homeserver.get("storage_path") or "bot",
                ),
                safety_team_room_id=conf["safety_team_room_id"],
                policyserv=PolicyservConfig(
                    base_url=policyserv["base_url"],
                    api_key=policyserv["api_key"],
                    server_name=policyserv["server_name"],
                    timeout=float(policyserv.get("timeout", 30)),
                ),
                appeal_directions=conf.get("appeal_directions") or DEFAULT_APPEAL_DIRECTIONS,
                command_prefixes=list(prefixes),
                fallback_via=_as_str(conf.get("fallback_via") or "matrix.org", "fallback_via"),
                rate_limit=RateLimitConfig(
                    window_seconds=float(rate_limit.get("window_seconds", 60)),
                    max_requests=int(rate_limit.get("max_requests", 10)),
                ),
                database_url=(conf.get("database") or {}).get("url", ""),
                allow_repeat_resolution=_as_bool(
                    conf.get("allow_repeat_resolution", True), "allow_repeat_resolution"
                ),
                log_level=str(logging_conf.get("level", "info")),
                log_file=logging_conf.get("file"),
            )
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid configuration value: {e}") from e


def _as_bool(value: Any, key: str) -> bool:
    """Accept real booleans or the yes/no tokens used by config commands."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        try:
            return to_boolean(value)
        except ValueError as e:
            raise ConfigError(f"Invalid value for {key}: {value!r} ({e})") from e
    raise ConfigError(f"Invalid value for {key}: {value!r} is not a boolean")


def _as_str(value: Any, key: str) -> str:
    if not isinstance(value, str):
        raise ConfigError(f"Invalid value for {key}: {value!r} is not a string")
    return value


def _lookup(conf: Dict[str, Any], dotted: str) -> Any:
    value: Any = conf
    for part in dotted.split("."):
        if not isinstance(value, dict):
            return None
        value = value.get(part)
    return value


def apply_env_overrides(conf: Dict[str, Any], environ=None) -> Dict[str, Any]:
    """Overlay environment variables onto a raw config mapping (in place)."""
    environ = os.environ if environ is None else environ
    for var, (section, key) in ENV_OVERRIDES.items():
        value = environ.get(var)
        if not value:
            continue
        if section is None:
            conf[key] = value
        else:
            target = conf.get(section)
            if not isinstance(target, dict):
                target = conf[section] = {}
            target[key] = value
    return conf


def read_config_file(config_file: Union[str, Path]) -> Dict[str, Any]:
    """
    Load a JSON or YAML config file.

    Raises:
        ConfigError: If the file cannot be read or parsed
    """
    config_file = str(config_file)
    try:
        with open(config_file, "r", encoding="utf-8") as fp:
            if config_file.endswith((".yaml", ".yml")):
                conf = yaml.safe_load(fp)
            else:
                conf = json.load(fp)
    except OSError as e:
        raise ConfigError(f"Cannot read config file {config_file}: {e}") from e
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        raise ConfigError(f"Cannot parse config file {config_file}: {e}") from e

    if conf is None:
        return {}
    if not isinstance(conf, dict):
        raise ConfigError(f"Config file {config_file} must contain a mapping")
    return conf


def load_config(config_file: Optional[Union[str, Path]] = None, environ=None) -> BotConfig:
    """
    Load configuration from a file (optional) plus environment overrides.

    Args:
        config_file: JSON or YAML path; None to configure from the environment only
        environ: Environment mapping (defaults to os.environ)

    Returns:
        Validated BotConfig

    Raises:
        ConfigError: If the file is unreadable or required values are missing
    """
    conf = read_config_file(config_file) if config_file else {}
    return BotConfig.from_dict(apply_env_overrides(conf, environ))


def configure_logging(level: Union[str, int] = "info",
                      log_file: Optional[str] = None,
                      log_format: str = LOG_FORMAT,
                      logger: Union[str, logging.Logger, None] = None) -> logging.Logger:
    """Configure a logger with a file or stream handler

    Args:
        level: Level name ("debug", "info", ...) or logging constant
        log_file: File path (None for stderr)
        log_format: Format string for log messages
        logger: Logger or logger name (None for the root logger)

    Returns:
        Configured logger instance

    Raises:
        ConfigError: If the level name is unknown
    """
    if isinstance(level, str):
        resolved = logging.getLevelName(level.upper())
        if not isinstance(resolved, int):
            raise ConfigError(f"Unknown log level: {level}")
        level = resolved

    if log_file:
        handler = logging.FileHandler(log_file, mode="a", encoding="utf-8", errors="replace")
    else:
        handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(log_format))

    if not isinstance(logger, logging.Logger):
        logger = logging.getLogger(logger)
    logger.addHandler(handler)
    logger.setLevel(level)
    return logger
