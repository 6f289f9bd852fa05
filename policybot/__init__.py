"""
policyserv community management bot.

Lets moderators register a community, apply rooms to it, and have a
safety team approve or deny each application by reacting to a review
prompt.
"""

from .bot import PolicyBot
from .config import BotConfig, configure_logging, load_config

__version__ = "1.0.0"

__all__ = [
    "PolicyBot",
    "BotConfig",
    "configure_logging",
    "load_config",
    "__version__",
]
