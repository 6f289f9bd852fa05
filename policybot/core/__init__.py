"""
Core primitives: rate limiting, command grammar and detached tasks.

The command dispatcher lives in policybot.core.dispatcher and is not
re-exported here because it depends on policybot.community, which in
turn uses these primitives.
"""

from .commands import DEFAULT_PREFIXES, CommandParser, ParsedCommand
from .rate_limiter import EGREGIOUS_EXCESS, RateLimitConfig, RateLimitEntry, RateLimiter
from .tasks import BackgroundTasks, log_failure

__all__ = [
    "CommandParser",
    "ParsedCommand",
    "DEFAULT_PREFIXES",
    "RateLimiter",
    "RateLimitConfig",
    "RateLimitEntry",
    "EGREGIOUS_EXCESS",
    "BackgroundTasks",
    "log_failure",
]
