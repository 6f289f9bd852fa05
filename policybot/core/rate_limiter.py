"""
Sliding-window Rate Limiter
===========================

Per-key abuse counter for inbound events (keys are usually user IDs or
room IDs). Each key gets a fixed-length window; the first call in a
window is free, and a key is limited once its count reaches the
configured maximum.

A background sweep evicts expired keys so memory is bounded by the
number of keys active within the last two windows.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

logger = logging.getLogger(__name__)

# Count above the maximum at which a key is treated as abusive rather
# than merely rate limited.
EGREGIOUS_EXCESS = 5


@dataclass
class RateLimitConfig:
    """Rate limit configuration."""
    window_seconds: float = 60.0
    max_requests: int = 10


@dataclass
class RateLimitEntry:
    """Count observed since ``window_start`` for one key."""
    count: int
    window_start: float


class RateLimiter:
    """
    Fixed-window rate limiter with abuse detection.

    Example:
        limiter = RateLimiter(RateLimitConfig(window_seconds=60, max_requests=5))
        await limiter.start()
        if limiter.is_limited(sender):
            if limiter.is_egregious(sender):
                ...  # drop silently
    """

    def __init__(
        self,
        config: Optional[RateLimitConfig] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize rate limiter.

        Args:
            config: Rate limit configuration (uses defaults if None)
            clock: Monotonic time source in seconds
        """
        self._config = config or RateLimitConfig()
        self._clock = clock
        self._entries: Dict[str, RateLimitEntry] = {}
        self._task: Optional[asyncio.Task] = None

        logger.info(
            f"RateLimiter initialized: {self._config.max_requests} per "
            f"{self._config.window_seconds}s"
        )

    @property
    def window_seconds(self) -> float:
        return self._config.window_seconds

    @property
    def max_requests(self) -> int:
        return self._config.max_requests

    def _entry(self, key: str) -> Optional[RateLimitEntry]:
        return self._entries.get(key)

    def _is_expired(self, entry: RateLimitEntry) -> bool:
        return entry.window_start + self._config.window_seconds <= self._clock()

    def is_limited(self, key: str) -> bool:
        """
        Record one action for ``key`` and report whether it is limited.

        The first observation of a key is always allowed and opens its
        window. After a window expires the next call opens a new window
        and is likewise free.

        Returns:
            True once the window's count has reached the maximum
        """
        entry = self._entry(key)
        if entry is None:
            self._entries[key] = RateLimitEntry(count=0, window_start=self._clock())
            return False

        logger.debug(
            f"Checking rate limit for {key}: {entry.count}/{self._config.max_requests}"
        )
        if self._is_expired(entry):
            logger.debug(f"Resetting rate limit for {key}")
            # -1 so the increment below leaves the reset call free
            entry.count = -1
            entry.window_start = self._clock()

        entry.count += 1
        return entry.count >= self._config.max_requests

    def is_egregious(self, key: str) -> bool:
        """
        Check whether ``key`` is well past its limit in the current window.

        Does not record an action.
        """
        entry = self._entry(key)
        if entry is None or self._is_expired(entry):
            return False
        return entry.count >= self._config.max_requests + EGREGIOUS_EXCESS

    def __len__(self) -> int:
        return len(self._entries)

    # ========================================================================
    # Sweep
    # ========================================================================

    def sweep(self) -> int:
        """
        Evict every key whose window has expired.

        Returns:
            Number of keys evicted
        """
        expired = [key for key, entry in self._entries.items() if self._is_expired(entry)]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug(f"Evicted {len(expired)} expired rate limit entries, {len(self)} active")
        return len(expired)

    async def start(self) -> None:
        """Start the background sweep (period: twice the window)."""
        if self._task is not None:
            logger.warning("Rate limit sweep already running")
            return
        self._task = asyncio.create_task(self._sweep_loop())

    async def stop(self) -> None:
        """Stop the background sweep. Existing entries are kept."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    async def _sweep_loop(self) -> None:
        interval = self._config.window_seconds * 2
        while True:
            await asyncio.sleep(interval)
            try:
                self.sweep()
            except Exception as e:
                logger.error(f"Rate limit sweep failed: {e}", exc_info=True)
