"""
Detached best-effort work.

Cleanup actions (removing an acknowledgement reaction, posting a
completion marker) must never hold up or fail the handler that started
them. BackgroundTasks runs them as independent asyncio tasks and routes
any failure to a single sink that logs it.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Set

logger = logging.getLogger(__name__)

FailureSink = Callable[[str, BaseException], None]


def log_failure(description: str, error: BaseException) -> None:
    """Default failure sink."""
    logger.warning(f"Background task failed ({description}): {error}", exc_info=error)


class BackgroundTasks:
    """
    Holds references to detached tasks until they finish.

    Example:
        tasks = BackgroundTasks()
        tasks.spawn(client.redact(room_id, ack_id), "remove acknowledgement")
        ...
        await tasks.drain()
    """

    def __init__(self, on_failure: Optional[FailureSink] = None):
        self._on_failure = on_failure or log_failure
        self._tasks: Set[asyncio.Task] = set()

    def spawn(self, coro: Awaitable, description: str) -> asyncio.Task:
        """Schedule ``coro`` without awaiting it."""
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(lambda t: self._finished(t, description))
        return task

    def _finished(self, task: asyncio.Task, description: str) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            try:
                self._on_failure(description, error)
            except Exception:
                logger.exception(f"Failure sink raised while handling {description}")

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for every outstanding task to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def cancel_all(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        await self.drain()
