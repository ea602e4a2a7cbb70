"""Detached execution of workflow stage operations."""

import asyncio
import logging
from typing import Awaitable, Set

logger = logging.getLogger(__name__)


class TaskDispatcher:
    """
    Runs coroutines as fire-and-forget asyncio tasks.

    Keeps a reference to every pending task (the event loop only holds weak
    references) and logs any exception that escapes one, so failures are
    never silently dropped. drain() waits for everything in flight, which
    shutdown and tests rely on.
    """

    def __init__(self):
        self._tasks: Set[asyncio.Task] = set()

    def dispatch(self, coro: Awaitable, name: str = None) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task):
        self._tasks.discard(task)

        if task.cancelled():
            logger.warning(f"Background operation {task.get_name()} was cancelled")
            return

        exc = task.exception()
        if exc is not None:
            logger.error(
                f"❌ Background operation {task.get_name()} failed: {exc}",
                exc_info=(type(exc), exc, exc.__traceback__)
            )

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self):
        """Wait until no dispatched operation is in flight (including ones they spawn)."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
