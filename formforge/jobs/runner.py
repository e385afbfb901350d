"""Detached background task runner.

Pipelines are started as asyncio tasks and the caller returns immediately.
Jobs are not queued behind each other: two pipelines interleave freely at
their await points. There is no per-job cancellation; `stop()` only exists
for process shutdown.
"""

import asyncio
import logging
from typing import Coroutine, Optional, Set

logger = logging.getLogger(__name__)


class BackgroundRunner:
    """Keeps strong references to in-flight pipeline tasks until they finish."""

    def __init__(self):
        self._tasks: Set[asyncio.Task] = set()

    def spawn(self, coro: Coroutine, name: Optional[str] = None) -> asyncio.Task:
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            # Pipelines catch their own errors; reaching here is a bug
            logger.error(
                "Background task escaped its error boundary",
                exc_info=exc,
                extra={"task": task.get_name()},
            )

    @property
    def active(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for every in-flight task (used by tests and shutdown)."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def stop(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        await asyncio.gather(*list(self._tasks), return_exceptions=True)
        self._tasks.clear()
