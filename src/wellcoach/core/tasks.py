"""Detached background work that must never block or fail a user response."""

from __future__ import annotations

import asyncio
from typing import Awaitable, Set

from .logging import get_logger

logger = get_logger(__name__)


class BackgroundTasks:
    """Tracks fire-and-forget coroutines.

    Failures are reported on this object's own channel (the log) and are
    never re-raised into the request that spawned the task. References are
    held until completion so tasks are not garbage collected mid-flight.
    """

    def __init__(self) -> None:
        self._tasks: Set[asyncio.Task] = set()

    def spawn(self, coro: Awaitable, name: str) -> asyncio.Task:
        task = asyncio.ensure_future(coro)
        task.set_name(name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.warning("Background task %s was cancelled", task.get_name())
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                "Background task %s failed", task.get_name(), exc_info=(type(exc), exc, exc.__traceback__)
            )

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for every pending task; used on shutdown and in tests."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
