"""Supervised background tasks keyed by event-stream id.

Generation and ingestion work outlives the HTTP handler that started
it.  Instead of detaching it, every task is registered here so the
application can wait for, or cancel, outstanding work on shutdown.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Coroutine
from functools import partial
from typing import Any

logger = logging.getLogger(__name__)


class TaskSupervisor:
    """Owns the background tasks spawned for open event streams."""

    def __init__(self) -> None:
        self._tasks: dict[str, asyncio.Task[Any]] = {}

    @property
    def active(self) -> int:
        return len(self._tasks)

    def spawn(self, key: str, coro: Coroutine[Any, Any, Any]) -> asyncio.Task[Any]:
        """Schedule *coro* under *key*; the entry is dropped when it finishes."""
        if key in self._tasks:
            coro.close()
            raise ValueError(f"Task already running for {key!r}")
        task = asyncio.create_task(coro, name=f"stream-{key}")
        self._tasks[key] = task
        task.add_done_callback(partial(self._on_done, key))
        return task

    def _on_done(self, key: str, task: asyncio.Task[Any]) -> None:
        self._tasks.pop(key, None)
        if task.cancelled():
            logger.info("Background task %s cancelled", key)
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Background task %s crashed", key, exc_info=exc)

    async def join(self, timeout: float | None = None) -> bool:
        """Wait for every running task; ``False`` when *timeout* expired first."""
        pending = list(self._tasks.values())
        if not pending:
            return True
        _, still_running = await asyncio.wait(pending, timeout=timeout)
        return not still_running

    async def shutdown(self, timeout: float = 5.0) -> None:
        """Give running tasks *timeout* seconds, then cancel the rest."""
        if await self.join(timeout):
            return
        remaining = list(self._tasks.values())
        logger.warning("Cancelling %d background task(s)", len(remaining))
        for task in remaining:
            task.cancel()
        await asyncio.gather(*remaining, return_exceptions=True)
