"""Per-event task dispatch.

Each relayed event runs in its own asyncio task so a slow download or a
stuck destination never holds up the ingestion loop or other events.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Set

from core.errors import BridgeError

LOGGER = logging.getLogger(__name__)


class TaskSpawner:
    """Keep strong references to handler tasks and log their failures."""

    def __init__(self) -> None:
        self._tasks: Set[asyncio.Task] = set()

    def __len__(self) -> int:
        return len(self._tasks)

    def spawn(self, coro: Awaitable, name: str = "relay") -> asyncio.Task:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(lambda t: self._finished(t, name))
        return task

    def _finished(self, task: asyncio.Task, name: str) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is None:
            return
        if isinstance(exc, BridgeError):
            LOGGER.warning("%s dropped a message: %s", name, exc)
        else:
            LOGGER.error("%s failed", name, exc_info=exc)

    async def drain(self) -> None:
        """Wait for in-flight handlers, e.g. on shutdown or in tests."""

        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def cancel_all(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        await self.drain()
