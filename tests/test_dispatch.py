from __future__ import annotations

import asyncio
import logging

from core.dispatch import TaskSpawner
from core.errors import MediaUnavailableError


def test_spawned_tasks_are_tracked_until_done() -> None:
    async def run():
        spawner = TaskSpawner()
        gate = asyncio.Event()

        async def wait_for_gate():
            await gate.wait()

        spawner.spawn(wait_for_gate())
        await asyncio.sleep(0)
        pending = len(spawner)
        gate.set()
        await spawner.drain()
        return pending, len(spawner)

    assert asyncio.run(run()) == (1, 0)


def test_handler_failures_are_logged_not_raised(caplog) -> None:
    async def dropped():
        raise MediaUnavailableError("gone")

    async def crashed():
        raise RuntimeError("bug")

    async def run():
        spawner = TaskSpawner()
        spawner.spawn(dropped(), name="first")
        spawner.spawn(crashed(), name="second")
        await spawner.drain()

    with caplog.at_level(logging.WARNING, logger="core.dispatch"):
        asyncio.run(run())

    levels = {record.getMessage(): record.levelno for record in caplog.records}
    assert levels["first dropped a message: gone"] == logging.WARNING
    assert levels["second failed"] == logging.ERROR


def test_cancel_all_stops_pending_tasks() -> None:
    async def run():
        spawner = TaskSpawner()
        task = spawner.spawn(asyncio.sleep(60))
        await asyncio.sleep(0)
        await spawner.cancel_all()
        return task.cancelled(), len(spawner)

    assert asyncio.run(run()) == (True, 0)
