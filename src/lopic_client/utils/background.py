from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Coroutine

_pending: set[asyncio.Task[Any]] = set()


@dataclass(slots=True)
class BackgroundTask:
    task: asyncio.Task[Any]

    def cancel(self) -> None:
        self.task.cancel()

    def done(self) -> bool:
        return self.task.done()

    async def wait(self) -> None:
        await asyncio.wait({self.task})


def run_background(
    coro: Coroutine[Any, Any, object], *, name: str | None = None
) -> BackgroundTask:
    """Schedule ``coro`` on the running loop without awaiting it.

    A strong reference is held until the task finishes so the loop cannot
    garbage-collect it mid-flight.
    """
    task = asyncio.get_running_loop().create_task(coro, name=name)
    _pending.add(task)
    task.add_done_callback(_pending.discard)
    return BackgroundTask(task)


__all__ = ["BackgroundTask", "run_background"]
