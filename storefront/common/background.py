import asyncio
from typing import Coroutine, Set

from storefront.common.logging_setup import get_logger

logger = get_logger("storefront.background")

# strong references so pending tasks are not garbage collected mid-flight
_pending: Set[asyncio.Task] = set()


def _on_done(task: asyncio.Task) -> None:
    _pending.discard(task)
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error("background.task.failed", extra={"task": task.get_name()},
                     exc_info=(type(exc), exc, exc.__traceback__))


def fire_and_forget(coro: Coroutine, name: str = "background") -> asyncio.Task:
    """Schedule a side effect on the running loop. No durability or retry."""
    task = asyncio.get_running_loop().create_task(coro, name=name)
    _pending.add(task)
    task.add_done_callback(_on_done)
    return task


async def drain_pending(timeout: float = 5.0) -> None:
    if not _pending:
        return
    await asyncio.wait(list(_pending), timeout=timeout)
