"""Helpers for work that must not block the event loop.

`run_sync` pushes blocking calls (document compression, screenshot encoding)
onto an executor. `spawn` keeps a reference to fire-and-forget tasks such as
the startup retention sweep so they are not garbage collected, and logs
their failures instead of losing them.
"""
from __future__ import annotations

import asyncio
import logging
from concurrent.futures import Executor
from functools import partial
from typing import Any, Awaitable, Callable, Optional, Set

logger = logging.getLogger(__name__)

_pending: Set[asyncio.Task[Any]] = set()


def spawn(coro: Awaitable[Any], *, name: Optional[str] = None) -> asyncio.Task[Any]:
    task = asyncio.create_task(coro, name=name)  # type: ignore[arg-type]
    _pending.add(task)

    def _done(t: asyncio.Task[Any]) -> None:
        _pending.discard(t)
        if t.cancelled():
            logger.debug("Background task %s cancelled", name or t)
            return
        exc = t.exception()
        if exc is not None:
            logger.error("Background task %s failed", name or t, exc_info=exc)

    task.add_done_callback(_done)
    return task


async def drain(timeout: float = 5.0) -> None:
    """Give pending background tasks a chance to finish, then cancel the rest."""
    if not _pending:
        return
    done, still_running = await asyncio.wait(set(_pending), timeout=timeout)
    for task in still_running:
        task.cancel()
    logger.info("Background drain: %d finished, %d cancelled", len(done), len(still_running))


async def run_sync(func: Callable[..., Any], *args: Any, executor: Optional[Executor] = None, **kwargs: Any) -> Any:
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(executor, partial(func, *args, **kwargs))


__all__ = ["spawn", "drain", "run_sync"]
