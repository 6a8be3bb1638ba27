"""
Dispatcher — fire-and-forget side effects on the running loop.

    dispatcher.dispatch("notify_payment_confirmed", lambda: notifier.payment_confirmed(order))
    await dispatcher.drain()   # shutdown / tests

A failing task is logged and never reaches the request that spawned it.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable

from storefront.log import get_logger

log = get_logger(__name__)


class Dispatcher:
    def __init__(self) -> None:
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def dispatch(self, name: str, work: Callable[[], Awaitable[None]]) -> None:
        task = asyncio.get_running_loop().create_task(self._guard(name, work), name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _guard(self, name: str, work: Callable[[], Awaitable[None]]) -> None:
        try:
            await work()
        except Exception:
            log.exception("background_task_failed", task=name)

    async def drain(self) -> None:
        """Wait for everything dispatched so far, including tasks they dispatch."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))


__all__ = ("Dispatcher",)
