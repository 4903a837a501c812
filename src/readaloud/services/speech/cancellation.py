"""Cancellation token holding a session's single active stage."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Coroutine, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CancelToken:
    """
    Tracks the one pending stage (render, play or delay) of a session.

    Stages run as their own tasks so that ``cancel()`` can stop exactly the
    pending one. Once cancelled, the token stays cancelled: ``run()`` refuses
    to start new stages and results that arrive late raise
    ``asyncio.CancelledError`` instead of being returned.
    """

    def __init__(self) -> None:
        self._cancelled = False
        self._task: asyncio.Task[Any] | None = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def pending(self) -> asyncio.Task[Any] | None:
        """The stage task currently awaited, if any."""
        if self._task is not None and self._task.done():
            return None
        return self._task

    def check(self) -> None:
        """Raise ``asyncio.CancelledError`` if the token has been cancelled."""
        if self._cancelled:
            raise asyncio.CancelledError()

    def start(
        self, coro: Coroutine[Any, Any, T], name: str | None = None
    ) -> asyncio.Task[T]:
        """Schedule ``coro`` as the active stage without waiting for it."""
        if self._cancelled:
            coro.close()
            raise asyncio.CancelledError()

        task = asyncio.ensure_future(coro)
        if name:
            task.set_name(name)
        self._task = task
        return task

    async def wait(self, task: asyncio.Task[T]) -> T:
        """Await a stage started with ``start()``; late results are discarded."""
        try:
            result = await task
        finally:
            if self._task is task:
                self._task = None
        self.check()
        return result

    async def run(self, coro: Coroutine[Any, Any, T], name: str | None = None) -> T:
        """Run ``coro`` as the active stage and return its result."""
        return await self.wait(self.start(coro, name))

    def cancel(self) -> bool:
        """Cancel the pending stage; return False if already cancelled."""
        if self._cancelled:
            return False
        self._cancelled = True
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            logger.debug(f"Cancelled pending stage {task.get_name()}")
        return True

    def release(self) -> None:
        """Forget the stage handle once a session has ended."""
        self._task = None


__all__ = ["CancelToken"]
