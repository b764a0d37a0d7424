"""
Cancellable delayed-callback scheduling for queue retries.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Dict, List, Optional

RetryCallback = Callable[[], Awaitable[None]]


def _current_task() -> Optional["asyncio.Task"]:
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None


class RetryHandle:
    """Handle for one scheduled retry."""

    def __init__(self, key: str, delay: float, task: "asyncio.Task[None]"):
        self.key = key
        self.delay = delay
        self._task = task

    @property
    def task(self) -> "asyncio.Task[None]":
        return self._task

    def cancel(self) -> bool:
        """Cancel the retry if it has not fired yet."""
        if self._task.done():
            return False
        return self._task.cancel()

    def done(self) -> bool:
        return self._task.done()

    def cancelled(self) -> bool:
        return self._task.cancelled()


class RetryScheduler:
    """
    Schedules retries as asyncio tasks keyed by item id.

    At most one retry is outstanding per key: scheduling a key again cancels
    the earlier handle.
    """

    def __init__(self) -> None:
        self.logger = logging.getLogger(__name__)
        self._handles: Dict[str, RetryHandle] = {}

    def schedule(self, key: str, delay: float, callback: RetryCallback) -> RetryHandle:
        """
        Run ``callback`` after ``delay`` seconds.

        Args:
            key: Identity of the scheduled work, usually an item id
            delay: Delay in seconds
            callback: Coroutine function to await when the delay elapses

        Returns:
            A handle that can cancel the retry
        """
        self.cancel(key)
        task = asyncio.create_task(self._run(key, delay, callback))
        handle = RetryHandle(key, delay, task)
        self._handles[key] = handle
        task.add_done_callback(lambda _t, h=handle: self._forget(h))
        return handle

    async def _run(self, key: str, delay: float, callback: RetryCallback) -> None:
        await asyncio.sleep(delay)
        try:
            await callback()
        except Exception as e:
            self.logger.error(f"Scheduled retry for {key} failed: {e}")

    def _forget(self, handle: RetryHandle) -> None:
        if self._handles.get(handle.key) is handle:
            del self._handles[handle.key]

    def get(self, key: str) -> Optional[RetryHandle]:
        return self._handles.get(key)

    def cancel(self, key: str) -> bool:
        handle = self._handles.pop(key, None)
        if handle is None:
            return False
        # A retry that reschedules or settles itself must not cancel its own task
        if handle.task is _current_task():
            return False
        return handle.cancel()

    def cancel_all(self) -> int:
        cancelled = 0
        for key in list(self._handles):
            if self.cancel(key):
                cancelled += 1
        return cancelled

    def pending(self) -> List[str]:
        return [key for key, handle in self._handles.items() if not handle.done()]

    async def wait_all(self) -> None:
        """Wait for every outstanding retry to fire or be cancelled."""
        tasks = [handle.task for handle in self._handles.values()]
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
