"""
Online/offline signal for the queue.

Listeners are told about transitions only; repeated reports of the same
state are ignored.
"""

import asyncio
import logging
from typing import Awaitable, Callable, List, Optional

ConnectivityListener = Callable[[bool], Awaitable[None]]


class ConnectivityMonitor:
    """Tracks network reachability and notifies listeners of changes."""

    def __init__(
        self,
        online: bool = True,
        probe_host: str = "1.1.1.1",
        probe_port: int = 53,
        probe_timeout: float = 5.0,
    ):
        self.logger = logging.getLogger(__name__)
        self._online = online
        self._listeners: List[ConnectivityListener] = []
        self.probe_host = probe_host
        self.probe_port = probe_port
        self.probe_timeout = probe_timeout
        self._poll_task: Optional[asyncio.Task] = None

    @property
    def is_online(self) -> bool:
        return self._online

    def add_listener(self, listener: ConnectivityListener) -> Callable[[], None]:
        """
        Subscribe to connectivity changes.

        Returns:
            A function that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def set_online(self, online: bool) -> None:
        """Record the current state and notify listeners on a transition."""
        if online == self._online:
            return

        self._online = online
        self.logger.info("Back online" if online else "Connection lost, now offline")

        for listener in list(self._listeners):
            try:
                await listener(online)
            except Exception as e:
                self.logger.error(f"Connectivity listener failed: {e}")

    async def probe(self) -> bool:
        """Check reachability by opening a TCP connection to the probe host."""
        try:
            _, writer = await asyncio.wait_for(
                asyncio.open_connection(self.probe_host, self.probe_port),
                timeout=self.probe_timeout,
            )
        except (OSError, asyncio.TimeoutError) as e:
            self.logger.debug(f"Connectivity probe failed: {e}")
            return False

        writer.close()
        try:
            await writer.wait_closed()
        except OSError:
            pass
        return True

    async def check(self) -> bool:
        """Probe once and publish the result."""
        online = await self.probe()
        await self.set_online(online)
        return online

    def start_polling(self, interval: float = 30.0) -> None:
        """Start a background loop that probes every ``interval`` seconds."""
        if self._poll_task and not self._poll_task.done():
            return
        self._poll_task = asyncio.create_task(self._poll_loop(interval))
        self.logger.info(f"Connectivity polling started (every {interval:.0f}s)")

    async def _poll_loop(self, interval: float) -> None:
        while True:
            try:
                await self.check()
                await asyncio.sleep(interval)
            except asyncio.CancelledError:
                break
            except Exception as e:
                self.logger.error(f"Connectivity polling error: {e}")
                await asyncio.sleep(interval)

    async def stop(self) -> None:
        """Stop background polling."""
        if self._poll_task is None:
            return
        if not self._poll_task.done():
            self._poll_task.cancel()
        await asyncio.gather(self._poll_task, return_exceptions=True)
        self._poll_task = None
        self.logger.info("Connectivity polling stopped")
