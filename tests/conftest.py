"""
Shared fixtures for the WalletQueue test suite.
"""

import asyncio
from typing import Any, Callable, Dict, List, Optional, Set, Tuple

import pytest

from walletqueue.core import (
    DispatcherRegistry,
    MemoryBackupCache,
    MemoryItemStore,
    MemoryNotificationSink,
    QueueManager,
    RetryScheduler,
)
from walletqueue.models import QueueItem, ResourceType
from walletqueue.server_config import QueueConfig


class RecordingDispatcher:
    """Dispatcher double that records item ids and fails on demand."""

    def __init__(self) -> None:
        self.calls: List[str] = []
        self.fail_ids: Set[str] = set()
        self.error: Exception = RuntimeError("Network error")
        self.delay: float = 0.0
        self.on_dispatch: Optional[Callable[[QueueItem], None]] = None

    async def dispatch(self, item: QueueItem) -> Any:
        self.calls.append(item.id)
        if self.on_dispatch is not None:
            self.on_dispatch(item)
        if self.delay:
            await asyncio.sleep(self.delay)
        if item.id in self.fail_ids:
            raise self.error
        return {"id": item.id}


class RecordingScheduler(RetryScheduler):
    """Scheduler double that records delays and fires retries on request."""

    def __init__(self) -> None:
        super().__init__()
        self.scheduled: List[Tuple[str, float]] = []
        self.callbacks: Dict[str, Callable] = {}
        self.cancelled: List[str] = []

    def schedule(self, key, delay, callback):
        self.scheduled.append((key, delay))
        self.callbacks[key] = callback
        return None

    def cancel(self, key):
        self.cancelled.append(key)
        return self.callbacks.pop(key, None) is not None

    @property
    def delays(self) -> List[float]:
        return [delay for _, delay in self.scheduled]

    async def fire(self, key: str) -> None:
        callback = self.callbacks.pop(key)
        await callback()


@pytest.fixture
def store():
    return MemoryItemStore()


@pytest.fixture
def cache():
    return MemoryBackupCache()


@pytest.fixture
def dispatcher():
    return RecordingDispatcher()


@pytest.fixture
def registry(dispatcher):
    registry = DispatcherRegistry()
    for resource in ResourceType:
        registry.register(resource, dispatcher)
    return registry


@pytest.fixture
def scheduler():
    return RecordingScheduler()


@pytest.fixture
def notifier():
    return MemoryNotificationSink()


@pytest.fixture
def queue_config():
    return QueueConfig(persist_queue=False, background_delay=0.0, probe_interval=0.0)


@pytest.fixture
def manager(store, cache, registry, notifier, scheduler, queue_config):
    return QueueManager(
        store=store,
        cache=cache,
        dispatchers=registry,
        notifier=notifier,
        scheduler=scheduler,
        config=queue_config,
    )
