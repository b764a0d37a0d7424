"""
Offline queue manager for wallet write operations.

This module implements the engine that accepts credential, handshake and
profile mutations while the wallet is offline, keeps them in the durable
item store (mirrored to the backup cache), and replays them in priority
order once connectivity returns. Failed items are retried with exponential
backoff until the retry ceiling, after which the user is notified and the
item is kept for operator action.
"""

import asyncio
import logging
from contextlib import contextmanager
from functools import partial
from typing import Any, Callable, Coroutine, Dict, Iterable, Iterator, List, Optional, Set, Union

from pydantic import ValidationError

from ..models import (
    BulkQueueEntry,
    Notification,
    NotificationSeverity,
    OperationType,
    QueueItem,
    QueueOptions,
    QueueStats,
    ResourceType,
    now_ms,
)
from ..server_config import QueueConfig
from .backup_cache import QUEUE_KEYS_INDEX, completed_key, item_key
from .connectivity import ConnectivityMonitor
from .dispatchers import DispatcherRegistry
from .errors import UnmetDependencyError
from .notifications import LoggingNotificationSink, NotificationSink
from .scheduler import RetryScheduler


class QueueManager:
    """
    Coordinates enqueueing, processing and retrying of offline operations.

    All collaborators are injected. The instance owns the processing guard:
    at most one ``process_queue`` pass runs at a time. Retries fired by the
    scheduler run outside the guard and may interleave with a pass.
    """

    def __init__(
        self,
        store,
        cache,
        dispatchers: DispatcherRegistry,
        notifier: Optional[NotificationSink] = None,
        scheduler: Optional[RetryScheduler] = None,
        connectivity: Optional[ConnectivityMonitor] = None,
        config: Optional[QueueConfig] = None,
    ):
        """
        Initialize the queue manager.

        Args:
            store: Durable item store (append/remove/patch/get/snapshot plus flags)
            cache: Backup cache used to mirror items across restarts
            dispatchers: Registry mapping resource kinds to dispatchers
            notifier: Sink told about permanently failed operations
            scheduler: Retry scheduler (a fresh one by default)
            connectivity: Online/offline signal subscribed to by ``initialize``
            config: Queue configuration (defaults when omitted)
        """
        self.store = store
        self.cache = cache
        self.dispatchers = dispatchers
        self.notifier = notifier or LoggingNotificationSink()
        self.scheduler = scheduler or RetryScheduler()
        self.connectivity = connectivity
        self.config = config or QueueConfig()
        self.logger = logging.getLogger(__name__)

        # Retry policy
        self.max_retries = self.config.max_retries
        self.base_retry_delay = self.config.base_retry_delay
        self.max_retry_delay = self.config.max_retry_delay
        self.backup_ttl = self.config.backup_ttl_seconds

        # Processing state
        self._processing = False
        self._index_lock = asyncio.Lock()
        self._background_tasks: Set[asyncio.Task] = set()
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._initialized = False

    # State

    @property
    def processing(self) -> bool:
        return self._processing

    @property
    def is_online(self) -> bool:
        return self.store.online

    @contextmanager
    def _processing_guard(self) -> Iterator[None]:
        """Hold the processing flag for the duration of a pass."""
        self._processing = True
        self.store.set_processing(True)
        try:
            yield
        finally:
            self._processing = False
            self.store.set_processing(False)

    def retry_delay_for(self, retry_count: int) -> float:
        """Backoff delay in seconds before attempt number ``retry_count``."""
        return min(self.base_retry_delay * (2**retry_count), self.max_retry_delay)

    # Enqueueing

    async def enqueue(
        self,
        type: Union[OperationType, str],
        resource: Union[ResourceType, str],
        data: Optional[Dict[str, Any]] = None,
        options: Optional[Union[QueueOptions, Dict[str, Any]]] = None,
    ) -> str:
        """
        Add an operation to the offline queue.

        Args:
            type: Operation kind
            resource: Target resource kind
            data: Operation payload
            options: Priority, dependencies, and immediate/background flags

        Returns:
            The new item's id

        Raises:
            ValidationError: If type, resource or options are malformed
        """
        if options is None:
            options = QueueOptions()
        elif isinstance(options, dict):
            options = QueueOptions.model_validate(options)

        item = QueueItem(
            type=type,
            resource=resource,
            data=data or {},
            priority=options.priority,
            dependencies=options.dependencies,
        )

        await self.store.append(item)
        await self._mirror(item, index=True)

        self.logger.info(f"Added {item.description} to offline queue: {item.id}")

        if options.immediate and self.is_online:
            await self._process_item(item)

        if options.background:
            self._spawn(self._delayed_pass(self.config.background_delay))

        return item.id

    async def add_bulk_to_queue(
        self, entries: Iterable[Union[BulkQueueEntry, Dict[str, Any]]]
    ) -> List[str]:
        """Enqueue entries one by one; earlier entries stay queued if a later one fails."""
        ids: List[str] = []
        for entry in entries:
            if not isinstance(entry, BulkQueueEntry):
                entry = BulkQueueEntry.model_validate(entry)
            ids.append(
                await self.enqueue(entry.type, entry.resource, entry.data, entry.options)
            )
        return ids

    # Processing

    async def process_queue(self) -> int:
        """
        Run one pass over the queue.

        Items are handled sequentially in priority order (high first), oldest
        first within a priority. The pass stops as soon as connectivity is
        lost. Per-item failures are absorbed by the retry handler.

        Returns:
            Number of items that completed successfully in this pass
        """
        if self._processing:
            self.logger.debug("Queue pass already in progress, skipping")
            return 0
        if not self.is_online:
            self.logger.debug("Offline, not processing queue")
            return 0

        processed = 0
        with self._processing_guard():
            items = sorted(await self.store.snapshot(), key=lambda i: i.sort_key)
            if items:
                self.logger.info(f"Processing {len(items)} queued operations")

            for queued in items:
                if not self.is_online:
                    self.logger.info("Connection lost, pausing queue processing")
                    break

                item = await self.store.get(queued.id)
                if item is None:
                    continue
                if item.retry_count > self.max_retries:
                    # Terminal; waits for retry_failed_items
                    continue

                if await self._process_item(item):
                    processed += 1

            self.store.set_last_sync(now_ms())
            await self.store.flush()

        await self._purge_expired()
        return processed

    async def _process_item(self, item: QueueItem) -> bool:
        """Dispatch one item and settle the outcome. Returns True on success."""
        try:
            if item.dependencies and not await self.dependencies_satisfied(
                item.dependencies
            ):
                raise UnmetDependencyError(item.dependencies)
            await self.dispatchers.dispatch(item)
        except Exception as e:
            self.logger.error(f"Operation {item.id} ({item.description}) failed: {e}")
            await self._handle_error(item, e)
            return False

        self.scheduler.cancel(item.id)
        await self.store.remove(item.id)
        await self._erase_mirror(item.id, completed=True)
        self.logger.info(f"Processed {item.description} operation {item.id}")
        return True

    async def dependencies_satisfied(self, dependency_ids: Iterable[str]) -> bool:
        """
        Check whether every dependency has resolved.

        A dependency still in the store has not been processed. One that has
        left the store counts as resolved only if the backup cache still
        holds its mirror or its completion record.
        """
        live_ids = {item.id for item in await self.store.snapshot()}

        for dep_id in dependency_ids:
            if dep_id in live_ids:
                return False
            if await self._cache_get(item_key(dep_id)) is not None:
                continue
            if await self._cache_get(completed_key(dep_id)) is not None:
                continue
            return False

        return True

    # Failure handling

    async def _handle_error(self, item: QueueItem, error: Exception) -> None:
        message = str(error) or error.__class__.__name__

        current = await self.store.get(item.id)
        if current is None:
            self.logger.debug(f"Item {item.id} left the queue before its failure was recorded")
            return

        retry_count = current.retry_count
        if retry_count < self.max_retries:
            new_count = retry_count + 1
            await self.store.patch(item.id, {"retry_count": new_count, "last_error": message})

            delay = self.retry_delay_for(new_count)
            self.scheduler.schedule(item.id, delay, partial(self._retry_item, item.id))
            self.logger.info(
                f"Scheduled retry for operation {item.id} "
                f"(attempt {new_count}/{self.max_retries}) after {delay:.1f}s delay"
            )
        else:
            self.scheduler.cancel(item.id)
            await self.store.patch(
                item.id,
                {
                    "retry_count": retry_count + 1,
                    "last_error": f"Max retries exceeded: {message}",
                },
            )
            self.logger.warning(
                f"Operation {item.id} ({item.description}) failed permanently"
            )
            await self._notify(
                Notification(
                    severity=NotificationSeverity.ERROR,
                    title="Offline Operation Failed",
                    message=(
                        f"{item.type.value} {item.resource.value} operation failed "
                        f"after {self.max_retries} attempts."
                    ),
                )
            )

        updated = await self.store.get(item.id)
        if updated is not None:
            await self._mirror(updated)

    async def _retry_item(self, item_id: str) -> None:
        """Re-dispatch an item when its backoff delay elapses."""
        item = await self.store.get(item_id)
        if item is None:
            self.logger.debug(f"Retry for {item_id} skipped, item no longer queued")
            return
        if item.retry_count > self.max_retries:
            return
        if not self.is_online:
            self.logger.info(f"Offline, deferring retry of {item_id} to the next pass")
            return
        await self._process_item(item)

    async def retry_failed_items(self) -> int:
        """
        Reset items that exhausted their retries and run a fresh pass.

        Returns:
            Number of items reset
        """
        failed = [
            item
            for item in await self.store.snapshot()
            if item.retry_count >= self.max_retries
        ]

        for item in failed:
            self.scheduler.cancel(item.id)
            await self.store.patch(item.id, {"retry_count": 0, "last_error": None})
            updated = await self.store.get(item.id)
            if updated is not None:
                await self._mirror(updated)

        if failed:
            self.logger.info(f"Reset {len(failed)} failed operations for retry")
            await self.process_queue()

        return len(failed)

    # Maintenance

    async def remove_from_queue(self, ids: Iterable[str]) -> int:
        """Remove items by id; unknown ids are ignored. Returns the number removed."""
        removed = 0
        for item_id in ids:
            self.scheduler.cancel(item_id)
            if await self.store.remove(item_id):
                removed += 1
            await self._erase_mirror(item_id, completed=False)
        return removed

    async def clear_completed_items(self) -> int:
        """
        Remove items that have never failed.

        Successfully processed items already leave the queue, so "completed"
        here means ``retry_count == 0`` with no recorded error.
        """
        stale = [
            item
            for item in await self.store.snapshot()
            if item.retry_count == 0 and not item.last_error
        ]
        return await self.remove_from_queue(item.id for item in stale)

    async def get_queue_stats(self) -> QueueStats:
        items = await self.store.snapshot()
        stats = QueueStats(
            total=len(items),
            pending=sum(1 for item in items if item.retry_count == 0),
            failed=sum(1 for item in items if item.retry_count >= self.max_retries),
            processing=self._processing,
        )
        for item in items:
            priority = item.priority.value
            resource = item.resource.value
            stats.by_priority[priority] = stats.by_priority.get(priority, 0) + 1
            stats.by_resource[resource] = stats.by_resource.get(resource, 0) + 1
        return stats

    async def get_items(self) -> List[QueueItem]:
        """Current queue contents in processing order."""
        return sorted(await self.store.snapshot(), key=lambda i: i.sort_key)

    async def restore_queue_from_storage(self) -> int:
        """
        Rehydrate items the store lost across a restart from the backup cache.

        Returns:
            Number of items restored. Failures are logged, never raised.
        """
        try:
            keys = await self.cache.get(QUEUE_KEYS_INDEX) or []
            live_ids = {item.id for item in await self.store.snapshot()}
            surviving: List[str] = []
            restored = 0

            for key in keys:
                raw = await self.cache.get(key)
                if not raw:
                    continue
                surviving.append(key)
                try:
                    item = QueueItem.model_validate(raw)
                except ValidationError as e:
                    self.logger.warning(f"Skipped invalid backup entry {key}: {e}")
                    continue
                if item.id in live_ids:
                    continue
                await self.store.append(item)
                live_ids.add(item.id)
                restored += 1

            if len(surviving) != len(keys):
                async with self._index_lock:
                    await self.cache.set(QUEUE_KEYS_INDEX, surviving)

            if restored:
                self.logger.info(f"Restored {restored} items from persistent storage")
            return restored

        except Exception as e:
            self.logger.error(f"Failed to restore queue from storage: {e}")
            return 0

    # Lifecycle

    async def initialize(self) -> None:
        """Restore persisted items and subscribe to connectivity changes."""
        if self._initialized:
            return

        await self.restore_queue_from_storage()
        await self._purge_expired()

        if self.connectivity is not None:
            self.store.set_online(self.connectivity.is_online)
            self._unsubscribe = self.connectivity.add_listener(
                self._on_connectivity_change
            )

        self._initialized = True
        self.logger.info("Queue manager initialized")

    async def shutdown(self) -> None:
        """Unsubscribe and cancel outstanding retries and background passes."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

        self.scheduler.cancel_all()

        for task in list(self._background_tasks):
            if not task.done():
                task.cancel()
        if self._background_tasks:
            await asyncio.gather(*self._background_tasks, return_exceptions=True)
        self._background_tasks.clear()

        self._initialized = False
        self.logger.info("Queue manager stopped")

    async def _on_connectivity_change(self, online: bool) -> None:
        self.store.set_online(online)
        if online:
            self.logger.info("Back online, processing offline queue")
            self._spawn(self.process_queue())

    async def wait_for_background(self) -> None:
        """Wait until every background pass spawned so far has finished."""
        while self._background_tasks:
            await asyncio.gather(*list(self._background_tasks), return_exceptions=True)

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._background_tasks.add(task)
        task.add_done_callback(self._on_background_done)
        return task

    def _on_background_done(self, task: asyncio.Task) -> None:
        self._background_tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            self.logger.error(f"Background queue pass failed: {task.exception()}")

    async def _delayed_pass(self, delay: float) -> None:
        await asyncio.sleep(delay)
        await self.process_queue()

    # Backup cache mirroring; failures here never block the queue

    async def _mirror(self, item: QueueItem, index: bool = False) -> None:
        key = item_key(item.id)
        try:
            await self.cache.set(key, item.to_storage(), ttl=self.backup_ttl)
            if index:
                async with self._index_lock:
                    keys = await self.cache.get(QUEUE_KEYS_INDEX) or []
                    if key not in keys:
                        keys.append(key)
                        await self.cache.set(QUEUE_KEYS_INDEX, keys)
        except Exception as e:
            self.logger.warning(f"Failed to mirror {item.id} to backup cache: {e}")

    async def _erase_mirror(self, item_id: str, completed: bool) -> None:
        key = item_key(item_id)
        try:
            await self.cache.delete(key)
            async with self._index_lock:
                keys = await self.cache.get(QUEUE_KEYS_INDEX) or []
                if key in keys:
                    keys.remove(key)
                    await self.cache.set(QUEUE_KEYS_INDEX, keys)
            if completed:
                await self.cache.set(
                    completed_key(item_id),
                    {"id": item_id, "completedAt": now_ms()},
                    ttl=self.backup_ttl,
                )
        except Exception as e:
            self.logger.warning(f"Failed to clean up backup for {item_id}: {e}")

    async def _purge_expired(self) -> None:
        try:
            removed = await self.cache.cleanup_expired()
        except Exception as e:
            self.logger.warning(f"Backup cache cleanup failed: {e}")
            return
        if removed:
            self.logger.debug(f"Purged {removed} expired backup entries")

    async def _cache_get(self, key: str) -> Optional[Any]:
        try:
            return await self.cache.get(key)
        except Exception as e:
            self.logger.warning(f"Backup cache read failed for {key}: {e}")
            return None

    async def _notify(self, notification: Notification) -> None:
        try:
            await self.notifier.notify(notification)
        except Exception as e:
            self.logger.error(f"Failed to deliver notification: {e}")
