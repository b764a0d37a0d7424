"""
Durable item store for the offline queue.

The store is the single source of truth for queued items. Callers outside
the queue manager only append or ask for removal; ``patch`` is reserved for
the manager's retry bookkeeping.
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from ..models import QueueItem, now_ms
from .storage import atomic_write_json, backup_corrupted_file, read_json


class MemoryItemStore:
    """Ordered in-memory collection of queue items plus connectivity flags."""

    def __init__(self, online: bool = True):
        self.logger = logging.getLogger(__name__)
        self._items: List[QueueItem] = []
        self._lock = asyncio.Lock()
        self._online = online
        self._processing = False
        self._last_sync: Optional[int] = None

    # Flags

    @property
    def online(self) -> bool:
        return self._online

    def set_online(self, online: bool) -> None:
        self._online = online

    @property
    def processing(self) -> bool:
        return self._processing

    def set_processing(self, processing: bool) -> None:
        self._processing = processing

    @property
    def last_sync(self) -> Optional[int]:
        return self._last_sync

    def set_last_sync(self, timestamp: Optional[int] = None) -> None:
        self._last_sync = timestamp if timestamp is not None else now_ms()

    # Mutation primitives

    async def append(self, item: QueueItem) -> None:
        async with self._lock:
            self._items.append(item.model_copy(deep=True))
            await self._persist()

    async def remove(self, item_id: str) -> bool:
        async with self._lock:
            before = len(self._items)
            self._items = [item for item in self._items if item.id != item_id]
            removed = len(self._items) != before
            if removed:
                await self._persist()
            return removed

    async def patch(self, item_id: str, fields: Dict[str, Any]) -> bool:
        async with self._lock:
            for index, item in enumerate(self._items):
                if item.id == item_id:
                    self._items[index] = item.model_copy(update=fields)
                    await self._persist()
                    return True
            return False

    # Reads

    async def get(self, item_id: str) -> Optional[QueueItem]:
        for item in self._items:
            if item.id == item_id:
                return item.model_copy(deep=True)
        return None

    async def snapshot(self) -> List[QueueItem]:
        return [item.model_copy(deep=True) for item in self._items]

    def __len__(self) -> int:
        return len(self._items)

    async def flush(self) -> None:
        """Write current state, including ``lastSync``, to durable storage."""
        async with self._lock:
            await self._persist()

    async def _persist(self) -> None:
        """Hook for durable subclasses; called with the lock held."""
        return None


class JsonFileItemStore(MemoryItemStore):
    """
    Item store persisted to a single JSON file.

    The file mirrors the wallet web store layout (``queue`` and ``lastSync``)
    and is rewritten atomically after every mutation. Connectivity and
    processing flags are runtime state and are never written.
    """

    FILE_VERSION = 1

    def __init__(self, file_path: Path, online: bool = True):
        super().__init__(online=online)
        self.file_path = Path(file_path)

    async def load(self) -> int:
        """
        Load items from disk, replacing in-memory state.

        A file that cannot be decoded, or whose root is not an object with a
        ``queue`` list, is moved aside and the store starts empty.

        Returns:
            Number of items loaded
        """
        try:
            data = await read_json(self.file_path)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            self.logger.error(f"Failed to load queue file {self.file_path}: {e}")
            backup_corrupted_file(self.file_path)
            data = None

        if data is not None and not (
            isinstance(data, dict) and isinstance(data.get("queue", []), list)
        ):
            self.logger.error(f"Queue file {self.file_path} has an unexpected layout")
            backup_corrupted_file(self.file_path)
            data = None

        data = data or {}
        items: List[QueueItem] = []
        for raw in data.get("queue", []):
            try:
                items.append(QueueItem.model_validate(raw))
            except ValidationError as e:
                self.logger.warning(f"Skipped invalid queue item: {e}")

        last_sync = data.get("lastSync")
        async with self._lock:
            self._items = items
            self._last_sync = last_sync if isinstance(last_sync, int) else None

        self.logger.debug(f"Loaded {len(items)} queue items from {self.file_path}")
        return len(items)

    async def _persist(self) -> None:
        await atomic_write_json(
            self.file_path,
            {
                "version": self.FILE_VERSION,
                "queue": [item.to_storage() for item in self._items],
                "lastSync": self._last_sync,
            },
        )
