"""
Keyed, TTL-bearing backup cache.

Each queue item is mirrored here so it survives a restart even when the
item store does not. The queue manager also keeps a ``queue_keys`` index
and ``queue_done_<id>`` completion records in the same cache.
"""

import asyncio
import json
import logging
import re
import time
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from .storage import atomic_write_json, backup_corrupted_file, read_json

QUEUE_KEY_PREFIX = "queue_"
COMPLETED_KEY_PREFIX = "queue_done_"
QUEUE_KEYS_INDEX = "queue_keys"


def item_key(item_id: str) -> str:
    """Cache key of an item's mirror."""
    # Ids already start with "queue_"; the wallet keeps the doubled prefix
    return f"{QUEUE_KEY_PREFIX}{item_id}"


def completed_key(item_id: str) -> str:
    """Cache key of an item's completion record."""
    return f"{COMPLETED_KEY_PREFIX}{item_id}"


class MemoryBackupCache:
    """Dict-backed cache with per-entry expiry."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self.logger = logging.getLogger(__name__)
        self._clock = clock
        self._entries: Dict[str, Dict[str, Any]] = {}

    def _is_expired(self, entry: Dict[str, Any]) -> bool:
        expires = entry.get("expires")
        return expires is not None and self._clock() > expires

    def _make_entry(self, key: str, value: Any, ttl: Optional[float]) -> Dict[str, Any]:
        return {
            "key": key,
            "data": value,
            "expires": self._clock() + ttl if ttl else None,
        }

    async def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        """Store ``value`` under ``key``; a ``None`` value erases the key."""
        if value is None:
            await self.delete(key)
            return
        self._entries[key] = self._make_entry(key, value, ttl)

    async def get(self, key: str) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._is_expired(entry):
            self._entries.pop(key, None)
            return None
        return entry["data"]

    async def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    async def keys(self) -> List[str]:
        return [k for k, e in self._entries.items() if not self._is_expired(e)]

    async def cleanup_expired(self) -> int:
        expired = [k for k, e in self._entries.items() if self._is_expired(e)]
        for key in expired:
            del self._entries[key]
        return len(expired)

    async def clear(self) -> None:
        self._entries.clear()


class FileBackupCache(MemoryBackupCache):
    """Cache that keeps one JSON file per key under a directory."""

    _UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_.-]")

    def __init__(self, directory: Path, clock: Callable[[], float] = time.time):
        super().__init__(clock=clock)
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)
        self._lock = asyncio.Lock()

    def _path_for(self, key: str) -> Path:
        return self.directory / f"{self._UNSAFE_CHARS.sub('_', key)}.json"

    async def _read_entry(self, path: Path) -> Optional[Dict[str, Any]]:
        try:
            entry = await read_json(path)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            self.logger.error(f"Corrupted cache entry {path.name}: {e}")
            backup_corrupted_file(path)
            return None
        return entry if isinstance(entry, dict) else None

    async def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        if value is None:
            await self.delete(key)
            return
        async with self._lock:
            await atomic_write_json(self._path_for(key), self._make_entry(key, value, ttl))

    async def get(self, key: str) -> Optional[Any]:
        path = self._path_for(key)
        entry = await self._read_entry(path)
        if entry is None:
            return None
        if self._is_expired(entry):
            path.unlink(missing_ok=True)
            return None
        return entry.get("data")

    async def delete(self, key: str) -> None:
        async with self._lock:
            self._path_for(key).unlink(missing_ok=True)

    async def _entries_on_disk(self) -> List[tuple]:
        entries = []
        for path in sorted(self.directory.glob("*.json")):
            if ".corrupted_" in path.name:
                continue
            entry = await self._read_entry(path)
            if entry is not None:
                entries.append((path, entry))
        return entries

    async def keys(self) -> List[str]:
        return [
            entry["key"]
            for _, entry in await self._entries_on_disk()
            if "key" in entry and not self._is_expired(entry)
        ]

    async def cleanup_expired(self) -> int:
        removed = 0
        for path, entry in await self._entries_on_disk():
            if self._is_expired(entry):
                path.unlink(missing_ok=True)
                removed += 1
        if removed:
            self.logger.info(f"Removed {removed} expired cache entries")
        return removed

    async def clear(self) -> None:
        async with self._lock:
            for path in self.directory.glob("*.json"):
                path.unlink(missing_ok=True)
