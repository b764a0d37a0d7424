"""
Tests for the TTL backup caches.
"""

import pytest

from walletqueue.core import FileBackupCache, MemoryBackupCache
from walletqueue.core.backup_cache import completed_key, item_key


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestKeys:
    def test_item_key_doubles_prefix(self):
        assert item_key("queue_1_abc") == "queue_queue_1_abc"

    def test_completed_key(self):
        assert completed_key("queue_1_abc") == "queue_done_queue_1_abc"


class TestMemoryBackupCache:
    """Dict-backed cache."""

    @pytest.mark.asyncio
    async def test_set_and_get(self):
        cache = MemoryBackupCache()
        await cache.set("k", {"a": 1})
        assert await cache.get("k") == {"a": 1}
        assert await cache.get("missing") is None

    @pytest.mark.asyncio
    async def test_entries_expire(self):
        clock = FakeClock()
        cache = MemoryBackupCache(clock=clock)
        await cache.set("short", 1, ttl=10)
        await cache.set("forever", 2)

        clock.now += 11

        assert await cache.get("short") is None
        assert await cache.get("forever") == 2

    @pytest.mark.asyncio
    async def test_setting_none_erases(self):
        cache = MemoryBackupCache()
        await cache.set("k", 1)
        await cache.set("k", None)
        assert await cache.get("k") is None
        assert await cache.keys() == []

    @pytest.mark.asyncio
    async def test_keys_and_cleanup(self):
        clock = FakeClock()
        cache = MemoryBackupCache(clock=clock)
        await cache.set("a", 1, ttl=5)
        await cache.set("b", 2, ttl=50)

        clock.now += 10

        assert await cache.keys() == ["b"]
        assert await cache.cleanup_expired() == 1
        assert await cache.cleanup_expired() == 0

    @pytest.mark.asyncio
    async def test_clear(self):
        cache = MemoryBackupCache()
        await cache.set("a", 1)
        await cache.clear()
        assert await cache.keys() == []


class TestFileBackupCache:
    """One-file-per-key cache."""

    @pytest.mark.asyncio
    async def test_set_and_get_across_instances(self, tmp_path):
        await FileBackupCache(tmp_path).set("queue_queue_1_abc", {"id": "queue_1_abc"})

        cache = FileBackupCache(tmp_path)
        assert await cache.get("queue_queue_1_abc") == {"id": "queue_1_abc"}

    @pytest.mark.asyncio
    async def test_unsafe_key_characters_are_sanitized(self, tmp_path):
        cache = FileBackupCache(tmp_path)
        await cache.set("wallet/key:1", [1, 2])

        assert await cache.get("wallet/key:1") == [1, 2]
        assert all(p.parent == tmp_path for p in tmp_path.glob("*.json"))
        assert await cache.keys() == ["wallet/key:1"]

    @pytest.mark.asyncio
    async def test_expired_entries_are_removed_on_read(self, tmp_path):
        clock = FakeClock()
        cache = FileBackupCache(tmp_path, clock=clock)
        await cache.set("k", "v", ttl=10)

        clock.now += 11

        assert await cache.get("k") is None
        assert list(tmp_path.glob("*.json")) == []

    @pytest.mark.asyncio
    async def test_cleanup_expired(self, tmp_path):
        clock = FakeClock()
        cache = FileBackupCache(tmp_path, clock=clock)
        await cache.set("old", 1, ttl=1)
        await cache.set("new", 2, ttl=100)

        clock.now += 5

        assert await cache.cleanup_expired() == 1
        assert await cache.keys() == ["new"]

    @pytest.mark.asyncio
    async def test_corrupted_entry_reads_as_missing(self, tmp_path):
        cache = FileBackupCache(tmp_path)
        (tmp_path / "broken.json").write_text("{oops")

        assert await cache.get("broken") is None
        assert list(tmp_path.glob("broken.corrupted_*.json"))

    @pytest.mark.asyncio
    async def test_undecodable_index_is_quarantined_and_rewritable(self, tmp_path):
        cache = FileBackupCache(tmp_path)
        (tmp_path / "queue_keys.json").write_bytes(b"\xff\xfe")

        assert await cache.get("queue_keys") is None
        assert list(tmp_path.glob("queue_keys.corrupted_*.json"))

        await cache.set("queue_keys", ["queue_queue_1_abc"])
        assert await cache.get("queue_keys") == ["queue_queue_1_abc"]
        assert await cache.keys() == ["queue_keys"]

    @pytest.mark.asyncio
    async def test_delete_and_clear(self, tmp_path):
        cache = FileBackupCache(tmp_path)
        await cache.set("a", 1)
        await cache.set("b", 2)

        await cache.delete("a")
        assert await cache.get("a") is None

        await cache.clear()
        assert await cache.keys() == []
