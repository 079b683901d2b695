"""Tests for storage backends and backend selection."""

import threading
from unittest.mock import AsyncMock

import pytest
from redis.exceptions import ResponseError

from collection_explorer.cache.storage import (
    FileStorageBackend,
    MemoryStorageBackend,
    RedisStorageBackend,
    open_storage_backend,
)
from collection_explorer.config import Settings
from collection_explorer.errors import QuotaExceededError


class TestMemoryStorage:
    @pytest.mark.asyncio
    async def test_read_write_delete(self):
        storage = MemoryStorageBackend()
        assert await storage.read("objectListCache") is None
        await storage.write("objectListCache", "{}")
        assert await storage.read("objectListCache") == "{}"
        await storage.delete("objectListCache")
        assert await storage.read("objectListCache") is None

    @pytest.mark.asyncio
    async def test_quota_counts_all_blobs(self):
        storage = MemoryStorageBackend(quota_bytes=10)
        await storage.write("a", "x" * 6)
        with pytest.raises(QuotaExceededError):
            await storage.write("b", "y" * 5)
        # Replacing a blob only counts its new size
        await storage.write("a", "z" * 10)
        assert await storage.read("a") == "z" * 10


class TestFileStorage:
    @pytest.mark.asyncio
    async def test_read_write_delete(self, tmp_path):
        storage = FileStorageBackend(tmp_path / "cache")
        await storage.write("objectDetailCache", '{"1": {}}')
        assert (tmp_path / "cache" / "objectDetailCache.json").exists()
        assert await storage.read("objectDetailCache") == '{"1": {}}'
        await storage.delete("objectDetailCache")
        assert await storage.read("objectDetailCache") is None

    @pytest.mark.asyncio
    async def test_unsafe_names_stay_in_directory(self, tmp_path):
        storage = FileStorageBackend(tmp_path)
        await storage.write("../escape", "{}")
        assert not (tmp_path.parent / "escape.json").exists()
        assert await storage.read("../escape") == "{}"

    @pytest.mark.asyncio
    async def test_io_runs_in_worker_thread(self, tmp_path, monkeypatch):
        storage = FileStorageBackend(tmp_path)
        threads = []
        write_sync = FileStorageBackend._write_sync

        def recording_write(self, path, data):
            threads.append(threading.get_ident())
            write_sync(self, path, data)

        monkeypatch.setattr(FileStorageBackend, "_write_sync", recording_write)
        await storage.write("objectListCache", "{}")

        assert threads and threads[0] != threading.get_ident()
        assert await storage.read("objectListCache") == "{}"

    @pytest.mark.asyncio
    async def test_quota(self, tmp_path):
        storage = FileStorageBackend(tmp_path, quota_bytes=16)
        await storage.write("a", "x" * 10)
        with pytest.raises(QuotaExceededError):
            await storage.write("b", "y" * 10)
        assert await storage.read("b") is None


class TestOpenStorageBackend:
    @pytest.mark.asyncio
    async def test_memory(self):
        backend = await open_storage_backend(Settings(storage_backend="memory"))
        assert isinstance(backend, MemoryStorageBackend)

    @pytest.mark.asyncio
    async def test_file(self, tmp_path):
        backend = await open_storage_backend(Settings(storage_backend="file", storage_dir=str(tmp_path)))
        assert isinstance(backend, FileStorageBackend)
        assert backend.name == "file"

    @pytest.mark.asyncio
    async def test_unknown_falls_back_to_memory(self):
        backend = await open_storage_backend(Settings(storage_backend="floppy"))
        assert isinstance(backend, MemoryStorageBackend)

    @pytest.mark.asyncio
    async def test_unreachable_redis_falls_back_to_memory(self):
        backend = await open_storage_backend(
            Settings(storage_backend="redis", redis_url="redis://127.0.0.1:1/0")
        )
        assert isinstance(backend, MemoryStorageBackend)
        assert not isinstance(backend, RedisStorageBackend)


class TestRedisStorage:
    @pytest.mark.asyncio
    async def test_keys_are_namespaced(self):
        redis_client = AsyncMock()
        redis_client.get.return_value = "{}"
        storage = RedisStorageBackend(redis_client)

        assert await storage.read("objectListCache") == "{}"
        await storage.write("objectListCache", "{}")
        await storage.delete("objectListCache")

        redis_client.get.assert_awaited_once_with("ce:objectListCache")
        redis_client.set.assert_awaited_once_with("ce:objectListCache", "{}")
        redis_client.delete.assert_awaited_once_with("ce:objectListCache")

    @pytest.mark.asyncio
    async def test_oom_maps_to_quota(self):
        redis_client = AsyncMock()
        redis_client.set.side_effect = ResponseError("OOM command not allowed when used memory > 'maxmemory'.")
        with pytest.raises(QuotaExceededError):
            await RedisStorageBackend(redis_client).write("objectListCache", "{}")

    @pytest.mark.asyncio
    async def test_other_errors_propagate(self):
        redis_client = AsyncMock()
        redis_client.set.side_effect = ResponseError("WRONGTYPE Operation against a key")
        with pytest.raises(ResponseError):
            await RedisStorageBackend(redis_client).write("objectListCache", "{}")
