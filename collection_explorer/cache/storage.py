"""Durable storage backends for the result caches.

Each cache store is persisted as one JSON blob under a fixed name. The backend is
picked once per session by ``open_storage_backend``; Redis failures fall back to
process memory so the caches keep working without persistence.
"""

import asyncio
import errno
import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path

from collection_explorer.config import Settings, settings
from collection_explorer.errors import QuotaExceededError

logger = logging.getLogger(__name__)


class StorageBackend(ABC):
    """Blob storage keyed by store name."""

    name = "abstract"

    @abstractmethod
    async def read(self, key: str) -> str | None:
        """Return the stored blob, or None when nothing was stored."""

    @abstractmethod
    async def write(self, key: str, blob: str) -> None:
        """Store ``blob``. Raises QuotaExceededError when storage is full."""

    @abstractmethod
    async def delete(self, key: str) -> None:
        ...

    async def close(self) -> None:
        return None


class MemoryStorageBackend(StorageBackend):
    """Process-local storage. Optional byte quota mimics a browser's storage limit."""

    name = "memory"

    def __init__(self, quota_bytes: int = 0):
        self.quota_bytes = quota_bytes
        self._blobs: dict[str, str] = {}

    async def read(self, key: str) -> str | None:
        return self._blobs.get(key)

    async def write(self, key: str, blob: str) -> None:
        if self.quota_bytes:
            used = sum(len(v.encode()) for k, v in self._blobs.items() if k != key)
            if used + len(blob.encode()) > self.quota_bytes:
                raise QuotaExceededError(f"Memory storage quota of {self.quota_bytes} bytes exceeded")
        self._blobs[key] = blob

    async def delete(self, key: str) -> None:
        self._blobs.pop(key, None)


class FileStorageBackend(StorageBackend):
    """One JSON file per store inside a directory.

    Filesystem calls run in a worker thread so persistence never blocks the loop.
    """

    name = "file"

    def __init__(self, directory: str | Path, quota_bytes: int = 0):
        self.directory = Path(directory)
        self.quota_bytes = quota_bytes
        self.directory.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        safe = "".join(c if c.isalnum() or c in "-_" else "_" for c in key)
        return self.directory / f"{safe}.json"

    async def read(self, key: str) -> str | None:
        return await asyncio.to_thread(self._read_sync, self._path(key))

    async def write(self, key: str, blob: str) -> None:
        await asyncio.to_thread(self._write_sync, self._path(key), blob.encode("utf-8"))

    async def delete(self, key: str) -> None:
        await asyncio.to_thread(self._path(key).unlink, missing_ok=True)

    @staticmethod
    def _read_sync(path: Path) -> str | None:
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None

    def _write_sync(self, path: Path, data: bytes) -> None:
        if self.quota_bytes:
            used = sum(
                p.stat().st_size for p in self.directory.glob("*.json") if p != path
            )
            if used + len(data) > self.quota_bytes:
                raise QuotaExceededError(f"File storage quota of {self.quota_bytes} bytes exceeded")

        tmp = path.with_suffix(".json.tmp")
        try:
            tmp.write_bytes(data)
            os.replace(tmp, path)
        except OSError as e:
            tmp.unlink(missing_ok=True)
            if e.errno in (errno.ENOSPC, getattr(errno, "EDQUOT", errno.ENOSPC)):
                raise QuotaExceededError(str(e)) from e
            raise


class RedisStorageBackend(StorageBackend):
    """Redis-backed storage. ``maxmemory`` rejections surface as quota errors."""

    name = "redis"

    def __init__(self, redis_client):
        self._redis = redis_client

    async def read(self, key: str) -> str | None:
        return await self._redis.get(_redis_key(key))

    async def write(self, key: str, blob: str) -> None:
        from redis.exceptions import ResponseError

        try:
            await self._redis.set(_redis_key(key), blob)
        except ResponseError as e:
            if str(e).startswith("OOM"):
                raise QuotaExceededError(str(e)[:200]) from e
            raise

    async def delete(self, key: str) -> None:
        await self._redis.delete(_redis_key(key))

    async def close(self) -> None:
        await self._redis.aclose()


def _redis_key(key: str) -> str:
    return f"ce:{key}"


async def open_storage_backend(config: Settings | None = None) -> StorageBackend:
    """Select the storage backend for this session."""
    config = config or settings
    kind = config.storage_backend.lower()

    if kind == "redis":
        try:
            import redis.asyncio as aioredis

            client = aioredis.from_url(
                config.redis_url,
                decode_responses=True,
                socket_connect_timeout=3,
            )
            await client.ping()
            logger.info("Storage backend: redis | url=%s", config.redis_url)
            return RedisStorageBackend(client)
        except Exception as e:
            logger.warning("Redis connection failed — using in-memory storage: %s", str(e)[:100])
            return MemoryStorageBackend(config.storage_quota_bytes)

    if kind == "file":
        try:
            backend = FileStorageBackend(config.storage_dir, config.storage_quota_bytes)
            logger.info("Storage backend: file | dir=%s", config.storage_dir)
            return backend
        except OSError as e:
            logger.warning("Storage dir unavailable — using in-memory storage: %s", str(e)[:100])
            return MemoryStorageBackend(config.storage_quota_bytes)

    if kind != "memory":
        logger.warning("Unknown storage backend '%s' — using in-memory storage", kind)
    return MemoryStorageBackend(config.storage_quota_bytes)
