"""Generic TTL- and capacity-bounded result store persisted to a storage backend.

  - Loaded lazily on first access; expired or malformed entries are dropped then.
  - Reads check the TTL at read time (no background sweep).
  - Writes trim to capacity, keeping the most recently written entries, and
    persist the whole store in a background task.
  - A quota failure halves the persisted entry count and retries; after the last
    attempt the write is dropped. The in-memory store is unaffected either way.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Generic, TypeVar

from collection_explorer.cache.storage import StorageBackend
from collection_explorer.config import settings
from collection_explorer.errors import QuotaExceededError
from collection_explorer.integrations.decoders import Err, adapter_for, decode

logger = logging.getLogger(__name__)

T = TypeVar("T")


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    value: T
    timestamp: int  # epoch millis


class ResultCacheStore(Generic[T]):
    """Key → value store with TTL, capacity eviction and quota-safe persistence."""

    def __init__(
        self,
        storage: StorageBackend,
        storage_key: str,
        value_type: Any,
        *,
        ttl_ms: int | None = None,
        max_entries: int | None = None,
        persist_attempts: int | None = None,
        min_retained: int | None = None,
        clock: Callable[[], int] = now_ms,
    ):
        self.storage = storage
        self.storage_key = storage_key
        self.value_type = value_type
        self.ttl_ms = settings.cache_ttl_ms if ttl_ms is None else ttl_ms
        self.max_entries = max_entries or settings.cache_max_entries
        self.persist_attempts = persist_attempts or settings.cache_persist_attempts
        self.min_retained = settings.cache_min_retained_entries if min_retained is None else min_retained
        self.clock = clock

        self._entries: dict[str, CacheEntry[T]] | None = None
        self._load_lock = asyncio.Lock()
        self._write_lock = asyncio.Lock()
        self._pending: set[asyncio.Task] = set()

    # ── reads ──

    async def get(self, key: str) -> T | None:
        """Return the value for ``key``, or None if missing or older than the TTL."""
        entries = await self._ensure_loaded()
        entry = entries.get(key)
        if entry is None:
            return None
        if self.clock() - entry.timestamp > self.ttl_ms:
            return None
        return entry.value

    async def keys(self) -> list[str]:
        entries = await self._ensure_loaded()
        return list(entries)

    # ── writes ──

    async def set(self, key: str, value: T) -> None:
        """Store ``value`` with the current timestamp and persist in the background."""
        entries = await self._ensure_loaded()
        # Re-insert so dict order tracks write recency
        entries.pop(key, None)
        entries[key] = CacheEntry(value=value, timestamp=self.clock())
        if len(entries) > self.max_entries:
            self._entries = self.trim_to_max(entries, self.max_entries)
        self._schedule_persist()

    async def reset(self) -> None:
        """Drop every entry, in memory and in storage."""
        self._entries = {}
        # Earlier writes must land before the delete, not after it
        await self.drain()
        async with self._write_lock:
            try:
                await self.storage.delete(self.storage_key)
            except Exception as e:
                logger.error("Cache reset failed | store=%s | %s", self.storage_key, str(e)[:200])

    async def drain(self) -> None:
        """Wait for background persistence writes to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    @staticmethod
    def trim_to_max(entries: dict[str, CacheEntry[T]], max_entries: int) -> dict[str, CacheEntry[T]]:
        """Keep the ``max_entries`` most recent entries by timestamp."""
        if len(entries) <= max_entries:
            return dict(entries)
        # Later insertion wins ties between equal timestamps
        ranked = sorted(
            enumerate(entries.items()),
            key=lambda pair: (pair[1][1].timestamp, pair[0]),
            reverse=True,
        )
        kept = sorted(ranked[:max_entries], key=lambda pair: pair[0])
        return {key: entry for _, (key, entry) in kept}

    # ── persistence ──

    def _schedule_persist(self) -> None:
        task = asyncio.create_task(self._persist())
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _persist(self) -> None:
        async with self._write_lock:
            trimmed = self.trim_to_max(self._entries or {}, self.max_entries)

            for attempt in range(1, self.persist_attempts + 1):
                try:
                    await self.storage.write(self.storage_key, self._serialize(trimmed))
                    if attempt > 1:
                        logger.info(
                            "Cache persisted after eviction | store=%s | entries=%d | attempt=%d",
                            self.storage_key, len(trimmed), attempt,
                        )
                    return
                except QuotaExceededError:
                    retained = max(self.min_retained, len(trimmed) // 2)
                    logger.warning(
                        "Storage quota exceeded | store=%s | attempt=%d | retaining=%d",
                        self.storage_key, attempt, retained,
                    )
                    trimmed = self.trim_to_max(trimmed, retained)
                except Exception as e:
                    logger.error("Cache persist error | store=%s | %s", self.storage_key, str(e)[:200])
                    return

            logger.warning(
                "Unable to persist cache '%s' after %d attempts — keeping it in memory only",
                self.storage_key, self.persist_attempts,
            )

    def _serialize(self, entries: dict[str, CacheEntry[T]]) -> str:
        adapter = adapter_for(self.value_type)
        data = {
            key: {
                "value": adapter.dump_python(entry.value, mode="json", by_alias=True),
                "timestamp": entry.timestamp,
            }
            for key, entry in entries.items()
        }
        return json.dumps(data, ensure_ascii=False)

    async def _ensure_loaded(self) -> dict[str, CacheEntry[T]]:
        if self._entries is not None:
            return self._entries
        async with self._load_lock:
            if self._entries is None:
                self._entries = await self._load()
        return self._entries

    async def _load(self) -> dict[str, CacheEntry[T]]:
        try:
            raw = await self.storage.read(self.storage_key)
        except Exception as e:
            logger.error("Cache load failed | store=%s | %s", self.storage_key, str(e)[:200])
            return {}
        if not raw:
            return {}

        try:
            parsed = json.loads(raw)
        except (json.JSONDecodeError, TypeError) as e:
            logger.error("Corrupt cache blob | store=%s | %s", self.storage_key, str(e)[:200])
            return {}
        if not isinstance(parsed, dict):
            logger.error("Corrupt cache blob | store=%s | not a mapping", self.storage_key)
            return {}

        now = self.clock()
        valid: dict[str, CacheEntry[T]] = {}
        dropped = 0
        for key, item in parsed.items():
            timestamp = item.get("timestamp") if isinstance(item, dict) else None
            if not isinstance(timestamp, (int, float)) or isinstance(timestamp, bool):
                dropped += 1
                continue
            if now - timestamp > self.ttl_ms:
                dropped += 1
                continue
            decoded = decode(self.value_type, item.get("value"))
            if isinstance(decoded, Err):
                dropped += 1
                continue
            valid[key] = CacheEntry(value=decoded.value, timestamp=int(timestamp))

        # Oldest first so dict order matches write recency
        valid = dict(sorted(valid.items(), key=lambda kv: kv[1].timestamp))
        logger.info("Cache loaded | store=%s | entries=%d | dropped=%d", self.storage_key, len(valid), dropped)
        return valid
