"""Result-page and object-detail caches built on ResultCacheStore."""

import logging

from collection_explorer.cache.storage import StorageBackend
from collection_explorer.cache.store import ResultCacheStore
from collection_explorer.schemas import NOT_FOUND, CachedDetail, ObjectListEntry, QueryKey

logger = logging.getLogger(__name__)

OBJECT_LIST_CACHE_STORAGE_KEY = "objectListCache"
OBJECT_DETAIL_CACHE_STORAGE_KEY = "objectDetailCache"


class ObjectListCache:
    """Cached result pages keyed by the canonical query key."""

    def __init__(self, storage: StorageBackend, **store_options):
        self.store: ResultCacheStore[ObjectListEntry] = ResultCacheStore(
            storage, OBJECT_LIST_CACHE_STORAGE_KEY, ObjectListEntry, **store_options,
        )

    async def get(self, key: QueryKey) -> ObjectListEntry | None:
        return await self.store.get(key.serialize())

    async def set(self, key: QueryKey, entry: ObjectListEntry) -> None:
        await self.store.set(key.serialize(), entry)
        logger.info(
            "Cache SET (pages) | key=%s | details=%d | total=%d",
            key.serialize()[:80], len(entry.details), entry.total,
        )

    async def drain(self) -> None:
        await self.store.drain()

    async def reset(self) -> None:
        await self.store.reset()


class ObjectDetailCache:
    """Cached object details keyed by object id, including NotFound markers."""

    def __init__(self, storage: StorageBackend, **store_options):
        self.store: ResultCacheStore[CachedDetail] = ResultCacheStore(
            storage, OBJECT_DETAIL_CACHE_STORAGE_KEY, CachedDetail, **store_options,
        )

    async def get(self, object_id: int) -> CachedDetail | None:
        return await self.store.get(str(object_id))

    async def set(self, object_id: int, detail: CachedDetail) -> None:
        await self.store.set(str(object_id), detail)

    async def mark_not_found(self, object_id: int) -> None:
        await self.store.set(str(object_id), NOT_FOUND)

    async def drain(self) -> None:
        await self.store.drain()

    async def reset(self) -> None:
        await self.store.reset()
