"""Durable result caches.

Flow: StorageBackend (memory | file | redis) → ResultCacheStore → ObjectListCache / ObjectDetailCache
"""

from collection_explorer.cache.object_cache import ObjectDetailCache, ObjectListCache
from collection_explorer.cache.storage import StorageBackend, open_storage_backend
from collection_explorer.cache.store import ResultCacheStore

__all__ = [
    "ObjectDetailCache",
    "ObjectListCache",
    "ResultCacheStore",
    "StorageBackend",
    "open_storage_backend",
]
