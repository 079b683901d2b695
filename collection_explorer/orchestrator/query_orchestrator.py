"""Query orchestrator — turns UI parameter changes into cached result pages.

Responsibilities:
  - Short-circuit a cleared query to an empty result
  - Check the page cache (full hit / partial hit / miss)
  - Route to a direct object lookup or a search / id listing
  - Slice the id list into pages and resolve details concurrently, cache first
  - Share one in-flight remote fetch per object id
  - Write complete pages back to the page cache
  - Discard results of superseded queries
"""

import asyncio
import logging

from cachetools import TTLCache

from collection_explorer.cache.object_cache import ObjectDetailCache, ObjectListCache
from collection_explorer.config import settings
from collection_explorer.errors import FetchError, QueryValidationError
from collection_explorer.integrations.met_collection import MetCollectionClient
from collection_explorer.orchestrator.schemas import QueryParams, QuerySnapshot, QueryStatus
from collection_explorer.schemas import (
    NOT_FOUND,
    CachedDetail,
    Department,
    NotFoundMarker,
    ObjectListEntry,
    ObjectRecord,
    QueryKey,
    SearchResult,
)

logger = logging.getLogger(__name__)


def page_slice(ids: list[int], page: int, page_size: int) -> list[int]:
    """Ids on ``page`` (1-based): ``ids[(page-1)*size : page*size]``, clipped."""
    start = (page - 1) * page_size
    return ids[start:start + page_size]


class QueryOrchestrator:
    """Coordinates caches and the remote client for one browsing session."""

    def __init__(
        self,
        client: MetCollectionClient,
        list_cache: ObjectListCache,
        detail_cache: ObjectDetailCache,
        page_size: int | None = None,
    ):
        self.client = client
        self.list_cache = list_cache
        self.detail_cache = detail_cache
        self.page_size = page_size or settings.page_size

        self.params: QueryParams | None = None
        self.status = QueryStatus.IDLE
        self.details: list[CachedDetail] = []
        self.total = 0
        self.error: str | None = None
        self.key: QueryKey | None = None

        self._generation = 0
        self._closed = False
        self._in_flight: dict[int, asyncio.Task] = {}
        self._departments: TTLCache = TTLCache(maxsize=1, ttl=settings.cache_ttl_seconds)

    # ═══════════════ UI-FACING STATE ═══════════════

    @property
    def is_loading(self) -> bool:
        return self.status == QueryStatus.LOADING

    @property
    def not_found(self) -> bool:
        return self.status == QueryStatus.NOT_FOUND

    @property
    def visible_objects(self) -> list[ObjectRecord]:
        """Resolved records with markers removed and the on-view filter applied."""
        records = [d for d in self.details if isinstance(d, ObjectRecord)]
        if self.params is not None and self.params.is_on_view:
            records = [r for r in records if r.is_on_display]
        return records

    def snapshot(self) -> QuerySnapshot:
        return QuerySnapshot(
            status=self.status,
            page=self.params.page if self.params else 1,
            total=self.total,
            objects=self.visible_objects,
            is_loading=self.is_loading,
            not_found=self.not_found,
            error=self.error,
            cache_key=self.key.serialize() if self.key else None,
        )

    # ═══════════════ QUERY LIFECYCLE ═══════════════

    async def update(self, params: QueryParams) -> QuerySnapshot:
        """React to a parameter change and return the resulting snapshot."""
        if self._closed:
            raise RuntimeError("QueryOrchestrator is closed")

        if params.is_blank:
            logger.debug("Blank query ignored | keeping current results")
            return self.snapshot()

        self._generation += 1
        generation = self._generation
        self.params = params

        if params.is_cleared:
            self._apply(generation, QueryStatus.EMPTY, details=[], total=0, error=None, key=None)
            return self.snapshot()

        object_id = params.object_id_lookup
        if object_id is not None and object_id <= 0:
            self._apply(
                generation, QueryStatus.ERROR, details=[], total=0, key=None,
                error=f"Invalid object ID: {object_id}. A positive integer is required.",
            )
            return self.snapshot()

        key = params.cache_key()
        self._apply(generation, QueryStatus.LOADING, error=None, key=key)

        cached = await self.list_cache.get(key)
        if cached is not None:
            if cached.is_complete:
                logger.info("Cache hit | key=%s", key.serialize()[:80])
                self._apply_entry(generation, cached)
                return self.snapshot()
            # Partial hit: show the known total while details load
            logger.info("Partial cache hit | key=%s | total=%d", key.serialize()[:80], cached.total)
            self._apply(generation, QueryStatus.LOADING, total=cached.total)

        failed = 0
        try:
            if object_id is not None:
                entry = await self._lookup_single(object_id)
            else:
                entry, failed = await self._fetch_page(params, params.page)
        except (FetchError, QueryValidationError) as e:
            logger.warning("Query failed | key=%s | %s", key.serialize()[:80], str(e)[:200])
            self._apply(generation, QueryStatus.ERROR, details=[], total=0, error=str(e))
            return self.snapshot()

        if failed:
            logger.info("Page not cached | key=%s | failed=%d", key.serialize()[:80], failed)
        elif entry.is_complete and not self._closed:
            await self.list_cache.set(key, entry)

        self._apply_entry(generation, entry)
        return self.snapshot()

    def close(self) -> None:
        """Detach from the UI. Late results are dropped from now on."""
        self._closed = True
        self._generation += 1

    def _apply(self, generation: int, status: QueryStatus, **changes) -> bool:
        if generation != self._generation or self._closed:
            logger.debug("Discarding superseded result | generation=%d", generation)
            return False
        self.status = status
        for name, value in changes.items():
            setattr(self, name, value)
        return True

    def _apply_entry(self, generation: int, entry: ObjectListEntry) -> bool:
        has_marker = any(isinstance(d, NotFoundMarker) for d in entry.details)
        if entry.total == 0 and has_marker:
            status = QueryStatus.NOT_FOUND
        elif entry.total == 0 or not entry.details:
            status = QueryStatus.EMPTY
        else:
            status = QueryStatus.READY
        return self._apply(generation, status, details=list(entry.details), total=entry.total)

    # ═══════════════ FETCH ROUTING ═══════════════

    async def _lookup_single(self, object_id: int) -> ObjectListEntry:
        detail = await self.lookup_detail(object_id)
        if isinstance(detail, NotFoundMarker):
            return ObjectListEntry(details=[NOT_FOUND], total=0)
        return ObjectListEntry(details=[detail], total=1)

    async def _fetch_page(self, params: QueryParams, page: int) -> tuple[ObjectListEntry, int]:
        """Resolve one page. Also returns how many items were degraded by a failed fetch."""
        result = await self._resolve_ids(params)
        page_ids = page_slice(result.object_ids or [], page, self.page_size)
        if not page_ids:
            return ObjectListEntry(details=[], total=result.total), 0

        details, failed = await self._resolve_details(page_ids)
        logger.info(
            "Page resolved | page=%d | ids=%d | found=%d | failed=%d | total=%d",
            page, len(page_ids), sum(isinstance(d, ObjectRecord) for d in details), failed, result.total,
        )
        return ObjectListEntry(details=details, total=result.total), failed

    async def _resolve_ids(self, params: QueryParams) -> SearchResult:
        search = params.search_params()
        if search is not None:
            return await self.client.search(search)
        return await self.client.fetch_ids(department_id=params.department_id)

    async def _resolve_details(self, object_ids: list[int]) -> tuple[list[CachedDetail], int]:
        """Details in id order plus the count of items degraded by a failed fetch.

        A degraded item shows as a NotFound marker for this render only; unlike a
        confirmed 404 it is never cached.
        """
        results = await asyncio.gather(
            *(self.lookup_detail(object_id) for object_id in object_ids),
            return_exceptions=True,
        )
        details: list[CachedDetail] = []
        failed = 0
        for object_id, result in zip(object_ids, results):
            if isinstance(result, Exception):
                logger.warning("Detail failed | id=%d | %s", object_id, str(result)[:200])
                details.append(NOT_FOUND)
                failed += 1
            elif isinstance(result, BaseException):
                raise result
            else:
                details.append(result)
        return details, failed

    # ═══════════════ DETAILS ═══════════════

    async def lookup_detail(self, object_id: int) -> CachedDetail:
        """Detail for one object: cache first, then a shared remote fetch.

        Raises QueryValidationError for a non-positive id and FetchError when the
        remote call fails.
        """
        if isinstance(object_id, bool) or not isinstance(object_id, int) or object_id <= 0:
            raise QueryValidationError(f"Invalid object ID: {object_id}. A positive integer is required.")

        cached = await self.detail_cache.get(object_id)
        if cached is not None:
            return cached

        task = self._in_flight.get(object_id)
        if task is None:
            task = asyncio.create_task(self._fetch_detail(object_id))
            self._in_flight[object_id] = task
            task.add_done_callback(lambda _t, oid=object_id: self._in_flight.pop(oid, None))
        return await asyncio.shield(task)

    async def _fetch_detail(self, object_id: int) -> CachedDetail:
        detail = await self.client.fetch_detail(object_id)
        if isinstance(detail, NotFoundMarker):
            await self.detail_cache.mark_not_found(object_id)
        else:
            await self.detail_cache.set(object_id, detail)
        return detail

    # ═══════════════ PREFETCH ═══════════════

    async def prefetch_page(self, page: int) -> None:
        """Warm the page cache for ``page`` of the current query. Never touches visible state."""
        params = self.params
        if params is None or self._closed or page < 1:
            return
        if params.is_cleared or params.object_id_lookup is not None:
            return

        key = params.cache_key(page)
        if await self.list_cache.get(key) is not None:
            return

        try:
            entry, failed = await self._fetch_page(params, page)
        except (FetchError, QueryValidationError) as e:
            logger.warning("Prefetch failed | page=%d | %s", page, str(e)[:200])
            return

        if failed:
            logger.info("Prefetch not cached | page=%d | failed=%d", page, failed)
        elif entry.is_complete:
            await self.list_cache.set(key, entry)

    async def prefetch_detail(self, object_id: int) -> None:
        try:
            await self.lookup_detail(object_id)
        except (FetchError, QueryValidationError) as e:
            logger.warning("Detail prefetch failed | id=%s | %s", object_id, str(e)[:200])

    # ═══════════════ DEPARTMENTS ═══════════════

    async def departments(self) -> list[Department]:
        """Department list for filter menus; empty when the catalog is unreachable."""
        cached = self._departments.get("all")
        if cached is not None:
            return cached
        try:
            departments = await self.client.fetch_departments()
        except FetchError as e:
            logger.warning("Departments unavailable | %s", str(e)[:200])
            return []
        self._departments["all"] = departments
        return departments
