"""Collection Explorer — FastAPI application entry point.

A local browsing session over The Met Collection API. One orchestrator per
process; the result caches persist through the configured storage backend.
"""

import logging
import time
from contextlib import asynccontextmanager

from fastapi import BackgroundTasks, FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from collection_explorer.cache import ObjectDetailCache, ObjectListCache, open_storage_backend
from collection_explorer.config import settings
from collection_explorer.errors import FetchError, QueryValidationError
from collection_explorer.integrations.met_collection import MetCollectionClient
from collection_explorer.orchestrator.query_orchestrator import QueryOrchestrator
from collection_explorer.orchestrator.schemas import QueryParams, QueryStatus
from collection_explorer.schemas import NotFoundMarker

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
)
logger = logging.getLogger("collection_explorer")


# ═══════════════ LIFESPAN ═══════════════

@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Collection Explorer starting | storage=%s", settings.storage_backend)

    storage = await open_storage_backend(settings)
    list_cache = ObjectListCache(storage)
    detail_cache = ObjectDetailCache(storage)
    app.state.storage = storage
    app.state.orchestrator = QueryOrchestrator(MetCollectionClient(), list_cache, detail_cache)

    yield

    app.state.orchestrator.close()
    await list_cache.drain()
    await detail_cache.drain()
    await storage.close()
    logger.info("Collection Explorer shutting down")


# ═══════════════ APP ═══════════════

app = FastAPI(
    title="Collection Explorer API",
    description="Cached browsing and search over The Met Collection API",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type"],
)


def _orchestrator(request: Request) -> QueryOrchestrator:
    return request.app.state.orchestrator


@app.exception_handler(QueryValidationError)
async def _validation_error(request: Request, exc: QueryValidationError):
    return JSONResponse(status_code=422, content={"error": str(exc)})


@app.exception_handler(FetchError)
async def _fetch_error(request: Request, exc: FetchError):
    logger.error("Catalog fetch failed | path=%s | %s", request.url.path, str(exc)[:300])
    return JSONResponse(status_code=502, content={"error": "The collection catalog is unavailable. Please try again later."})


# ═══════════════ ENDPOINTS ═══════════════

@app.get("/health")
async def health(request: Request):
    storage = getattr(request.app.state, "storage", None)
    return {
        "status": "ok",
        "storage_backend": storage.name if storage else settings.storage_backend,
    }


@app.get("/api/objects")
async def list_objects(
    request: Request,
    background_tasks: BackgroundTasks,
    page: int = Query(1, ge=1),
    department_id: int | None = Query(None, alias="departmentId"),
    q: str | None = Query(None),
    has_images: bool | None = Query(None, alias="hasImages"),
    search_by: str | None = Query(None, alias="searchBy"),
    is_highlight: bool | None = Query(None, alias="isHighlight"),
    open_access: bool | None = Query(None, alias="openAccess"),
    is_on_view: bool | None = Query(None, alias="isOnView"),
):
    """Result page for the given query; the following page is prefetched in the background."""
    orchestrator = _orchestrator(request)
    params = QueryParams(
        page=page,
        department_id=department_id,
        q=q,
        has_images=has_images,
        search_by=search_by,
        is_highlight=is_highlight,
        open_access=open_access,
        is_on_view=is_on_view,
    )

    start = time.monotonic()
    snapshot = await orchestrator.update(params)
    elapsed_ms = int((time.monotonic() - start) * 1000)
    logger.info(
        "Objects | status=%s | total=%d | shown=%d | %dms",
        snapshot.status.value, snapshot.total, len(snapshot.objects), elapsed_ms,
    )

    if snapshot.status == QueryStatus.READY and page * orchestrator.page_size < snapshot.total:
        background_tasks.add_task(orchestrator.prefetch_page, page + 1)

    return JSONResponse(content=snapshot.model_dump(mode="json", by_alias=True))


@app.post("/api/objects/prefetch", status_code=202)
async def prefetch_page(request: Request, background_tasks: BackgroundTasks, page: int = Query(..., ge=1)):
    background_tasks.add_task(_orchestrator(request).prefetch_page, page)
    return {"accepted": True, "page": page}


@app.get("/api/objects/{object_id}")
async def object_detail(request: Request, object_id: int):
    detail = await _orchestrator(request).lookup_detail(object_id)
    if isinstance(detail, NotFoundMarker):
        return JSONResponse(status_code=404, content={"error": f"Object {object_id} was not found."})
    return JSONResponse(content=detail.model_dump(mode="json", by_alias=True))


@app.post("/api/objects/{object_id}/prefetch", status_code=202)
async def prefetch_detail(request: Request, background_tasks: BackgroundTasks, object_id: int):
    background_tasks.add_task(_orchestrator(request).prefetch_detail, object_id)
    return {"accepted": True, "objectId": object_id}


@app.get("/api/departments")
async def departments(request: Request):
    items = await _orchestrator(request).departments()
    return {"departments": [d.model_dump(by_alias=True) for d in items]}
