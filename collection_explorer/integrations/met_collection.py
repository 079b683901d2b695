"""The Met Collection API integration.

Docs: https://metmuseum.github.io/
Endpoints: /objects, /objects/{id}, /search, /departments

Every response is decoded into a typed model; nothing here caches.
"""

import json
import logging
import time
from typing import Any

import httpx

from collection_explorer.config import settings
from collection_explorer.errors import (
    CatalogApiError,
    QueryValidationError,
    ResponseShapeError,
    TransportError,
)
from collection_explorer.integrations.decoders import Err, decode
from collection_explorer.schemas import (
    NOT_FOUND,
    CachedDetail,
    Department,
    DepartmentsResponse,
    ObjectRecord,
    SearchParams,
    SearchResult,
)

logger = logging.getLogger(__name__)

ERROR_BODY_LIMIT = 500

EMPTY_RESULT = SearchResult(total=0, object_ids=None)


class MetCollectionClient:
    """Async client for The Met Collection API."""

    def __init__(
        self,
        base_url: str | None = None,
        timeout: int | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.base_url = (base_url or settings.met_api_base_url).rstrip("/")
        self.timeout = timeout or settings.http_timeout_seconds
        self._http = http_client

    async def fetch_ids(
        self,
        department_id: int | None = None,
        metadata_date: str | None = None,
    ) -> SearchResult:
        """List object ids, optionally for a single department."""
        params: dict[str, str] = {}
        if department_id is not None and department_id > 0:
            params["departmentIds"] = str(department_id)
        if metadata_date:
            params["metadataDate"] = metadata_date

        payload = await self._get_json("/objects", params)
        if payload is NOT_FOUND or payload is None:
            return EMPTY_RESULT
        return self._decode(SearchResult, payload, "/objects")

    async def fetch_detail(self, object_id: int) -> CachedDetail:
        """Fetch one object. Returns ``NOT_FOUND`` when the API answers 404."""
        if isinstance(object_id, bool) or not isinstance(object_id, int) or object_id <= 0:
            raise QueryValidationError(
                f"Invalid object ID: {object_id}. A positive integer is required."
            )

        path = f"/objects/{object_id}"
        payload = await self._get_json(path)
        if payload is NOT_FOUND:
            return NOT_FOUND
        if payload is None:
            raise ResponseShapeError(f"Empty response body for object {object_id}")
        return self._decode(ObjectRecord, payload, path)

    async def search(self, params: SearchParams) -> SearchResult:
        """Search objects. ``params.q`` must be non-empty after trimming."""
        query = (params.q or "").strip()
        if not query:
            raise QueryValidationError("Search query parameter 'q' is required and cannot be empty.")

        payload = await self._get_json("/search", self._build_search_params(params))
        if payload is NOT_FOUND or payload is None:
            return EMPTY_RESULT
        return self._decode(SearchResult, payload, "/search")

    async def fetch_departments(self) -> list[Department]:
        payload = await self._get_json("/departments")
        if payload is NOT_FOUND or payload is None:
            return []
        return self._decode(DepartmentsResponse, payload, "/departments").departments

    def _build_search_params(self, params: SearchParams) -> dict[str, str]:
        query: dict[str, str] = {"q": params.q.strip()}

        if params.department_id is not None and params.department_id > 0:
            query["departmentId"] = str(params.department_id)

        # Flags are only sent when explicitly set
        flags = {
            "isHighlight": params.is_highlight,
            "isOnView": params.is_on_view,
            "isPublicDomain": params.is_public_domain,
            "artistOrCulture": params.artist_or_culture,
        }
        for name, value in flags.items():
            if value is not None:
                query[name] = _bool_param(value)

        if params.medium:
            medium = "|".join(params.medium) if isinstance(params.medium, list) else params.medium
            if medium.strip():
                query["medium"] = medium

        # Unset means "only objects with images"
        has_images = True if params.has_images is None else params.has_images
        query["hasImages"] = _bool_param(has_images)

        if params.geo_location and params.geo_location.strip():
            query["geoLocation"] = params.geo_location
        if params.date_begin is not None:
            query["dateBegin"] = str(params.date_begin)
        if params.date_end is not None:
            query["dateEnd"] = str(params.date_end)

        return query

    def _decode(self, target: type, payload: Any, path: str):
        result = decode(target, payload)
        if isinstance(result, Err):
            logger.error("Met API invalid payload | path=%s | %s", path, result.error)
            raise ResponseShapeError(f"Unexpected response shape from {path}: {result.error}")
        return result.value

    async def _get_json(self, path: str, params: dict[str, str] | None = None) -> Any:
        """GET ``path`` and return parsed JSON, ``None`` for an empty body or ``NOT_FOUND``."""
        url = f"{self.base_url}{path}"
        start = time.monotonic()
        try:
            if self._http is not None:
                response = await self._http.get(url, params=params, timeout=self.timeout)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.get(url, params=params)
        except httpx.TimeoutException as e:
            elapsed_ms = int((time.monotonic() - start) * 1000)
            logger.warning("Met API timeout | path=%s | %dms", path, elapsed_ms)
            raise TransportError(f"Request to {path} timed out") from e
        except httpx.HTTPError as e:
            elapsed_ms = int((time.monotonic() - start) * 1000)
            logger.error("Met API error | path=%s | %dms | %s", path, elapsed_ms, str(e)[:200])
            raise TransportError(f"Network or fetch error: {e}") from e

        elapsed_ms = int((time.monotonic() - start) * 1000)

        if response.status_code == 404:
            logger.info("Met API not found | path=%s | %dms", path, elapsed_ms)
            return NOT_FOUND

        if not response.is_success:
            logger.warning("Met API | status=%d | %dms | path=%s", response.status_code, elapsed_ms, path)
            raise _api_error(response)

        if response.status_code == 204 or not response.content:
            return None

        try:
            data = response.json()
        except json.JSONDecodeError as e:
            logger.warning("Met API unparsable JSON | path=%s | status=%d", path, response.status_code)
            raise ResponseShapeError(f"Response from {path} is not valid JSON") from e

        logger.info("Met API OK | path=%s | %dms", path, elapsed_ms)
        return data


def _api_error(response: httpx.Response) -> CatalogApiError:
    """Build a CatalogApiError, preferring a structured ``message`` from the body."""
    body = response.text or "No error body received"
    message = ""
    try:
        parsed = json.loads(body)
        if isinstance(parsed, dict):
            message = str(parsed.get("message") or "")
    except json.JSONDecodeError:
        pass
    if not message:
        message = (
            f"API Error {response.status_code}: {response.reason_phrase}. "
            f"Response: {body[:ERROR_BODY_LIMIT]}"
        )
    return CatalogApiError(message, status=response.status_code, response_body=body[:ERROR_BODY_LIMIT])


def _bool_param(value: bool) -> str:
    return "true" if value else "false"
