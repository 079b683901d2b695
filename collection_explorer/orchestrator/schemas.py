"""Pydantic models for orchestrator input and the UI-facing snapshot."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field

from collection_explorer.schemas import ObjectRecord, QueryKey, SearchParams

OBJECT_ID_SEARCH = "objectId"
SEARCH_ALL = "all"


class QueryStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    EMPTY = "empty"
    NOT_FOUND = "not_found"
    ERROR = "error"


class QueryParams(BaseModel):
    """Current UI state: page, text query and filters.

    ``q=None`` means "not searched yet"; ``q=""`` means the user cleared the box;
    whitespace-only ``q`` is ignored.
    ``is_on_view`` is a display filter only and never reaches the remote API.
    """

    page: int = Field(default=1, ge=1)
    department_id: int | None = None
    q: str | None = None
    has_images: bool | None = None
    search_by: str | None = None
    is_highlight: bool | None = None
    open_access: bool | None = None
    is_on_view: bool | None = None

    @property
    def is_cleared(self) -> bool:
        return self.q == ""

    @property
    def is_blank(self) -> bool:
        """Whitespace-only text: not a new query, the current results stay."""
        return bool(self.q) and not self.q.strip()

    @property
    def object_id_lookup(self) -> int | None:
        """Object id when this is a direct "search by object id" query."""
        if self.search_by != OBJECT_ID_SEARCH or self.q is None:
            return None
        text = self.q.strip()
        if text.isascii() and text.isdigit():
            return int(text)
        return None

    def cache_key(self, page: int | None = None) -> QueryKey:
        return QueryKey(
            page=page or self.page,
            department_id=self.department_id if self.department_id and self.department_id > 0 else None,
            q=self.q,
            has_images=self.has_images,
            search_by=self.search_by if self.search_by and self.search_by != SEARCH_ALL else None,
            is_highlight=self.is_highlight,
            open_access=self.open_access,
        )

    def search_params(self) -> SearchParams | None:
        """Remote search parameters, or None when a plain id listing is enough."""
        text = (self.q or "").strip()
        flags = (self.has_images, self.is_highlight, self.open_access)
        if not text and all(flag is None for flag in flags):
            return None
        return SearchParams(
            q=text or "*",
            department_id=self.department_id,
            has_images=self.has_images,
            is_highlight=self.is_highlight,
            is_public_domain=self.open_access,
        )


class QuerySnapshot(BaseModel):
    """What the UI layer renders for the current query."""

    status: QueryStatus = QueryStatus.IDLE
    page: int = 1
    total: int = 0
    objects: list[ObjectRecord] = Field(default_factory=list)
    is_loading: bool = False
    not_found: bool = False
    error: str | None = None
    cache_key: str | None = None
