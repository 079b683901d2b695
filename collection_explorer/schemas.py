"""Pydantic models for catalog payloads, cache values and query keys.

Field names are snake_case in Python; aliases keep the remote API's spelling so
records round-trip through the durable caches in the same shape the API returns.
"""

from __future__ import annotations

import json
from typing import Literal, Union

from pydantic import BaseModel, ConfigDict, Field, PositiveInt
from pydantic.alias_generators import to_camel

_CAMEL = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


# ═══════════════ CATALOG RECORDS ═══════════════

class Constituent(BaseModel):
    """Artist or maker associated with an object."""
    model_config = _CAMEL

    constituent_id: int = Field(alias="constituentID")
    role: str
    name: str
    constituent_ulan_url: str | None = Field(default=None, alias="constituentULAN_URL")
    constituent_wikidata_url: str | None = Field(default=None, alias="constituentWikidata_URL")
    gender: str | None = None


class MeasurementElement(BaseModel):
    model_config = _CAMEL

    element_name: str
    element_description: str | None = None
    element_measurements: dict[str, float] = Field(default_factory=dict)


class Tag(BaseModel):
    model_config = _CAMEL

    term: str
    aat_url: str | None = Field(default=None, alias="AAT_URL")
    wikidata_url: str | None = Field(default=None, alias="Wikidata_URL")


class Department(BaseModel):
    model_config = _CAMEL

    department_id: int
    display_name: str


class ObjectRecord(BaseModel):
    """A validated catalog object. Most fields are optional on the remote side."""
    model_config = _CAMEL

    object_id: int = Field(alias="objectID")
    object_name: str
    title: str
    is_highlight: bool | None = None
    accession_number: str | None = None
    accession_year: str | None = None
    is_public_domain: bool | None = None
    primary_image: str | None = None
    primary_image_small: str | None = None
    additional_images: list[str] | None = None
    constituents: list[Constituent] | None = None
    department: str | None = None
    culture: str | None = None
    period: str | None = None
    dynasty: str | None = None
    reign: str | None = None
    portfolio: str | None = None
    artist_role: str | None = None
    artist_prefix: str | None = None
    artist_display_name: str | None = None
    artist_display_bio: str | None = None
    artist_suffix: str | None = None
    artist_alpha_sort: str | None = None
    artist_nationality: str | None = None
    artist_begin_date: str | None = None
    artist_end_date: str | None = None
    artist_gender: str | None = None
    artist_wikidata_url: str | None = Field(default=None, alias="artistWikidata_URL")
    artist_ulan_url: str | None = Field(default=None, alias="artistULAN_URL")
    object_date: str | None = None
    object_begin_date: int | None = None
    object_end_date: int | None = None
    medium: str | None = None
    dimensions: str | None = None
    measurements: list[MeasurementElement] | None = None
    credit_line: str | None = None
    geography_type: str | None = None
    city: str | None = None
    state: str | None = None
    county: str | None = None
    country: str | None = None
    region: str | None = None
    subregion: str | None = None
    locale: str | None = None
    locus: str | None = None
    excavation: str | None = None
    river: str | None = None
    classification: str | None = None
    rights_and_reproduction: str | None = None
    link_resource: str | None = None
    metadata_date: str | None = None
    repository: str | None = None
    object_url: str | None = Field(default=None, alias="objectURL")
    object_wikidata_url: str | None = Field(default=None, alias="objectWikidata_URL")
    tags: list[Tag] | None = None
    is_timeline_work: bool = False
    gallery_number: str | None = Field(default=None, alias="GalleryNumber")

    @property
    def is_on_display(self) -> bool:
        """True when the object has a real gallery location."""
        number = (self.gallery_number or "").strip()
        return bool(number) and number != "0"


class NotFoundMarker(BaseModel):
    """Confirmed-absent object. Distinct from "never looked up"."""
    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    not_found: Literal[True] = Field(default=True, alias="notFound")


NOT_FOUND = NotFoundMarker()

CachedDetail = Union[ObjectRecord, NotFoundMarker]


# ═══════════════ REMOTE LIST RESPONSES ═══════════════

class SearchResult(BaseModel):
    """Id list returned by the listing and search endpoints."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    total: int = Field(ge=0)
    object_ids: list[PositiveInt] | None = Field(default=None, alias="objectIDs")


class DepartmentsResponse(BaseModel):
    departments: list[Department]


class SearchParams(BaseModel):
    """Parameters for the remote search endpoint. ``q`` is required."""

    q: str
    department_id: int | None = None
    has_images: bool | None = None
    is_highlight: bool | None = None
    is_on_view: bool | None = None
    is_public_domain: bool | None = None
    artist_or_culture: bool | None = None
    medium: str | list[str] | None = None
    geo_location: str | None = None
    date_begin: int | None = None
    date_end: int | None = None


# ═══════════════ CACHE VALUES AND KEYS ═══════════════

class ObjectListEntry(BaseModel):
    """One cached result page: resolved details plus the remote total."""
    model_config = ConfigDict(populate_by_name=True)

    details: list[CachedDetail] = Field(default_factory=list, alias="objectDetails")
    total: int = Field(default=0, ge=0, alias="totalObjects")

    @property
    def is_complete(self) -> bool:
        """Full hit: has details, or the remote confirmed there is nothing."""
        return bool(self.details) or self.total == 0


class QueryKey(BaseModel):
    """Parameters that identify one cached result page."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    page: int = Field(ge=1)
    department_id: int | None = None
    q: str | None = None
    has_images: bool | None = None
    search_by: str | None = None
    is_highlight: bool | None = None
    open_access: bool | None = None

    def serialize(self) -> str:
        """Canonical string: unset fields dropped, keys sorted."""
        data = self.model_dump(by_alias=True, exclude_none=True)
        return json.dumps(data, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
