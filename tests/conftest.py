"""Shared test fixtures and configuration."""

import os
from unittest.mock import AsyncMock

import pytest

# Tests never touch the real storage directory
os.environ.setdefault("STORAGE_BACKEND", "memory")

from collection_explorer.cache import ObjectDetailCache, ObjectListCache  # noqa: E402
from collection_explorer.cache.storage import MemoryStorageBackend  # noqa: E402
from collection_explorer.integrations.met_collection import MetCollectionClient  # noqa: E402
from collection_explorer.orchestrator.query_orchestrator import QueryOrchestrator  # noqa: E402
from collection_explorer.schemas import ObjectRecord  # noqa: E402


def make_object_payload(object_id: int, **overrides) -> dict:
    """Met API style object payload."""
    payload = {
        "objectID": object_id,
        "objectName": "Vase",
        "title": f"Vase no. {object_id}",
        "isHighlight": False,
        "accessionNumber": f"41.162.{object_id}",
        "isPublicDomain": True,
        "primaryImage": f"https://images.metmuseum.org/CRDImages/gr/original/{object_id}.jpg",
        "primaryImageSmall": f"https://images.metmuseum.org/CRDImages/gr/web-large/{object_id}.jpg",
        "additionalImages": [],
        "constituents": None,
        "department": "Greek and Roman Art",
        "culture": "Greek, Attic",
        "artistDisplayName": "",
        "objectDate": "ca. 530 B.C.",
        "objectBeginDate": -540,
        "objectEndDate": -520,
        "medium": "Terracotta",
        "classification": "Vases",
        "objectURL": f"https://www.metmuseum.org/art/collection/search/{object_id}",
        "tags": [{"term": "Vases", "AAT_URL": "http://vocab.getty.edu/page/aat/300132254", "Wikidata_URL": None}],
        "metadataDate": "2024-05-01T04:52:38.853Z",
        "GalleryNumber": "171",
        "isTimelineWork": True,
        "someFieldTheApiAddedLater": "ignored",
    }
    payload.update(overrides)
    return payload


def make_record(object_id: int, **overrides) -> ObjectRecord:
    return ObjectRecord.model_validate(make_object_payload(object_id, **overrides))


class FakeClock:
    """Controllable epoch-millis clock."""

    def __init__(self, now: int = 1_700_000_000_000):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


@pytest.fixture
def sample_object():
    return make_object_payload(45734)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def storage():
    return MemoryStorageBackend()


@pytest.fixture
def list_cache(storage):
    return ObjectListCache(storage)


@pytest.fixture
def detail_cache(storage):
    return ObjectDetailCache(storage)


@pytest.fixture
def mock_client():
    """Catalog client double; every remote method is an AsyncMock."""
    return AsyncMock(spec=MetCollectionClient)


@pytest.fixture
def orchestrator(mock_client, list_cache, detail_cache):
    return QueryOrchestrator(mock_client, list_cache, detail_cache, page_size=25)
