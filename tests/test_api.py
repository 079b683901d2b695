"""End-to-end API tests — the FastAPI app over a mocked catalog client."""

import pytest
from httpx import ASGITransport, AsyncClient

from collection_explorer.errors import TransportError
from collection_explorer.main import app
from collection_explorer.schemas import NOT_FOUND, Department, QueryKey, SearchResult
from conftest import make_record


@pytest.fixture
async def client(orchestrator, storage):
    app.state.orchestrator = orchestrator
    app.state.storage = storage
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


class TestHealthEndpoint:
    @pytest.mark.asyncio
    async def test_health(self, client):
        resp = await client.get("/health")
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "ok"
        assert data["storage_backend"] == "memory"


class TestObjectsEndpoint:
    @pytest.mark.asyncio
    async def test_search_page(self, client, mock_client, list_cache):
        mock_client.search.return_value = SearchResult(total=60, object_ids=list(range(1, 61)))
        mock_client.fetch_detail.side_effect = make_record

        resp = await client.get("/api/objects", params={"q": "vase", "page": 1})

        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "ready"
        assert data["total"] == 60
        assert len(data["objects"]) == 25
        assert data["objects"][0]["objectID"] == 1
        assert data["cache_key"] == '{"page":1,"q":"vase"}'

        # Next page is warmed by the background task
        next_page = await list_cache.get(QueryKey(page=2, q="vase"))
        assert [d.object_id for d in next_page.details] == list(range(26, 51))

    @pytest.mark.asyncio
    async def test_query_aliases(self, client, mock_client):
        mock_client.search.return_value = SearchResult(total=0, object_ids=None)

        resp = await client.get("/api/objects", params={
            "q": "armor", "departmentId": 4, "isHighlight": "true", "openAccess": "false",
        })

        assert resp.json()["status"] == "empty"
        search = mock_client.search.await_args.args[0]
        assert search.department_id == 4
        assert search.is_highlight is True
        assert search.is_public_domain is False

    @pytest.mark.asyncio
    async def test_cleared_query(self, client, mock_client):
        resp = await client.get("/api/objects", params={"q": ""})
        assert resp.json()["status"] == "empty"
        mock_client.search.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_object_id_not_found(self, client, mock_client):
        mock_client.fetch_detail.return_value = NOT_FOUND
        resp = await client.get("/api/objects", params={"q": "9999", "searchBy": "objectId"})
        data = resp.json()
        assert data["status"] == "not_found"
        assert data["not_found"] is True
        assert data["objects"] == []

    @pytest.mark.asyncio
    async def test_remote_failure_reported_in_snapshot(self, client, mock_client):
        mock_client.search.side_effect = TransportError("Network or fetch error: refused")
        resp = await client.get("/api/objects", params={"q": "vase"})
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "error"
        assert "refused" in data["error"]

    @pytest.mark.asyncio
    async def test_page_must_be_positive(self, client):
        resp = await client.get("/api/objects", params={"q": "vase", "page": 0})
        assert resp.status_code == 422

    @pytest.mark.asyncio
    async def test_prefetch_accepted(self, client, mock_client, list_cache):
        mock_client.search.return_value = SearchResult(total=60, object_ids=list(range(1, 61)))
        mock_client.fetch_detail.side_effect = make_record
        await client.get("/api/objects", params={"q": "vase"})

        resp = await client.post("/api/objects/prefetch", params={"page": 3})

        assert resp.status_code == 202
        assert resp.json() == {"accepted": True, "page": 3}
        page_three = await list_cache.get(QueryKey(page=3, q="vase"))
        assert [d.object_id for d in page_three.details] == list(range(51, 61))


class TestObjectDetailEndpoint:
    @pytest.mark.asyncio
    async def test_found(self, client, mock_client):
        mock_client.fetch_detail.side_effect = make_record
        resp = await client.get("/api/objects/45734")
        assert resp.status_code == 200
        data = resp.json()
        assert data["objectID"] == 45734
        assert data["GalleryNumber"] == "171"

    @pytest.mark.asyncio
    async def test_not_found(self, client, mock_client):
        mock_client.fetch_detail.return_value = NOT_FOUND
        resp = await client.get("/api/objects/9999")
        assert resp.status_code == 404
        assert "9999" in resp.json()["error"]

    @pytest.mark.asyncio
    async def test_invalid_id(self, client, mock_client):
        resp = await client.get("/api/objects/0")
        assert resp.status_code == 422
        mock_client.fetch_detail.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_remote_failure(self, client, mock_client):
        mock_client.fetch_detail.side_effect = TransportError("Request timed out")
        resp = await client.get("/api/objects/12")
        assert resp.status_code == 502
        assert "unavailable" in resp.json()["error"]

    @pytest.mark.asyncio
    async def test_prefetch(self, client, mock_client, detail_cache):
        mock_client.fetch_detail.side_effect = make_record
        resp = await client.post("/api/objects/77/prefetch")
        assert resp.status_code == 202
        assert (await detail_cache.get(77)).object_id == 77


class TestDepartmentsEndpoint:
    @pytest.mark.asyncio
    async def test_departments(self, client, mock_client):
        mock_client.fetch_departments.return_value = [
            Department(department_id=11, display_name="European Paintings"),
        ]
        resp = await client.get("/api/departments")
        assert resp.status_code == 200
        assert resp.json() == {"departments": [{"departmentId": 11, "displayName": "European Paintings"}]}

    @pytest.mark.asyncio
    async def test_departments_unavailable(self, client, mock_client):
        mock_client.fetch_departments.side_effect = TransportError("offline")
        resp = await client.get("/api/departments")
        assert resp.json() == {"departments": []}
