"""
Unit tests for the REST store implementation.

Requests are served by httpx.MockTransport, so no cluster is needed.

Tests cover:
- Connection handling and transport failures
- Request shapes (paths, id folding, refresh, category scoping)
- Response parsing and error translation
"""

import json

import httpx
import pytest
import pytest_asyncio

from docstore_sdk.errors import NotFoundError, StoreConnectionError, StoreError
from docstore_sdk.store.base import StoreAdapter
from docstore_sdk.store.http import CATEGORY_FIELD, DEFAULT_MAPPINGS, HttpStore


class FakeCluster:
    """Records requests and replays canned responses."""

    def __init__(self):
        self.requests = []
        self.routes = {("GET", "/"): (200, {"version": {"number": "7.17.0"}})}

    def route(self, method, path, status=200, body=None):
        self.routes[(method, path)] = (status, body)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        status, body = self.routes.get((request.method, request.url.path), (200, {}))
        if body is None:
            return httpx.Response(status)
        return httpx.Response(status, json=body)

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]

    def last_json(self):
        return json.loads(self.last.content)


@pytest.fixture
def cluster():
    """Fake cluster with a root endpoint."""
    return FakeCluster()


@pytest_asyncio.fixture
async def store(cluster):
    """Connected store talking to the fake cluster."""
    store = HttpStore("http://es:9200/", transport=httpx.MockTransport(cluster))
    await store.connect()
    yield store
    await store.close()


class TestConnection:
    """Tests for connect/close."""

    def test_implements_protocol(self):
        """HttpStore satisfies StoreAdapter."""
        assert isinstance(HttpStore("http://es:9200"), StoreAdapter)

    @pytest.mark.asyncio
    async def test_connect_checks_root(self, store, cluster):
        """connect() pings the cluster root."""
        assert store.is_connected
        assert store.url == "http://es:9200"
        assert cluster.requests[0].url.path == "/"

    @pytest.mark.asyncio
    async def test_connect_failure(self, cluster):
        """Unreachable clusters raise StoreConnectionError."""
        cluster.route("GET", "/", status=503)
        store = HttpStore("http://es:9200", transport=httpx.MockTransport(cluster))

        with pytest.raises(StoreConnectionError) as exc_info:
            await store.connect()

        assert exc_info.value.address == "http://es:9200"
        assert not store.is_connected

    @pytest.mark.asyncio
    async def test_transport_error(self, store):
        """Transport failures surface as StoreConnectionError."""
        def broken(request):
            raise httpx.ConnectError("refused", request=request)

        await store.close()
        store._transport = httpx.MockTransport(broken)

        with pytest.raises(StoreConnectionError):
            await store.connect()

    @pytest.mark.asyncio
    async def test_requires_connection(self):
        """Operations before connect() fail."""
        with pytest.raises(StoreConnectionError):
            await HttpStore("http://es:9200").count("app", "user")

    @pytest.mark.asyncio
    async def test_close(self, store):
        """close() is idempotent."""
        await store.close()
        await store.close()
        assert not store.is_connected


class TestCollections:
    """Tests for collection-level requests."""

    @pytest.mark.asyncio
    async def test_record_exists(self, store, cluster):
        """HEAD on the index; 404 means absent."""
        cluster.route("HEAD", "/app", status=404)
        assert not await store.record_exists("App")

        cluster.route("HEAD", "/app", status=200)
        assert await store.record_exists("App")
        assert cluster.last.method == "HEAD"

    @pytest.mark.asyncio
    async def test_create_collection(self, store, cluster):
        """Collections are created with keyword mappings by default."""
        await store.create_collection("App")

        assert cluster.last.method == "PUT"
        assert cluster.last.url.path == "/app"
        assert cluster.last_json() == {"settings": {}, "mappings": DEFAULT_MAPPINGS}

    @pytest.mark.asyncio
    async def test_create_collection_options(self, store, cluster):
        """Explicit settings and mappings are passed through."""
        await store.create_collection("app", {"settings": {"number_of_shards": 1}, "mappings": {}})

        assert cluster.last_json() == {"settings": {"number_of_shards": 1}, "mappings": {}}

    @pytest.mark.asyncio
    async def test_refresh(self, store, cluster):
        """refresh_collection posts to _refresh."""
        await store.refresh_collection("app")
        assert (cluster.last.method, cluster.last.url.path) == ("POST", "/app/_refresh")


class TestRecords:
    """Tests for record-level requests."""

    @pytest.mark.asyncio
    async def test_index_record(self, store, cluster):
        """Ids are folded with the category, which is also stored."""
        record_id = await store.index_record("app", "user", "u1", {"name": "John"}, immediate=True)

        assert record_id == "u1"
        assert cluster.last.method == "PUT"
        assert cluster.last.url.path == "/app/_doc/user:u1"
        assert cluster.last.url.params["refresh"] == "true"
        assert cluster.last_json() == {"name": "John", CATEGORY_FIELD: "user"}

    @pytest.mark.asyncio
    async def test_index_record_assigns_id(self, store, cluster):
        """Missing ids are generated client-side."""
        record_id = await store.index_record("app", "user", None, {})

        assert len(record_id) == 32
        assert cluster.last.url.path == f"/app/_doc/user:{record_id}"
        assert cluster.last.url.params["refresh"] == "false"

    @pytest.mark.asyncio
    async def test_get_record(self, store, cluster):
        """The category field is stripped from returned sources."""
        cluster.route(
            "GET",
            "/app/_doc/user:u1",
            body={"found": True, "_source": {"name": "John", CATEGORY_FIELD: "user"}},
        )

        record = await store.get_record("app", "user", "u1")

        assert record.id == "u1"
        assert record.source == {"name": "John"}

    @pytest.mark.asyncio
    async def test_get_record_missing(self, store, cluster):
        """404 and found=false both raise NotFoundError."""
        cluster.route("GET", "/app/_doc/user:u1", status=404, body={"found": False})
        with pytest.raises(NotFoundError):
            await store.get_record("app", "user", "u1")

        cluster.route("GET", "/app/_doc/user:u1", body={"found": False})
        with pytest.raises(NotFoundError):
            await store.get_record("app", "user", "u1")

    @pytest.mark.asyncio
    async def test_update_record(self, store, cluster):
        """Partial updates are wrapped in ``doc``."""
        await store.update_record("app", "user", "u1", {"age": 2})

        assert cluster.last.url.path == "/app/_update/user:u1"
        assert cluster.last_json() == {"doc": {"age": 2}}

    @pytest.mark.asyncio
    async def test_update_record_missing(self, store, cluster):
        """Unknown ids raise NotFoundError."""
        cluster.route("POST", "/app/_update/user:u1", status=404, body={})
        with pytest.raises(NotFoundError):
            await store.update_record("app", "user", "u1", {"age": 2})

    @pytest.mark.asyncio
    async def test_delete_record(self, store, cluster):
        """Deletes address the folded id; 404 raises NotFoundError."""
        await store.delete_record("app", "user", "u1", immediate=True)
        assert (cluster.last.method, cluster.last.url.path) == ("DELETE", "/app/_doc/user:u1")

        cluster.route("DELETE", "/app/_doc/user:u1", status=404, body={"result": "not_found"})
        with pytest.raises(NotFoundError):
            await store.delete_record("app", "user", "u1")

    @pytest.mark.asyncio
    async def test_server_error(self, store, cluster):
        """Other HTTP errors raise StoreError with status and body."""
        cluster.route("PUT", "/app/_doc/user:u1", status=400, body={"error": "mapper_parsing"})

        with pytest.raises(StoreError) as exc_info:
            await store.index_record("app", "user", "u1", {"age": "x"})

        assert exc_info.value.status == 400
        assert exc_info.value.body == {"error": "mapper_parsing"}
        assert not isinstance(exc_info.value, NotFoundError)


class TestQueries:
    """Tests for search, count and delete-by-query."""

    @pytest.mark.asyncio
    async def test_search_is_scoped(self, store, cluster):
        """Searches filter on the category and page with from/size."""
        query = {"bool": {"filter": [{"term": {"name": "John"}}]}}
        await store.search("app", "user", query, limit=5, skip=10)

        body = cluster.last_json()
        assert cluster.last.url.path == "/app/_search"
        assert body["from"] == 10
        assert body["size"] == 5
        assert body["query"] == {
            "bool": {"filter": [{"term": {CATEGORY_FIELD: "user"}}, query]}
        }

    @pytest.mark.asyncio
    async def test_search_splits_list_terms(self, store, cluster):
        """List-valued terms become one term per element."""
        await store.search("app", "user", {"term": {"tags": ["a", "b"]}})

        scoped = cluster.last_json()["query"]["bool"]["filter"][1]
        assert scoped == {"bool": {"filter": [{"term": {"tags": "a"}}, {"term": {"tags": "b"}}]}}

    @pytest.mark.asyncio
    async def test_ids_use_document_ids(self, store, cluster):
        """ids values are prefixed with the category, as document ids are."""
        query = {"bool": {"filter": [{"ids": {"values": ["u1", "u2"]}}]}}

        await store.search("app", "user", query)
        searched = cluster.last_json()["query"]["bool"]["filter"][1]
        await store.delete_by_query("app", "user", {"ids": {"values": ["u1"]}})
        deleted = cluster.last_json()["query"]["bool"]["filter"][1]

        assert searched == {"bool": {"filter": [{"ids": {"values": ["user:u1", "user:u2"]}}]}}
        assert deleted == {"ids": {"values": ["user:u1"]}}

    @pytest.mark.asyncio
    async def test_search_parses_hits(self, store, cluster):
        """Hits are unfolded and totals read from either shape."""
        cluster.route(
            "POST",
            "/app/_search",
            body={
                "hits": {
                    "total": {"value": 7, "relation": "eq"},
                    "hits": [
                        {"_id": "user:u1", "_source": {"name": "John", CATEGORY_FIELD: "user"}},
                        {"_id": "user:u2", "_source": {"name": "Jane", CATEGORY_FIELD: "user"}},
                    ],
                }
            },
        )

        result = await store.search("app", "user", {"match_all": {}})

        assert [r.id for r in result.hits] == ["u1", "u2"]
        assert result.hits[0].source == {"name": "John"}
        assert result.total == 7

        cluster.route("POST", "/app/_search", body={"hits": {"total": 3, "hits": []}})
        assert (await store.search("app", "user", {"match_all": {}})).total == 3

    @pytest.mark.asyncio
    async def test_search_missing_index(self, store, cluster):
        """A missing index yields an empty result."""
        cluster.route("POST", "/app/_search", status=404, body={})

        result = await store.search("app", "user", {"match_all": {}})

        assert result.hits == []
        assert result.total == 0

    @pytest.mark.asyncio
    async def test_count(self, store, cluster):
        """count() reads the count field."""
        cluster.route("POST", "/app/_count", body={"count": 4})

        assert await store.count("app", "user") == 4
        assert cluster.last_json() == {"query": {"term": {CATEGORY_FIELD: "user"}}}

    @pytest.mark.asyncio
    async def test_delete_by_query(self, store, cluster):
        """delete_by_query returns the deleted count."""
        cluster.route("POST", "/app/_delete_by_query", body={"deleted": 2})

        deleted = await store.delete_by_query("app", "user", {"match_all": {}})

        assert deleted == 2
        assert cluster.last.url.params["refresh"] == "true"

    @pytest.mark.asyncio
    async def test_delete_mapping(self, store, cluster):
        """Dropping a category deletes its records; missing index raises."""
        await store.delete_mapping("app", "user")
        assert cluster.last_json() == {"query": {"term": {CATEGORY_FIELD: "user"}}}

        cluster.route("POST", "/app/_delete_by_query", status=404, body={})
        with pytest.raises(NotFoundError):
            await store.delete_mapping("app", "user")
