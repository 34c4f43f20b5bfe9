"""
Elasticsearch-compatible REST store implementation.

This module implements StoreAdapter over ``httpx.AsyncClient``. It speaks
the typeless document API (``/_doc``, ``/_update``, ``/_search``, ...):
- One index per collection
- The category is stored in a ``doc_type`` keyword field and folded into
  the document id as ``<category>:<id>``
- ``immediate=True`` maps to ``refresh=true``

Invariants:
    - Every search/count/delete-by-query is scoped to one category
    - 404 responses surface as NotFoundError, other HTTP errors as StoreError,
      transport failures as StoreConnectionError
    - New collections map strings to ``keyword`` so term filters match
      exact values

How to change safely:
    - Keep the id folding stable; existing indices depend on it
    - Test with httpx.MockTransport
"""

from __future__ import annotations

import uuid
from typing import Any, Dict, Optional
import logging

import httpx

from ..errors import NotFoundError, StoreConnectionError, StoreError
from .base import Record, SearchResult

logger = logging.getLogger(__name__)

CATEGORY_FIELD = "doc_type"

DEFAULT_MAPPINGS: Dict[str, Any] = {
    "dynamic_templates": [
        {
            "strings": {
                "match_mapping_type": "string",
                "mapping": {"type": "keyword"},
            }
        }
    ],
    "properties": {CATEGORY_FIELD: {"type": "keyword"}},
}


def _refresh(immediate: bool) -> Dict[str, str]:
    return {"refresh": "true" if immediate else "false"}


def _translate(query: Dict[str, Any], category: str) -> Dict[str, Any]:
    """Rewrite list-valued term clauses into one term per element.

    ``ids`` values are record ids and are prefixed with the category to match
    the stored document ids.
    """
    if "bool" in query:
        clauses = [_translate(clause, category) for clause in query["bool"].get("filter", [])]
        return {"bool": {**query["bool"], "filter": clauses}}
    if "ids" in query:
        values = [f"{category}:{value}" for value in query["ids"].get("values", [])]
        return {"ids": {"values": values}}
    if "term" in query:
        ((path, value),) = query["term"].items()
        if isinstance(value, list):
            return {"bool": {"filter": [{"term": {path: item}} for item in value]}}
    return query


class HttpStore:
    """REST implementation of StoreAdapter.

    Args:
        url: Base URL of the cluster (e.g. ``http://localhost:9200``)
        timeout: Request timeout in seconds
        transport: Optional httpx transport (tests use httpx.MockTransport)

    Example:
        >>> store = HttpStore("http://localhost:9200")
        >>> await store.connect()
        >>> await store.index_record("app", "user", "u1", {"name": "John"}, immediate=True)
    """

    def __init__(
        self,
        url: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.url = url.rstrip("/")
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def is_connected(self) -> bool:
        return self._client is not None

    async def connect(self) -> None:
        """Open the HTTP client and check the cluster answers.

        Raises:
            StoreConnectionError: If the cluster is unreachable
        """
        if self._client is not None:
            return

        client = httpx.AsyncClient(
            base_url=self.url,
            timeout=self.timeout,
            transport=self._transport,
        )
        try:
            response = await client.get("/")
            response.raise_for_status()
        except httpx.HTTPError as e:
            await client.aclose()
            raise StoreConnectionError(
                f"Failed to connect to {self.url}: {e}", address=self.url
            ) from e

        self._client = client
        logger.info(f"Connected to document store at {self.url}")

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            logger.info(f"Closed connection to {self.url}")

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, str]] = None,
        json: Optional[Dict[str, Any]] = None,
        allow_404: bool = False,
    ) -> httpx.Response:
        if self._client is None:
            raise StoreConnectionError("Not connected", address=self.url)

        try:
            response = await self._client.request(method, path, params=params, json=json)
        except httpx.TransportError as e:
            raise StoreConnectionError(
                f"{method} {path} failed: {e}", address=self.url
            ) from e

        logger.debug(
            f"{method} {path} -> {response.status_code}",
            extra={"method": method, "path": path, "status": response.status_code},
        )

        if response.status_code == 404 and allow_404:
            return response
        if response.status_code >= 400:
            raise StoreError(
                f"{method} {path} failed with status {response.status_code}",
                status=response.status_code,
                body=_body(response),
            )
        return response

    @staticmethod
    def _index(collection: str) -> str:
        return collection.lower()

    @staticmethod
    def _doc_id(category: str, record_id: str) -> str:
        return f"{category}:{record_id}"

    @staticmethod
    def _record_id(category: str, doc_id: str) -> str:
        prefix = f"{category}:"
        return doc_id[len(prefix):] if doc_id.startswith(prefix) else doc_id

    @staticmethod
    def _scoped(category: str, query: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "bool": {
                "filter": [{"term": {CATEGORY_FIELD: category}}, _translate(query, category)],
            }
        }

    async def record_exists(self, collection: str) -> bool:
        response = await self._request("HEAD", f"/{self._index(collection)}", allow_404=True)
        return response.status_code != 404

    async def create_collection(
        self,
        collection: str,
        options: Optional[Dict[str, Any]] = None,
    ) -> None:
        options = options or {}
        body = {
            "settings": options.get("settings", {}),
            "mappings": options.get("mappings", DEFAULT_MAPPINGS),
        }
        await self._request("PUT", f"/{self._index(collection)}", json=body)
        logger.info(f"Created collection '{collection}'")

    async def get_record(self, collection: str, category: str, record_id: str) -> Record:
        response = await self._request(
            "GET",
            f"/{self._index(collection)}/_doc/{self._doc_id(category, record_id)}",
            allow_404=True,
        )
        payload = _json(response)
        if response.status_code == 404 or not payload.get("found", True):
            raise NotFoundError(collection, category, record_id)

        source = dict(payload.get("_source") or {})
        source.pop(CATEGORY_FIELD, None)
        return Record(id=record_id, source=source)

    async def index_record(
        self,
        collection: str,
        category: str,
        record_id: Optional[str],
        body: Dict[str, Any],
        immediate: bool = False,
    ) -> str:
        if record_id is None:
            record_id = uuid.uuid4().hex
        await self._request(
            "PUT",
            f"/{self._index(collection)}/_doc/{self._doc_id(category, record_id)}",
            params=_refresh(immediate),
            json={**body, CATEGORY_FIELD: category},
        )
        return record_id

    async def update_record(
        self,
        collection: str,
        category: str,
        record_id: str,
        partial: Dict[str, Any],
        immediate: bool = False,
    ) -> None:
        response = await self._request(
            "POST",
            f"/{self._index(collection)}/_update/{self._doc_id(category, record_id)}",
            params=_refresh(immediate),
            json={"doc": partial},
            allow_404=True,
        )
        if response.status_code == 404:
            raise NotFoundError(collection, category, record_id)

    async def delete_record(
        self,
        collection: str,
        category: str,
        record_id: str,
        immediate: bool = False,
    ) -> None:
        response = await self._request(
            "DELETE",
            f"/{self._index(collection)}/_doc/{self._doc_id(category, record_id)}",
            params=_refresh(immediate),
            allow_404=True,
        )
        if response.status_code == 404:
            raise NotFoundError(collection, category, record_id)

    async def delete_by_query(
        self,
        collection: str,
        category: str,
        query: Dict[str, Any],
    ) -> int:
        response = await self._request(
            "POST",
            f"/{self._index(collection)}/_delete_by_query",
            params={"refresh": "true"},
            json={"query": self._scoped(category, query)},
            allow_404=True,
        )
        if response.status_code == 404:
            return 0
        return int(_json(response).get("deleted", 0))

    async def search(
        self,
        collection: str,
        category: str,
        query: Dict[str, Any],
        limit: int = 10,
        skip: int = 0,
    ) -> SearchResult:
        response = await self._request(
            "POST",
            f"/{self._index(collection)}/_search",
            json={"query": self._scoped(category, query), "from": skip, "size": limit},
            allow_404=True,
        )
        if response.status_code == 404:
            return SearchResult()

        hits = _json(response).get("hits", {})
        total = hits.get("total", 0)
        if isinstance(total, dict):
            total = total.get("value", 0)

        records = []
        for hit in hits.get("hits", []):
            source = dict(hit.get("_source") or {})
            source.pop(CATEGORY_FIELD, None)
            records.append(Record(id=self._record_id(category, hit["_id"]), source=source))
        return SearchResult(hits=records, total=int(total))

    async def count(self, collection: str, category: str) -> int:
        response = await self._request(
            "POST",
            f"/{self._index(collection)}/_count",
            json={"query": {"term": {CATEGORY_FIELD: category}}},
            allow_404=True,
        )
        if response.status_code == 404:
            return 0
        return int(_json(response).get("count", 0))

    async def refresh_collection(self, collection: str) -> None:
        await self._request("POST", f"/{self._index(collection)}/_refresh")

    async def delete_mapping(self, collection: str, category: str) -> None:
        """Delete every record of the category.

        Typeless indices have no per-category mapping to drop.

        Raises:
            NotFoundError: If the collection does not exist
        """
        response = await self._request(
            "POST",
            f"/{self._index(collection)}/_delete_by_query",
            params={"refresh": "true"},
            json={"query": {"term": {CATEGORY_FIELD: category}}},
            allow_404=True,
        )
        if response.status_code == 404:
            raise NotFoundError(collection, category, None)


def _body(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


def _json(response: httpx.Response) -> Dict[str, Any]:
    body = _body(response)
    return body if isinstance(body, dict) else {}
