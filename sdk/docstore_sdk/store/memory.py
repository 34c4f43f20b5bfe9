"""
In-memory store implementation for testing.

This module provides a simple in-memory store backend for:
- Unit tests
- Integration tests
- Local development without a running search cluster

Invariants:
    - All data is lost on process exit
    - Every write is immediately visible (``immediate`` is recorded only)
    - Search results come back in insertion order
    - Query semantics match docstore_sdk.query (match_all, bool/filter,
      term, range, ids)

How to change safely:
    - This is test-only code, changes don't affect production
    - Keep interface compatible with StoreAdapter protocol
    - Add features to help with testing scenarios
"""

from __future__ import annotations

import asyncio
import copy
import uuid
from collections.abc import Mapping
from typing import Any, Dict, List, Optional
import logging

from ..errors import NotFoundError, StoreConnectionError, StoreError
from .base import Record, SearchResult

logger = logging.getLogger(__name__)


def _lookup(source: Mapping[str, Any], path: str) -> Any:
    current: Any = source
    for key in path.split("."):
        if not isinstance(current, Mapping):
            return None
        current = current.get(key)
    return current


def _deep_merge(target: Dict[str, Any], partial: Mapping[str, Any]) -> None:
    for key, value in partial.items():
        if isinstance(value, Mapping) and isinstance(target.get(key), dict):
            _deep_merge(target[key], value)
        else:
            target[key] = copy.deepcopy(value)


def _term_matches(stored: Any, expected: Any) -> bool:
    if isinstance(stored, list) and not isinstance(expected, list):
        return expected in stored
    return stored == expected


def _range_matches(stored: Any, bounds: Mapping[str, Any]) -> bool:
    if stored is None:
        return False
    try:
        for op, bound in bounds.items():
            if op == "gt" and not stored > bound:
                return False
            if op == "gte" and not stored >= bound:
                return False
            if op == "lt" and not stored < bound:
                return False
            if op == "lte" and not stored <= bound:
                return False
    except TypeError:
        return False
    return True


def evaluate(
    query: Mapping[str, Any],
    source: Mapping[str, Any],
    record_id: Optional[str] = None,
) -> bool:
    """Evaluate an abstract query against a stored body and its record id.

    Raises:
        StoreError: If the query uses an unsupported clause
    """
    if not query or "match_all" in query:
        return True
    if "bool" in query:
        return all(evaluate(clause, source, record_id) for clause in query["bool"].get("filter", []))
    if "term" in query:
        ((path, expected),) = query["term"].items()
        return _term_matches(_lookup(source, path), expected)
    if "ids" in query:
        return record_id in query["ids"].get("values", [])
    if "range" in query:
        ((path, bounds),) = query["range"].items()
        return _range_matches(_lookup(source, path), bounds)
    raise StoreError(f"Unsupported query clause: {sorted(query)}")


class InMemoryStore:
    """In-memory implementation of StoreAdapter for testing.

    Attributes:
        calls: Ordered log of every operation (testing helper)

    Thread safety:
        Uses an asyncio lock. Safe to use from multiple coroutines.

    Example:
        >>> store = InMemoryStore()
        >>> await store.connect()
        >>> await store.index_record("app", "user", "u1", {"name": "John"})
        >>> store.records("app", "user")
        [Record(id='u1', source={'name': 'John'})]
    """

    def __init__(self) -> None:
        """Initialize empty store."""
        self._collections: Dict[str, Dict[str, Dict[str, Dict[str, Any]]]] = {}
        self._connected = False
        self._lock = asyncio.Lock()
        self._failures: Dict[str, Exception] = {}
        self.calls: List[Dict[str, Any]] = []

    @property
    def is_connected(self) -> bool:
        """Whether connected (always true after connect())."""
        return self._connected

    async def connect(self) -> None:
        """Connect (no-op for in-memory)."""
        self._connected = True
        logger.debug("InMemoryStore connected")

    async def close(self) -> None:
        """Close and clear all data."""
        self._connected = False
        self._collections.clear()
        logger.debug("InMemoryStore closed")

    def _enter(self, op: str, **details: Any) -> None:
        if not self._connected:
            raise StoreConnectionError("Not connected")
        self.calls.append({"op": op, **details})
        failure = self._failures.pop(op, None)
        if failure is not None:
            raise failure

    def _category(self, collection: str, category: str) -> Dict[str, Dict[str, Any]]:
        return self._collections.setdefault(collection, {}).setdefault(category, {})

    async def record_exists(self, collection: str) -> bool:
        self._enter("record_exists", collection=collection)
        return collection in self._collections

    async def create_collection(
        self,
        collection: str,
        options: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._enter("create_collection", collection=collection, options=options)
        async with self._lock:
            self._collections.setdefault(collection, {})
        logger.debug(f"Created in-memory collection '{collection}'")

    async def get_record(self, collection: str, category: str, record_id: str) -> Record:
        self._enter("get_record", collection=collection, category=category, id=record_id)
        async with self._lock:
            records = self._collections.get(collection, {}).get(category, {})
            if record_id not in records:
                raise NotFoundError(collection, category, record_id)
            return Record(id=record_id, source=copy.deepcopy(records[record_id]))

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
        self._enter(
            "index_record",
            collection=collection,
            category=category,
            id=record_id,
            immediate=immediate,
        )
        async with self._lock:
            self._category(collection, category)[record_id] = copy.deepcopy(body)

        logger.debug(
            "Record indexed in memory",
            extra={"collection": collection, "category": category, "id": record_id},
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
        self._enter(
            "update_record",
            collection=collection,
            category=category,
            id=record_id,
            immediate=immediate,
        )
        async with self._lock:
            records = self._collections.get(collection, {}).get(category, {})
            if record_id not in records:
                raise NotFoundError(collection, category, record_id)
            _deep_merge(records[record_id], partial)

    async def delete_record(
        self,
        collection: str,
        category: str,
        record_id: str,
        immediate: bool = False,
    ) -> None:
        self._enter(
            "delete_record",
            collection=collection,
            category=category,
            id=record_id,
            immediate=immediate,
        )
        async with self._lock:
            records = self._collections.get(collection, {}).get(category, {})
            if record_id not in records:
                raise NotFoundError(collection, category, record_id)
            del records[record_id]

    async def delete_by_query(
        self,
        collection: str,
        category: str,
        query: Dict[str, Any],
    ) -> int:
        self._enter("delete_by_query", collection=collection, category=category, query=query)
        async with self._lock:
            records = self._collections.get(collection, {}).get(category, {})
            doomed = [rid for rid, source in records.items() if evaluate(query, source, rid)]
            for rid in doomed:
                del records[rid]
        return len(doomed)

    async def search(
        self,
        collection: str,
        category: str,
        query: Dict[str, Any],
        limit: int = 10,
        skip: int = 0,
    ) -> SearchResult:
        self._enter(
            "search",
            collection=collection,
            category=category,
            query=query,
            limit=limit,
            skip=skip,
        )
        async with self._lock:
            records = self._collections.get(collection, {}).get(category, {})
            matched = [
                Record(id=rid, source=copy.deepcopy(source))
                for rid, source in records.items()
                if evaluate(query, source, rid)
            ]
        return SearchResult(hits=matched[skip:skip + limit], total=len(matched))

    async def count(self, collection: str, category: str) -> int:
        self._enter("count", collection=collection, category=category)
        return len(self._collections.get(collection, {}).get(category, {}))

    async def refresh_collection(self, collection: str) -> None:
        self._enter("refresh_collection", collection=collection)

    async def delete_mapping(self, collection: str, category: str) -> None:
        self._enter("delete_mapping", collection=collection, category=category)
        async with self._lock:
            categories = self._collections.get(collection, {})
            if category not in categories:
                raise NotFoundError(collection, category, None)
            del categories[category]

    # Testing helpers

    def records(self, collection: str, category: str) -> List[Record]:
        """Get all records of a category (testing helper)."""
        records = self._collections.get(collection, {}).get(category, {})
        return [Record(id=rid, source=copy.deepcopy(src)) for rid, src in records.items()]

    def operations(self) -> List[str]:
        """Names of all operations called so far (testing helper)."""
        return [call["op"] for call in self.calls]

    def fail_next(self, op: str, exception: Exception) -> None:
        """Make the next call of ``op`` raise ``exception`` (testing helper)."""
        self._failures[op] = exception
