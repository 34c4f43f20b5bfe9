"""
Store abstraction for the DocStore SDK.

This module provides a pluggable store backend interface supporting:
- Elasticsearch-compatible clusters over HTTP
- In-memory (for testing)

Invariants:
    - Models only call the StoreAdapter operations
    - Not-found is always reported as NotFoundError
    - ``immediate=True`` writes are visible to the next search

How to change safely:
    - New backends must implement StoreAdapter protocol
    - Run the model integration tests against the new backend
"""

from .base import (
    Record,
    SearchResult,
    StoreAdapter,
    create_store,
)
from .http import HttpStore
from .memory import InMemoryStore

__all__ = [
    # Protocol and types
    "StoreAdapter",
    "Record",
    "SearchResult",
    # Factory
    "create_store",
    # Implementations
    "HttpStore",
    "InMemoryStore",
]
