"""
Base protocol and types for the store abstraction.

This module defines the StoreAdapter protocol that every backend must
implement, along with the record/result types exchanged with the model
layer. Models never speak to the network directly; they only call the
operations below.

Invariants:
    - Records are addressed by (collection, category, id)
    - get_record/update_record/delete_record raise NotFoundError for unknown ids
    - ``immediate=True`` makes the write visible to the next search
    - Queries use the abstract form produced by docstore_sdk.query

How to change safely:
    - Protocol changes require updating all implementations
    - Add new methods as optional with default implementations
"""

from __future__ import annotations

from abc import abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Protocol, runtime_checkable
import logging

if TYPE_CHECKING:
    from ..config import Settings

logger = logging.getLogger(__name__)


@dataclass
class Record:
    """A stored record.

    Attributes:
        id: Record identifier (unique within collection/category)
        source: Stored body, in wire form, without the identifier
    """
    id: str
    source: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary (identifier under ``_id``)."""
        return {"_id": self.id, **self.source}


@dataclass
class SearchResult:
    """Result of a search.

    Attributes:
        hits: Matching records, in store order
        total: Total number of matches (may exceed len(hits))
    """
    hits: List[Record] = field(default_factory=list)
    total: int = 0

    def __len__(self) -> int:
        return len(self.hits)


@runtime_checkable
class StoreAdapter(Protocol):
    """Protocol for document store backends.

    Example:
        >>> store = HttpStore("http://localhost:9200")
        >>> await store.connect()
        >>> record_id = await store.index_record("app", "user", "u1", {"name": "John"})
        >>> record = await store.get_record("app", "user", record_id)
    """

    @abstractmethod
    async def connect(self) -> None:
        """Connect to the backend.

        Raises:
            StoreConnectionError: If the backend is unreachable
        """
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release resources held by the adapter."""
        ...

    @property
    @abstractmethod
    def is_connected(self) -> bool:
        """Whether currently connected to the backend."""
        ...

    @abstractmethod
    async def record_exists(self, collection: str) -> bool:
        """Whether a collection exists."""
        ...

    @abstractmethod
    async def create_collection(
        self,
        collection: str,
        options: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Create a collection (index)."""
        ...

    @abstractmethod
    async def get_record(self, collection: str, category: str, record_id: str) -> Record:
        """Fetch a record.

        Raises:
            NotFoundError: If the record does not exist
        """
        ...

    @abstractmethod
    async def index_record(
        self,
        collection: str,
        category: str,
        record_id: Optional[str],
        body: Dict[str, Any],
        immediate: bool = False,
    ) -> str:
        """Create or replace a record.

        Args:
            collection: Collection name
            category: Record category (entity type)
            record_id: Identifier, or None to let the store assign one
            body: Record body in wire form
            immediate: Make the write visible to searches before returning

        Returns:
            The record identifier
        """
        ...

    @abstractmethod
    async def update_record(
        self,
        collection: str,
        category: str,
        record_id: str,
        partial: Dict[str, Any],
        immediate: bool = False,
    ) -> None:
        """Deep-merge ``partial`` into an existing record.

        Raises:
            NotFoundError: If the record does not exist
        """
        ...

    @abstractmethod
    async def delete_record(
        self,
        collection: str,
        category: str,
        record_id: str,
        immediate: bool = False,
    ) -> None:
        """Delete a record.

        Raises:
            NotFoundError: If the record does not exist
        """
        ...

    @abstractmethod
    async def delete_by_query(
        self,
        collection: str,
        category: str,
        query: Dict[str, Any],
    ) -> int:
        """Delete every record of a category matching ``query``.

        Returns:
            Number of deleted records
        """
        ...

    @abstractmethod
    async def search(
        self,
        collection: str,
        category: str,
        query: Dict[str, Any],
        limit: int = 10,
        skip: int = 0,
    ) -> SearchResult:
        """Search records of a category."""
        ...

    @abstractmethod
    async def count(self, collection: str, category: str) -> int:
        """Number of records of a category."""
        ...

    @abstractmethod
    async def refresh_collection(self, collection: str) -> None:
        """Make all prior writes visible to searches."""
        ...

    @abstractmethod
    async def delete_mapping(self, collection: str, category: str) -> None:
        """Remove a category and all of its records."""
        ...


def create_store(settings: "Settings") -> StoreAdapter:
    """Factory function to create a store adapter from settings.

    Args:
        settings: SDK settings

    Returns:
        Appropriate StoreAdapter implementation

    Raises:
        ValueError: If backend is not supported
    """
    from ..config import StoreBackend
    from .http import HttpStore
    from .memory import InMemoryStore

    if settings.store_backend == StoreBackend.MEMORY:
        return InMemoryStore()
    elif settings.store_backend == StoreBackend.HTTP:
        return HttpStore(settings.store_url, timeout=settings.request_timeout)
    else:
        raise ValueError(f"Unsupported store backend: {settings.store_backend}")
