"""
Database: one store adapter, one collection, one registry of entity types.

The Database is the explicit owner of every model and node class bound to
it; there is no process-wide registry.

Example:
    >>> db = Database(InMemoryStore(), "app")
    >>> await db.connect()
    >>> User = db.model("User", {"name": str, "age": int})
    >>> await User.save({"name": "John", "age": 20})
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Optional, Union

from .config import Settings
from .model import Model
from .node import Node
from .registry import ModelRegistry
from .schema import Schema
from .store.base import StoreAdapter, create_store

logger = logging.getLogger(__name__)


class Database:
    """Entry point binding entity types to a store.

    Attributes:
        store: Store adapter
        collection: Collection (index) holding every record
        registry: Models and node classes of this database
    """

    def __init__(self, store: StoreAdapter, collection: str = "docstore") -> None:
        self.store = store
        self.collection = collection
        self.registry = ModelRegistry()

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> Database:
        """Build a database from settings (environment by default)."""
        settings = settings or Settings()
        return cls(create_store(settings), settings.collection)

    async def connect(self) -> None:
        """Connect the store and create the collection if it does not exist."""
        await self.store.connect()
        if not await self.store.record_exists(self.collection):
            await self.store.create_collection(self.collection)
            logger.info(f"Created collection '{self.collection}'")

    async def close(self) -> None:
        await self.store.close()

    async def __aenter__(self) -> Database:
        await self.connect()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    def model(
        self,
        name: str,
        schema: Union[Schema, Mapping[str, Any], None] = None,
    ) -> Model:
        """Return the model called ``name``, creating it on first use.

        Raises:
            RegistryFrozenError: If a new model is requested after freeze()
        """
        existing = self.registry.get_model(name)
        if existing is not None:
            return existing

        model = Model(name, schema, self.store, self.collection)
        self.registry.register_model(model)
        logger.debug(f"Registered model '{name}'", extra={"category": model.category})
        return model

    def register(self, node_cls: type[Node], context: Any = None) -> type[Node]:
        """Bind a Node subclass to this database. Usable as a class decorator."""
        self.registry.register_node(node_cls)
        node_cls._bind(self, context)
        return node_cls

    async def drop(self) -> None:
        """Delete the mapping of every registered entity type.

        Failures are logged and swallowed per type.
        """
        for model in self.registry.models():
            await model.delete_mapping()
        for node_cls in self.registry.nodes():
            await node_cls.delete_mapping()

    def freeze(self) -> str:
        """Freeze the registry. Returns the schema fingerprint."""
        return self.registry.freeze()
