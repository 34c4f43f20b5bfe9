"""
Model: an entity type bound to a Schema and a store.

The model is the active-record facade. It builds documents, runs the schema
passes and hooks around every persistence call, translates filters into
store queries and emits ``insert``/``update``/``remove`` events.

Save pipeline (single document):
    1. build the document (raw mappings go through new())
    2. require a non-empty ``_id``
    3. validate + serialise a to_object() clone (fail-fast)
    4. pre-save hooks
    5. index_record(..., immediate=True)
    6. emit "insert", post-save hooks

Invariants:
    - Validation failures abort before any store call
    - Hooks for one event run sequentially; a failing hook aborts the operation
    - Store not-found is translated to None by get(); every other store error
      propagates unchanged
    - Documents hold only a weak reference to their model

How to change safely:
    - Keep the event names stable; listeners depend on them
    - New operations must go through _from_record() to rebuild documents
"""

from __future__ import annotations

import asyncio
import copy
import functools
import logging
import types
import weakref
from collections.abc import Mapping, Sequence
from typing import Any, Optional, Union

from ._paths import get_prop
from .document import Document
from .errors import DocumentNotFoundError, MissingIdError, NotFoundError, RequiredPathError, StoreError
from .events import EventEmitter
from .query import MATCH_ALL, build_query
from .schema import Schema
from .store.base import StoreAdapter

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 10
FIND_ALL_LIMIT = 10000


class Model(EventEmitter):
    """Entity type bound to a schema, a store and a collection.

    Args:
        name: Model name; the store category is ``name.lower()``
        schema: Schema or declarative shape
        store: Store adapter
        collection: Collection (index) holding this model's records

    Example:
        >>> User = Model("User", {"name": str, "age": int}, store, "app")
        >>> user = await User.save({"name": "John", "age": 20})
        >>> (await User.get(user._id)).name
        'John'
    """

    def __init__(
        self,
        name: str,
        schema: Union[Schema, Mapping[str, Any], None],
        store: StoreAdapter,
        collection: str,
    ) -> None:
        super().__init__()
        if not isinstance(schema, Schema):
            schema = Schema(schema)

        self.name = name
        self.schema = schema
        self.store = store
        self.collection = collection
        self.category = name.lower()
        self.Document: type[Document] = type(
            name,
            (Document,),
            {"_schema": schema, "_model_ref": weakref.ref(self)},
        )

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        schema = self.__dict__.get("schema")
        if schema is not None and name in schema.statics:
            return types.MethodType(schema.statics[name], self)
        raise AttributeError(f"Model {self.__dict__.get('name')!r} has no attribute {name!r}")

    def __repr__(self) -> str:
        return f"Model({self.name!r}, collection={self.collection!r})"

    def __call__(self, data: Optional[Mapping[str, Any]] = None) -> Document:
        return self.new(data)

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    def new(self, data: Optional[Mapping[str, Any]] = None) -> Document:
        """Build a document from ``data`` (copied) and apply getters.

        Raises:
            RequiredPathError: If a required path is missing after defaults
            ValidationError: If a getter reports an error
        """
        doc = self.Document(copy.deepcopy(dict(data or {})))

        error = self.schema.apply_getters(doc)
        if error is not None:
            raise error

        for path in self.schema.required_paths():
            if get_prop(doc, path) is None:
                raise RequiredPathError(path, self.name)

        return doc

    def _from_record(self, record_id: str, source: Mapping[str, Any]) -> Document:
        data = copy.deepcopy(dict(source))
        data["_id"] = record_id
        self.schema.apply_imports(data)
        return self.new(data)

    def _serialize(self, doc: Document) -> dict[str, Any]:
        """Validate and export a clone of ``doc``."""
        working = doc.to_object()
        error = self.schema.apply_setters(working)
        if error is not None:
            raise error
        return self.schema.apply_exports(working)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def save(
        self,
        data: Union[Document, Mapping[str, Any], Sequence[Any]],
    ) -> Union[Document, list[Document]]:
        """Save (upsert) one document or a list of documents.

        A list is saved concurrently, followed by a single collection
        refresh. If any element fails the whole call fails; elements already
        written are not rolled back.

        Raises:
            MissingIdError: If a document has no ``_id``
            ValidationError: If a document fails validation
        """
        if isinstance(data, (list, tuple)):
            results = await asyncio.gather(*(self._save_one(item) for item in data))
            await self.store.refresh_collection(self.collection)
            return list(results)
        return await self._save_one(data)

    insert = save

    async def _save_one(self, data: Union[Document, Mapping[str, Any]]) -> Document:
        doc = data if isinstance(data, self.Document) else self.new(data)

        doc_id = get_prop(doc, "_id")
        if not doc_id:
            raise MissingIdError()

        payload = self._serialize(doc)
        if self.schema.hooks.get("pre_save"):
            await self.schema.hooks.run("pre_save", doc)
            payload = self._serialize(doc)
        payload.pop("_id", None)

        record_id = await self.store.index_record(
            self.collection, self.category, doc_id, payload, immediate=True
        )
        logger.debug(
            f"Saved {self.name} '{record_id}'",
            extra={"model": self.name, "id": record_id},
        )

        result = self._from_record(record_id, payload)
        self.emit("insert", result)
        await self.schema.hooks.run("post_save", result)
        return result

    async def update_by_id(self, doc_id: Any, data: Mapping[str, Any]) -> Document:
        """Partially update a document and return the refreshed version.

        Raises:
            MissingIdError: If ``doc_id`` is falsy
            DocumentNotFoundError: If no document has ``doc_id``
            ValidationError: If an updated path fails validation
        """
        if not doc_id:
            raise MissingIdError()

        current = await self.get(doc_id)
        if current is None:
            raise DocumentNotFoundError(doc_id, self.category)

        await self.schema.hooks.run("pre_save", current)

        update = copy.deepcopy(dict(data))
        update.pop("_id", None)
        error = self.schema.apply_getters(update, partial=True)
        if error is None:
            error = self.schema.apply_setters(update, partial=True)
        if error is not None:
            raise error
        self.schema.apply_exports(update, partial=True)

        await self.store.update_record(
            self.collection, self.category, doc_id, update, immediate=True
        )

        result = await self.get(doc_id)
        if result is None:
            raise DocumentNotFoundError(doc_id, self.category)

        self.emit("update", result)
        await self.schema.hooks.run("post_save", result)
        return result

    async def remove(self, doc_or_id: Any) -> Document:
        """Remove a document by id (or document) and return its last state.

        Raises:
            MissingIdError: If the id is falsy
            DocumentNotFoundError: If no document has that id
        """
        doc_id = get_prop(doc_or_id, "_id") if isinstance(doc_or_id, Document) else doc_or_id
        if not doc_id:
            raise MissingIdError()

        doc = await self.get(doc_id)
        if doc is None:
            raise DocumentNotFoundError(doc_id, self.category)

        await self.schema.hooks.run("pre_remove", doc)
        await self.store.delete_record(self.collection, self.category, doc_id, immediate=True)
        logger.debug(f"Removed {self.name} '{doc_id}'", extra={"model": self.name, "id": doc_id})

        self.emit("remove", doc)
        await self.schema.hooks.run("post_remove", doc)
        return doc

    remove_by_id = remove

    async def drop(self) -> int:
        """Delete every document of this model. Returns the number deleted."""
        return await self.store.delete_by_query(self.collection, self.category, dict(MATCH_ALL))

    async def delete_mapping(self) -> None:
        """Remove this model's mapping. Store failures are logged, not raised."""
        try:
            await self.store.delete_mapping(self.collection, self.category)
        except StoreError as e:
            logger.warning(
                f"Failed to delete mapping for {self.name}: {e}",
                extra={"model": self.name, "code": e.code},
            )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get(self, doc_id: Any) -> Optional[Document]:
        """Fetch a document by id, or None if the store does not have it."""
        try:
            record = await self.store.get_record(self.collection, self.category, doc_id)
        except NotFoundError:
            return None
        return self._from_record(record.id, record.source)

    find_by_id = get

    async def find(
        self,
        filter: Optional[Mapping[str, Any]] = None,
        *,
        limit: int = DEFAULT_LIMIT,
        skip: int = 0,
    ) -> list[Document]:
        """Find documents matching an equality/range filter, in store order."""
        query = build_query(filter, self.schema)
        result = await self.store.search(
            self.collection, self.category, query, limit=limit, skip=skip
        )
        return [self._from_record(hit.id, hit.source) for hit in result.hits]

    async def find_one(self, filter: Optional[Mapping[str, Any]] = None) -> Optional[Document]:
        docs = await self.find(filter, limit=1)
        return docs[0] if docs else None

    async def find_all(self, filter: Optional[Mapping[str, Any]] = None) -> list[Document]:
        return await self.find(filter, limit=FIND_ALL_LIMIT)

    async def count(self) -> int:
        return await self.store.count(self.collection, self.category)

    # ------------------------------------------------------------------
    # Client-side helpers
    # ------------------------------------------------------------------

    def sort(self, documents: Sequence[Document], path: str, reverse: bool = False) -> list[Document]:
        """Sort documents by a path using the path type's ordering."""

        def compare(a: Document, b: Document) -> int:
            return self.schema.compare(path, get_prop(a, path), get_prop(b, path))

        return sorted(documents, key=functools.cmp_to_key(compare), reverse=reverse)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "category": self.category,
            "schema": self.schema.to_dict(),
        }
