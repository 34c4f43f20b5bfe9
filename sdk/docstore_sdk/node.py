"""
Node: declarative entity types.

A Node subclass declares its store category with ``_type`` and its fields
with ``_schema`` and gains every persistence operation as a classmethod.
Nodes are bound to a Database with ``Database.register``.

Hooks are registered per class with ``add_hook`` under the names
``before_save``, ``after_save``, ``before_remove`` and ``after_remove`` and
are called as ``hook(data, context)``.

Example:
    >>> class Tag(Node):
    ...     _type = "tag"
    ...     _schema = {
    ...         "name": {"type": str, "required": True},
    ...         "count": {"type": int, "default": 0},
    ...     }
    >>> db.register(Tag)
    >>> tag = await Tag.insert({"name": "python"})
    >>> tag.count
    0
"""

from __future__ import annotations

import asyncio
import copy
import logging
import types
import weakref
from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING, Any, ClassVar, Optional, Union

from ._paths import get_prop
from .errors import DocStoreError, DocumentNotFoundError, MissingIdError, NotFoundError, RequiredPathError, StoreError
from .hooks import HookRegistry
from .query import MATCH_ALL, build_query
from .schema import Schema
from .types import FieldKind

if TYPE_CHECKING:
    from .database import Database
    from .store.base import StoreAdapter

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 10
FIND_ALL_LIMIT = 10000

_OPTION_KEYS = frozenset({"required", "default"})


class _ClassOrInstanceMethod:
    """Bind to the class when looked up on the class, to the instance otherwise."""

    def __init__(self, class_fn: Any, instance_fn: Any) -> None:
        self._class_fn = class_fn
        self._instance_fn = instance_fn

    def __get__(self, obj: Any, objtype: Any = None) -> Any:
        if obj is None:
            return types.MethodType(self._class_fn, objtype)
        return types.MethodType(self._instance_fn, obj)


def _normalize_shape(shape: Mapping[str, Any]) -> dict[str, Any]:
    """Give options-only descriptors (``{"required": True}``) an untyped type."""
    normalized: dict[str, Any] = {}
    for key, descriptor in shape.items():
        if (
            isinstance(descriptor, Mapping)
            and "type" not in descriptor
            and descriptor
            and set(descriptor) <= _OPTION_KEYS
        ):
            descriptor = {"type": FieldKind.ANY, **descriptor}
        normalized[key] = descriptor
    return normalized


class Node:
    """Base class for declarative entity types.

    Class attributes:
        _type: Store category
        _schema: Declarative field shape (merged along the class hierarchy)
    """

    _type: ClassVar[str] = "node"
    _schema: ClassVar[Mapping[str, Any]] = {}

    _hooks: ClassVar[HookRegistry] = HookRegistry(detect_callback=False)
    _compiled: ClassVar[Optional[Schema]] = None
    _database_ref: ClassVar[Optional[weakref.ReferenceType]] = None
    _context: ClassVar[Any] = None

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        cls._hooks = cls._hooks.copy()
        cls._compiled = None

    def __init__(self, data: Optional[Mapping[str, Any]] = None) -> None:
        if data:
            self.__dict__.update(copy.deepcopy(dict(data)))

    def __eq__(self, other: object) -> bool:
        if type(self) is not type(other):
            return NotImplemented
        return vars(self) == vars(other)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({vars(self)!r})"

    # ------------------------------------------------------------------
    # Binding
    # ------------------------------------------------------------------

    @classmethod
    def _bind(cls, database: Database, context: Any = None) -> None:
        cls._database_ref = weakref.ref(database)
        if context is not None:
            cls._context = context

    @classmethod
    def _get_database(cls) -> Database:
        ref = cls._database_ref
        database = ref() if ref is not None else None
        if database is None:
            raise DocStoreError(
                f"{cls.__name__} is not registered with a database",
                code="UNBOUND_NODE",
            )
        return database

    @classmethod
    def get_context(cls) -> Any:
        """Application context passed to hooks."""
        return cls._context

    @classmethod
    def get_store(cls) -> StoreAdapter:
        return cls._get_database().store

    @classmethod
    def get_collection(cls) -> str:
        return cls._get_database().collection

    @classmethod
    def get_type(cls) -> str:
        return cls._type

    @classmethod
    def get_schema(cls) -> Schema:
        """Compiled schema (merged ``_schema`` of the class and its bases)."""
        if cls.__dict__.get("_compiled") is None:
            shape: dict[str, Any] = {"_id": {"type": FieldKind.IDENTIFIER}}
            for klass in reversed(cls.__mro__):
                shape.update(_normalize_shape(klass.__dict__.get("_schema", {})))
            cls._compiled = Schema(shape)
        return cls._compiled

    # ------------------------------------------------------------------
    # Hooks
    # ------------------------------------------------------------------

    @classmethod
    def add_hook(cls, name: str, fn: Any) -> None:
        """Register a hook; it is called as ``fn(data, context)``."""
        cls._hooks.add(name, fn)

    @classmethod
    async def execute_hooks(cls, name: str, data: Any) -> Any:
        """Run the hooks registered under ``name`` sequentially. Returns ``data``."""
        return await cls._hooks.run(name, data, cls.get_context())

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def create_instance(cls, data: Any = None) -> Node:
        """Build an instance, applying defaults and checking required fields.

        Raises:
            RequiredPathError: If a required field is missing
        """
        instance = data if isinstance(data, cls) else cls(data)
        schema = cls.get_schema()

        error = schema.apply_getters(instance)
        if error is not None:
            raise error

        for path in schema.required_paths():
            if get_prop(instance, path) is None:
                raise RequiredPathError(path, cls.get_type())

        return instance

    @classmethod
    def _from_record(cls, record_id: str, source: Mapping[str, Any]) -> Node:
        data = copy.deepcopy(dict(source))
        data["_id"] = record_id
        cls.get_schema().apply_imports(data)
        return cls.create_instance(data)

    def to_object(self) -> dict[str, Any]:
        """Plain deep copy of the instance fields."""
        return copy.deepcopy(dict(vars(self)))

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    @classmethod
    def _serialize(cls, instance: Node) -> dict[str, Any]:
        """Validate an instance and convert it to its stored form.

        Raises:
            ValidationError: If any path fails validation
        """
        schema = cls.get_schema()
        payload = instance.to_object()
        error = schema.apply_setters(payload)
        if error is not None:
            raise error
        schema.apply_exports(payload)
        return payload

    @classmethod
    async def insert_one(cls, data: Any) -> Node:
        """Insert (upsert) one node.

        The node is validated before ``before_save`` hooks run and again after
        them when any are registered. When the node has no ``_id`` the id
        assigned by the store is written back onto it.
        """
        instance = cls.create_instance(data)
        payload = cls._serialize(instance)
        if cls._hooks.get("before_save"):
            await cls.execute_hooks("before_save", instance)
            payload = cls._serialize(instance)
        record_id = payload.pop("_id", None)

        record_id = await cls.get_store().index_record(
            cls.get_collection(), cls.get_type(), record_id, payload, immediate=True
        )
        instance._id = record_id
        logger.debug(f"Inserted {cls.__name__} '{record_id}'", extra={"type": cls.get_type()})

        result = cls._from_record(record_id, payload)
        return await cls.execute_hooks("after_save", result)

    @classmethod
    async def insert(cls, data: Union[Any, Sequence[Any]]) -> Union[Node, list[Node]]:
        """Insert one node or a list of nodes (a list gets one trailing refresh)."""
        if isinstance(data, (list, tuple)):
            results = await asyncio.gather(*(cls.insert_one(item) for item in data))
            await cls.get_store().refresh_collection(cls.get_collection())
            return list(results)
        return await cls.insert_one(data)

    @classmethod
    async def update_by_id(cls, node_id: Any, update: Mapping[str, Any]) -> Node:
        """Partially update a node and return the refreshed version.

        Raises:
            MissingIdError: If ``node_id`` is falsy
            DocumentNotFoundError: If no node has ``node_id``
        """
        if not node_id:
            raise MissingIdError()

        current = await cls.get(node_id)
        if current is None:
            raise DocumentNotFoundError(node_id, cls.get_type())
        await cls.execute_hooks("before_save", current)

        schema = cls.get_schema()
        partial = copy.deepcopy(dict(update))
        partial.pop("_id", None)
        error = schema.apply_getters(partial, partial=True)
        if error is None:
            error = schema.apply_setters(partial, partial=True)
        if error is not None:
            raise error
        schema.apply_exports(partial, partial=True)

        await cls.get_store().update_record(
            cls.get_collection(), cls.get_type(), node_id, partial, immediate=True
        )

        result = await cls.get(node_id)
        if result is None:
            raise DocumentNotFoundError(node_id, cls.get_type())
        return await cls.execute_hooks("after_save", result)

    @classmethod
    async def remove_by_id(cls, node_id: Any) -> Node:
        """Remove a node by id and return its last state.

        Raises:
            MissingIdError: If ``node_id`` is falsy
            DocumentNotFoundError: If no node has ``node_id``
        """
        if not node_id:
            raise MissingIdError()

        node = await cls.get(node_id)
        if node is None:
            raise DocumentNotFoundError(node_id, cls.get_type())
        await cls.execute_hooks("before_remove", node)

        await cls.get_store().delete_record(
            cls.get_collection(), cls.get_type(), node_id, immediate=True
        )
        return await cls.execute_hooks("after_remove", node)

    @classmethod
    async def find_and_remove(cls, filter: Optional[Mapping[str, Any]]) -> int:
        """Delete every node matching ``filter``. Returns the number deleted."""
        query = build_query(filter, cls.get_schema())
        return await cls.get_store().delete_by_query(cls.get_collection(), cls.get_type(), query)

    @classmethod
    async def drop(cls) -> int:
        return await cls.get_store().delete_by_query(
            cls.get_collection(), cls.get_type(), dict(MATCH_ALL)
        )

    @classmethod
    async def delete_mapping(cls) -> None:
        """Remove this type's mapping. Store failures are logged, not raised."""
        try:
            await cls.get_store().delete_mapping(cls.get_collection(), cls.get_type())
        except StoreError as e:
            logger.warning(
                f"Failed to delete mapping for {cls.get_type()}: {e}",
                extra={"type": cls.get_type(), "code": e.code},
            )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @classmethod
    async def get(cls, node_id: Any) -> Optional[Node]:
        """Fetch a node by id, or None if the store does not have it."""
        try:
            record = await cls.get_store().get_record(cls.get_collection(), cls.get_type(), node_id)
        except NotFoundError:
            return None
        return cls._from_record(record.id, record.source)

    find_by_id = get

    @classmethod
    async def find(
        cls,
        filter: Optional[Mapping[str, Any]] = None,
        *,
        limit: int = DEFAULT_LIMIT,
        skip: int = 0,
    ) -> list[Node]:
        query = build_query(filter, cls.get_schema())
        result = await cls.get_store().search(
            cls.get_collection(), cls.get_type(), query, limit=limit, skip=skip
        )
        return [cls._from_record(hit.id, hit.source) for hit in result.hits]

    @classmethod
    async def find_one(cls, filter: Optional[Mapping[str, Any]] = None) -> Optional[Node]:
        nodes = await cls.find(filter, limit=1)
        return nodes[0] if nodes else None

    @classmethod
    async def find_all(cls, filter: Optional[Mapping[str, Any]] = None) -> list[Node]:
        return await cls.find(filter, limit=FIND_ALL_LIMIT)

    @classmethod
    async def count(cls) -> int:
        return await cls.get_store().count(cls.get_collection(), cls.get_type())

    # ------------------------------------------------------------------
    # Instance operations
    # ------------------------------------------------------------------

    async def save(self) -> Node:
        return await type(self).insert_one(self)

    async def update(self, update: Mapping[str, Any]) -> Node:
        return await type(self).update_by_id(self.__dict__.get("_id"), update)

    async def _remove_self(self) -> Node:
        return await type(self).remove_by_id(self.__dict__.get("_id"))

    # Node.remove(id) on the class, node.remove() on an instance
    remove = _ClassOrInstanceMethod(remove_by_id.__func__, _remove_self)


class Relationship(Node):
    """A (subject, predicate, object) triple stored as a node."""

    _type = "relationship"
    _schema = {
        "subject": {"type": str, "required": True},
        "predicate": {"type": str, "required": True},
        "object": {"type": str, "required": True},
    }
