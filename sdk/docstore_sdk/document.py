"""
Document: one in-memory record of a model.

Fields live directly in the instance ``__dict__`` and are reachable both as
attributes (``doc.name``) and items (``doc["name"]``). Each model creates
its own Document subclass carrying the schema and a weak reference back to
the model; the document never owns its model.

Invariants:
    - A document constructed through Model.new() has had its getters applied
    - to_object() deep-copies everything except virtual path values
"""

from __future__ import annotations

import copy
import json
import types
import weakref
from collections.abc import Iterator, Mapping
from typing import TYPE_CHECKING, Any, Optional

from ._paths import get_prop
from .errors import DocStoreError

if TYPE_CHECKING:
    from .model import Model
    from .schema import Schema


class Document:
    """Base class for model documents.

    Attributes:
        _schema: Schema of the owning model (class attribute)
        _model_ref: Weak reference to the owning model (class attribute)
    """

    _schema: Optional[Schema] = None
    _model_ref: Optional[weakref.ReferenceType] = None

    def __init__(self, data: Optional[Mapping[str, Any]] = None) -> None:
        if data:
            self.__dict__.update(data)

    def __getattr__(self, name: str) -> Any:
        if name.startswith("__"):
            raise AttributeError(name)
        schema = type(self)._schema
        if schema is not None:
            if name in schema.methods:
                return types.MethodType(schema.methods[name], self)
            if name in schema.paths:
                return None
        raise AttributeError(f"{type(self).__name__!r} object has no attribute {name!r}")

    def __getitem__(self, key: str) -> Any:
        return self.__dict__[key]

    def __setitem__(self, key: str, value: Any) -> None:
        self.__dict__[key] = value

    def __delitem__(self, key: str) -> None:
        del self.__dict__[key]

    def __contains__(self, key: object) -> bool:
        return key in self.__dict__

    def __iter__(self) -> Iterator[str]:
        return iter(list(self.__dict__))

    def keys(self) -> list[str]:
        return list(self.__dict__)

    def get(self, key: str, default: Any = None) -> Any:
        """Read a (possibly dotted) path, returning ``default`` when absent."""
        value = get_prop(self, key)
        return default if value is None else value

    def __eq__(self, other: object) -> bool:
        if type(self) is not type(other):
            return NotImplemented
        return vars(self) == vars(other)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({vars(self)!r})"

    def _get_model(self) -> Model:
        ref = type(self)._model_ref
        model = ref() if ref is not None else None
        if model is None:
            raise DocStoreError(
                f"{type(self).__name__} is not bound to a model",
                code="UNBOUND_DOCUMENT",
            )
        return model

    def to_object(self) -> dict[str, Any]:
        """Plain deep copy of the document.

        Virtual path values are carried over by reference.
        """
        memo: dict[int, Any] = {}
        schema = type(self)._schema
        if schema is not None:
            for path in schema.virtual_paths():
                value = get_prop(self, path)
                if value is not None:
                    memo[id(value)] = value
        return copy.deepcopy(dict(vars(self)), memo)

    def to_json(self, **kwargs: Any) -> str:
        """Serialise the stored (exported) form to JSON."""
        data = self.to_object()
        schema = type(self)._schema
        if schema is not None:
            schema.apply_exports(data)
        return json.dumps(data, default=str, **kwargs)

    def matches(self, filter: Optional[Mapping[str, Any]]) -> bool:
        """Client-side check against an equality/range filter."""
        schema = type(self)._schema
        if schema is None:
            return all(self.get(k) == v for k, v in (filter or {}).items())
        return schema.match(self, filter)

    async def save(self) -> Document:
        """Save (upsert) this document. Returns the stored document."""
        return await self._get_model().save(self)

    async def update(self, data: Mapping[str, Any]) -> Document:
        """Partially update this document in the store."""
        return await self._get_model().update_by_id(self.__dict__.get("_id"), data)

    async def remove(self) -> Document:
        """Remove this document from the store."""
        return await self._get_model().remove(self.__dict__.get("_id"))
