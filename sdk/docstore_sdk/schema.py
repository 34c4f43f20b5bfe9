"""
Schema definition for the DocStore SDK.

A Schema maps dotted paths to SchemaType instances and drives the four
record passes:
- getters: cast raw values, apply defaults, compute virtual paths
- setters: validate values before persistence
- imports: parse values read from the store
- exports: serialise values written to the store

Passes walk the ordered path registry directly; there are no per-pass
closure stacks to keep in sync.

Invariants:
    - Path order is registration order; re-registering a path replaces its
      type without moving it
    - A dotted path registers every missing parent as an Object first
    - Every schema has an ``_id`` path (a required Identifier unless declared)
    - Only ``save`` and ``remove`` hooks exist

How to change safely:
    - Passes must only touch paths that are registered
    - Keep the setter pass fail-fast (first ValidationError wins)

Example:
    >>> schema = Schema({
    ...     "name": {"first": str, "last": str},
    ...     "age": {"type": int, "default": 0},
    ...     "tags": [str],
    ... })
    >>> schema.virtual("name.full").get(
    ...     lambda doc: f"{doc['name']['first']} {doc['name']['last']}"
    ... )
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Callable, Iterator, Optional

from ._paths import del_prop, get_prop, has_prop, set_prop
from .errors import SchemaError, ValidationError
from .hooks import HookRegistry
from .query import flatten_filter, is_range
from .types import Array, Identifier, Object, SchemaType, Virtual, type_for_tag

HOOK_KINDS = ("save", "remove")
HOOK_EVENTS = tuple(f"{when}_{kind}" for when in ("pre", "post") for kind in HOOK_KINDS)

_MISSING = object()


def _typed_descriptor(descriptor: Mapping[str, Any]) -> Optional[type[SchemaType]]:
    tag = descriptor.get("type")
    if tag is None:
        return None
    return type_for_tag(tag)


class Schema:
    """Declarative description of an entity type.

    Attributes:
        paths: Ordered mapping of dotted path to SchemaType
        statics: Functions attached to the entity type
        methods: Functions attached to every entity instance
        hooks: pre/post save/remove hooks
    """

    def __init__(self, shape: Optional[Mapping[str, Any]] = None) -> None:
        self.paths: dict[str, SchemaType] = {}
        self.statics: dict[str, Callable[..., Any]] = {}
        self.methods: dict[str, Callable[..., Any]] = {}
        self.hooks = HookRegistry(HOOK_EVENTS)

        if shape:
            self.add(shape)

        if "_id" not in self.paths:
            self.path("_id", Identifier("_id", required=True))

    # ------------------------------------------------------------------
    # Definition
    # ------------------------------------------------------------------

    def add(self, shape: Mapping[str, Any], prefix: str = "") -> Schema:
        """Register every key of ``shape`` as a path under ``prefix``."""
        if not isinstance(shape, Mapping):
            raise SchemaError(f"Schema shape must be a mapping, got {type(shape).__name__}")
        for key, descriptor in shape.items():
            self.path(prefix + key, descriptor)
        return self

    def path(self, name: str, descriptor: Any = _MISSING) -> Optional[SchemaType]:
        """Register a path, or look one up when called with a name only.

        Args:
            name: Dotted path name
            descriptor: SchemaType instance, type tag, typed mapping
                (``{"type": ..., **options}``), list, or nested shape

        Returns:
            The SchemaType registered at ``name``

        Raises:
            SchemaError: If the descriptor cannot be resolved
        """
        if descriptor is _MISSING:
            return self.paths.get(name)

        schema_type, nested = self._resolve(name, descriptor)
        self._register(name, schema_type)
        if nested is not None:
            self.add(nested, name + ".")
        return schema_type

    def _resolve(self, name: str, descriptor: Any) -> tuple[SchemaType, Optional[Mapping[str, Any]]]:
        if isinstance(descriptor, SchemaType):
            if not descriptor.name:
                descriptor.name = name
            return descriptor, None

        cls = type_for_tag(descriptor)
        if cls is not None:
            return self._instantiate(name, cls, {}), None

        if isinstance(descriptor, Mapping):
            cls = _typed_descriptor(descriptor)
            if cls is not None:
                options = {k: v for k, v in descriptor.items() if k != "type"}
                return self._instantiate(name, cls, options), None
            if descriptor:
                return Object(name), descriptor

        if isinstance(descriptor, (list, tuple)):
            if descriptor:
                child, _ = self._resolve(name, descriptor[0])
            else:
                child = SchemaType(name)
            return Array(name, child=child), None

        raise SchemaError(f"Invalid value for schema path `{name}`", path=name)

    def _instantiate(self, name: str, cls: type[SchemaType], options: dict[str, Any]) -> SchemaType:
        if issubclass(cls, Array) and "child" in options:
            options["child"], _ = self._resolve(name, options["child"])
        try:
            return cls(name, **options)
        except TypeError as e:
            raise SchemaError(f"Invalid options for schema path `{name}`: {e}", path=name) from e

    def _register(self, name: str, schema_type: SchemaType) -> None:
        parts = name.split(".")
        for i in range(1, len(parts)):
            parent = ".".join(parts[:i])
            if parent not in self.paths:
                self.paths[parent] = Object(parent)
        self.paths[name] = schema_type

    def virtual(self, name: str, getter: Optional[Callable[[Any], Any]] = None) -> Virtual:
        """Register a virtual path. Returns the Virtual so ``.get()`` can chain."""
        virtual = Virtual(name, getter=getter)
        self.path(name, virtual)
        return virtual

    def pre(self, kind: str, fn: Callable[..., Any]) -> Schema:
        """Register a hook to run before ``save`` or ``remove``."""
        return self._hook("pre", kind, fn)

    def post(self, kind: str, fn: Callable[..., Any]) -> Schema:
        """Register a hook to run after ``save`` or ``remove``."""
        return self._hook("post", kind, fn)

    def _hook(self, when: str, kind: str, fn: Callable[..., Any]) -> Schema:
        if kind not in HOOK_KINDS:
            raise SchemaError(f"Hook type `{kind}` is not supported")
        self.hooks.add(f"{when}_{kind}", fn)
        return self

    def static(self, name: str, fn: Callable[..., Any]) -> Schema:
        """Attach a function to the entity type (receives the model first)."""
        if not callable(fn):
            raise SchemaError(f"Static `{name}` must be callable")
        self.statics[name] = fn
        return self

    def method(self, name: str, fn: Callable[..., Any]) -> Schema:
        """Attach a function to every entity instance (receives the document first)."""
        if not callable(fn):
            raise SchemaError(f"Method `{name}` must be callable")
        self.methods[name] = fn
        return self

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def __contains__(self, name: object) -> bool:
        return name in self.paths

    def __iter__(self) -> Iterator[tuple[str, SchemaType]]:
        return iter(list(self.paths.items()))

    def virtual_paths(self) -> list[str]:
        return [name for name, t in self.paths.items() if isinstance(t, Virtual)]

    def required_paths(self) -> list[str]:
        return [
            name
            for name, t in self.paths.items()
            if t.required and not isinstance(t, Virtual)
        ]

    def to_dict(self) -> dict[str, Any]:
        """Describe paths, statics and methods."""
        return {
            "paths": {name: t.to_dict() for name, t in self.paths.items()},
            "statics": sorted(self.statics),
            "methods": sorted(self.methods),
        }

    # ------------------------------------------------------------------
    # Passes
    # ------------------------------------------------------------------

    def apply_getters(self, data: Any, partial: bool = False) -> Optional[ValidationError]:
        """Cast every path in place; absent cast results leave the path untouched.

        Args:
            data: Record or document to cast (mutated)
            partial: Only cast paths present in ``data``

        Returns:
            The first ValidationError produced, or None
        """
        for name, schema_type in self:
            if partial and not has_prop(data, name):
                continue
            value = schema_type.cast(get_prop(data, name), data)
            if isinstance(value, ValidationError):
                return value
            if value is not None:
                set_prop(data, name, value)
        return None

    def apply_setters(self, data: Any, partial: bool = False) -> Optional[ValidationError]:
        """Validate every path in place, stopping at the first error.

        Args:
            data: Record to validate (mutated)
            partial: Only validate paths present in ``data``

        Returns:
            The first ValidationError, or None when every path is valid
        """
        for name, schema_type in self:
            if partial and not has_prop(data, name):
                continue
            value = schema_type.validate(get_prop(data, name), data)
            if isinstance(value, ValidationError):
                return value
            if value is None:
                del_prop(data, name)
            else:
                set_prop(data, name, value)
        return None

    def apply_imports(self, data: Any) -> Any:
        """Parse wire values in place. Returns ``data``."""
        for name, schema_type in self:
            self._convert(data, name, schema_type.parse(get_prop(data, name), data))
        return data

    def apply_exports(self, data: Any, partial: bool = False) -> Any:
        """Serialise values to wire form in place. Returns ``data``."""
        for name, schema_type in self:
            if partial and not has_prop(data, name):
                continue
            self._convert(data, name, schema_type.value(get_prop(data, name), data))
        return data

    @staticmethod
    def _convert(data: Any, name: str, value: Any) -> None:
        if value is None:
            del_prop(data, name)
        else:
            set_prop(data, name, value)

    # ------------------------------------------------------------------
    # Client-side helpers
    # ------------------------------------------------------------------

    def _type_for(self, path: str) -> SchemaType:
        return self.paths.get(path) or SchemaType(path)

    def match(self, data: Any, filter: Optional[Mapping[str, Any]]) -> bool:
        """Whether ``data`` satisfies an equality/range filter."""
        for path, query in flatten_filter(filter):
            schema_type = self._type_for(path)
            value = get_prop(data, path)
            if is_range(query):
                if not self._in_range(schema_type, value, query):
                    return False
            elif not schema_type.match(value, query, data):
                return False
        return True

    @staticmethod
    def _in_range(schema_type: SchemaType, value: Any, query: Mapping[str, Any]) -> bool:
        if value is None:
            return False
        for op, bound in query.items():
            result = schema_type.compare(value, schema_type.cast(bound))
            if op == "gt" and result <= 0:
                return False
            if op == "gte" and result < 0:
                return False
            if op == "lt" and result >= 0:
                return False
            if op == "lte" and result > 0:
                return False
        return True

    def compare(self, path: str, a: Any, b: Any) -> int:
        return self._type_for(path).compare(a, b)
