"""
Filter translation.

Callers express filters as plain mappings. This module turns them into the
abstract query understood by every store adapter:

    {}                                  -> {"match_all": {}}
    {"name": "John", "age": 20}         -> bool/filter of two term clauses
    {"name": {"first": "John"}}         -> term on "name.first"
    {"age": {"gte": 18, "lt": 65}}      -> range on "age"
    {"_id": "u1"}                       -> ids clause

Only conjunctive equality and range filters are supported.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from .types import Virtual

if TYPE_CHECKING:
    from .schema import Schema

ID_PATH = "_id"

RANGE_OPERATORS = frozenset({"gt", "gte", "lt", "lte"})

MATCH_ALL: dict[str, Any] = {"match_all": {}}


def is_range(query: Any) -> bool:
    """Whether a filter value is a range condition."""
    return isinstance(query, Mapping) and bool(query) and set(query) <= RANGE_OPERATORS


def flatten_filter(filter: Mapping[str, Any] | None, prefix: str = "") -> list[tuple[str, Any]]:
    """Flatten nested filter mappings into ``(dotted_path, value)`` pairs.

    Range conditions are leaves and are not flattened further.
    """
    pairs: list[tuple[str, Any]] = []
    for key, value in (filter or {}).items():
        path = prefix + key
        if isinstance(value, Mapping) and value and not is_range(value):
            pairs.extend(flatten_filter(value, path + "."))
        else:
            pairs.append((path, value))
    return pairs


def _serialize(schema: Schema | None, path: str, value: Any) -> Any:
    """Cast a filter value through the path type, then convert it to wire form."""
    if schema is None or value is None:
        return value
    schema_type = schema.path(path)
    if schema_type is None or isinstance(schema_type, Virtual):
        return value
    if isinstance(value, list):
        # Array filters compare element-wise against the stored list
        return schema_type.value(schema_type.cast(value))
    child = getattr(schema_type, "child", None)
    if child is not None:
        return child.value(child.cast(value))
    return schema_type.value(schema_type.cast(value))


def _ids(value: Any) -> dict[str, Any]:
    values = value if isinstance(value, (list, tuple)) else [value]
    return {"ids": {"values": [str(v) for v in values]}}


def build_query(filter: Mapping[str, Any] | None, schema: Schema | None = None) -> dict[str, Any]:
    """Translate a filter mapping into an abstract store query.

    Equality on ``_id`` becomes an ``ids`` clause, since identifiers are not
    part of the stored body.

    Args:
        filter: Equality/range filter, or None for "everything"
        schema: Optional schema used to cast values and serialise them to
            wire form

    Returns:
        Query mapping
    """
    pairs = flatten_filter(filter)
    if not pairs:
        return dict(MATCH_ALL)

    clauses: list[dict[str, Any]] = []
    for path, value in pairs:
        if is_range(value):
            bounds = {op: _serialize(schema, path, bound) for op, bound in value.items()}
            clauses.append({"range": {path: bounds}})
        elif path == ID_PATH:
            clauses.append(_ids(value))
        else:
            clauses.append({"term": {path: _serialize(schema, path, value)}})

    return {"bool": {"filter": clauses}}
