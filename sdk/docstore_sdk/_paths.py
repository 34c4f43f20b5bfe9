"""
Dotted-path helpers.

Paths like ``"name.first"`` address nested dictionaries. The root object may
be a plain mapping or any object whose fields live in ``__dict__`` (e.g. a
Document); everything below the root is a mapping.
"""

from __future__ import annotations

from collections.abc import MutableMapping
from typing import Any


def _root(obj: Any) -> MutableMapping:
    if isinstance(obj, MutableMapping):
        return obj
    return vars(obj)


def split_path(path: str) -> list[str]:
    return path.split(".")


def get_prop(obj: Any, path: str) -> Any:
    """Return the value at ``path`` or None when any segment is missing."""
    current: Any = _root(obj)
    for key in split_path(path):
        if not isinstance(current, MutableMapping):
            return None
        current = current.get(key)
        if current is None:
            return None
    return current


def has_prop(obj: Any, path: str) -> bool:
    current: Any = _root(obj)
    for key in split_path(path):
        if not isinstance(current, MutableMapping) or key not in current:
            return False
        current = current[key]
    return True


def set_prop(obj: Any, path: str, value: Any) -> None:
    """Set ``path`` to ``value``, creating intermediate dicts as needed."""
    keys = split_path(path)
    current = _root(obj)
    for key in keys[:-1]:
        child = current.get(key)
        if not isinstance(child, MutableMapping):
            child = {}
            current[key] = child
        current = child
    current[keys[-1]] = value


def del_prop(obj: Any, path: str) -> None:
    """Remove ``path`` if present. Missing parents are left untouched."""
    keys = split_path(path)
    current: Any = _root(obj)
    for key in keys[:-1]:
        current = current.get(key)
        if not isinstance(current, MutableMapping):
            return
    current.pop(keys[-1], None)
