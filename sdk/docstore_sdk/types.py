"""
Schema types for the DocStore SDK.

A SchemaType describes the behaviour of one schema path. Every type provides
the same six capabilities:
- cast: coerce a raw value into its in-memory form (getter pass)
- validate: enforce constraints (setter pass); returns a ValidationError
  instead of raising
- parse: read the store's wire form (import pass)
- value: produce the store's wire form (export pass)
- compare: total order used for client-side sorting
- match: predicate used for client-side filtering

Built-in variants: String, Number, Integer, Boolean, Date, Array, Object,
Enum, Identifier and Virtual.

Invariants:
    - ``default`` is always a zero-argument producer
    - A type instance is created once per schema path and shared by every
      document of that schema; it holds no per-document state
    - ``None`` means "absent" for every capability

How to change safely:
    - New variants subclass SchemaType and call super() first in cast/validate
    - Register new tags in _PYTHON_TAGS / _KIND_TYPES
    - Keep wire forms JSON-serialisable

Example:
    >>> tags = Array("tags", child=String("tags"))
    >>> tags.cast("python")
    ['python']
    >>> Number("age").cast("1")
    1
"""

from __future__ import annotations

import copy
import math
import re
import uuid
from collections.abc import Mapping
from datetime import date, datetime, time, timedelta, timezone
import enum
from typing import Any, Callable

from .errors import SchemaError, ValidationError

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class FieldKind(enum.Enum):
    """Type tags accepted in schema descriptors."""

    ANY = "any"
    STRING = "str"
    NUMBER = "number"
    INTEGER = "int"
    BOOLEAN = "bool"
    DATE = "date"
    ARRAY = "list"
    OBJECT = "object"
    ENUM = "enum"
    IDENTIFIER = "id"
    VIRTUAL = "virtual"

    @classmethod
    def from_str(cls, value: str) -> FieldKind:
        """Convert string representation to FieldKind.

        Args:
            value: Tag name (``"str"``, ``"float"``, ``"timestamp"``, ...)

        Returns:
            Corresponding FieldKind

        Raises:
            ValueError: If value is not a known tag
        """
        value = _KIND_ALIASES.get(value, value)
        for kind in cls:
            if kind.value == value:
                return kind
        valid = [k.value for k in cls] + sorted(_KIND_ALIASES)
        raise ValueError(f"Invalid field kind '{value}'. Valid kinds: {valid}")


_KIND_ALIASES = {
    "float": "number",
    "timestamp": "date",
    "json": "object",
}


def _sign(value: float) -> int:
    if value > 0:
        return 1
    if value < 0:
        return -1
    return 0


def new_id() -> str:
    """Generate a new document identifier."""
    return uuid.uuid4().hex


class SchemaType:
    """Base schema type.

    Used as-is for paths declared without a specific type (e.g. the child of
    an empty array descriptor). Subclasses override individual capabilities.

    Attributes:
        name: Schema path this type is registered under
        options: Type options (``required``, ``default`` and variant extras)
        default: Zero-argument producer of the default value
    """

    kind = FieldKind.ANY

    def __init__(self, name: str = "", **options: Any) -> None:
        self.name = name or ""
        self.options: dict[str, Any] = {"required": False, **options}

        default = self.options.get("default")
        if callable(default):
            self.default: Callable[[], Any] = default
        else:
            self.default = lambda: copy.deepcopy(default)

    @property
    def required(self) -> bool:
        return bool(self.options.get("required"))

    def cast(self, value: Any, data: Any = None) -> Any:
        """Cast a raw value. Absent values become the default."""
        if value is None:
            return self.default()
        return value

    def validate(self, value: Any, data: Any = None) -> Any:
        """Validate a value.

        Returns:
            The (possibly normalised) value, or a ValidationError
        """
        if self.required and value is None:
            return ValidationError(f"`{self.name}` is required!", path=self.name)
        return value

    def parse(self, value: Any, data: Any = None) -> Any:
        return value

    def value(self, value: Any, data: Any = None) -> Any:
        return value

    def compare(self, a: Any, b: Any) -> int:
        """Compare two values; absent sorts before present."""
        if a is None:
            return 0 if b is None else -1
        if b is None:
            return 1
        try:
            if a < b:
                return -1
            if a > b:
                return 1
            return 0
        except TypeError:
            return _sign((str(a) > str(b)) - (str(a) < str(b)))

    def match(self, value: Any, query: Any, data: Any = None) -> bool:
        return value == query

    def to_dict(self) -> dict[str, Any]:
        """Describe this type (used for schema fingerprints)."""
        result: dict[str, Any] = {"kind": self.kind.value}
        if self.required:
            result["required"] = True
        return result

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r})"


class String(SchemaType):
    """String type. Non-string values are cast with ``str()``."""

    kind = FieldKind.STRING

    def cast(self, value: Any, data: Any = None) -> Any:
        value = super().cast(value, data)
        if value is None or isinstance(value, str):
            return value
        return str(value)

    def validate(self, value: Any, data: Any = None) -> Any:
        value = super().validate(value, data)
        if isinstance(value, ValidationError):
            return value
        if value is not None and not isinstance(value, str):
            return ValidationError(f"`{value}` is not a string!", path=self.name, value=value)
        return value

    def match(self, value: Any, query: Any, data: Any = None) -> bool:
        """Exact equality, or a regex search when ``query`` is a compiled pattern."""
        if isinstance(query, re.Pattern):
            return isinstance(value, str) and query.search(value) is not None
        return value == query


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _to_number(value: Any) -> Any:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, str):
        text = value.strip()
        try:
            return int(text)
        except ValueError:
            pass
        try:
            return float(text)
        except ValueError:
            return math.nan
    try:
        return float(value)
    except (TypeError, ValueError):
        return math.nan


class Number(SchemaType):
    """Numeric type. Booleans and numeric strings are coerced."""

    kind = FieldKind.NUMBER

    def cast(self, value: Any, data: Any = None) -> Any:
        value = super().cast(value, data)
        if value is None or _is_number(value):
            return value
        return _to_number(value)

    def validate(self, value: Any, data: Any = None) -> Any:
        value = super().validate(value, data)
        if isinstance(value, ValidationError):
            return value
        if value is not None and (not _is_number(value) or math.isnan(value)):
            return ValidationError(f"`{value}` is not a number!", path=self.name, value=value)
        return value


class Integer(Number):
    """Integer type. Finite floats are truncated toward zero on cast."""

    kind = FieldKind.INTEGER

    def cast(self, value: Any, data: Any = None) -> Any:
        value = super().cast(value, data)
        if isinstance(value, float) and math.isfinite(value):
            return int(value)
        return value

    def validate(self, value: Any, data: Any = None) -> Any:
        value = super().validate(value, data)
        if isinstance(value, ValidationError) or value is None:
            return value
        if isinstance(value, float):
            if not value.is_integer():
                return ValidationError(
                    f"`{value}` is not an integer!", path=self.name, value=value
                )
            return int(value)
        return value


_FALSE_STRINGS = ("", "false", "0")


def _to_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() not in _FALSE_STRINGS
    return bool(value)


class Boolean(SchemaType):
    """Boolean type. Stored as ``1``/``0``."""

    kind = FieldKind.BOOLEAN

    def cast(self, value: Any, data: Any = None) -> Any:
        value = super().cast(value, data)
        if value is None or isinstance(value, bool):
            return value
        return _to_bool(value)

    def validate(self, value: Any, data: Any = None) -> Any:
        value = super().validate(value, data)
        if isinstance(value, ValidationError):
            return value
        if value is not None and not isinstance(value, bool):
            return ValidationError(f"`{value}` is not a boolean!", path=self.name, value=value)
        return value

    def parse(self, value: Any, data: Any = None) -> Any:
        if value is None:
            return None
        return _to_bool(value)

    def value(self, value: Any, data: Any = None) -> Any:
        if isinstance(value, bool):
            return int(value)
        return value


def _to_datetime(value: Any) -> Any:
    """Build a datetime from epoch milliseconds or ISO-8601 text.

    Unparsable input is returned unchanged so validation can reject it.
    """
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, time(), tzinfo=timezone.utc)
    if _is_number(value):
        try:
            return EPOCH + timedelta(milliseconds=value)
        except (OverflowError, ValueError):
            return value
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return value
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed
    return value


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_millis(value: datetime) -> int:
    """Epoch milliseconds of a datetime (naive values are taken as UTC)."""
    return (_as_utc(value) - EPOCH) // timedelta(milliseconds=1)


def to_iso(value: datetime) -> str:
    """ISO-8601 with millisecond precision and a ``Z`` suffix."""
    value = _as_utc(value)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


class Date(SchemaType):
    """Date type backed by ``datetime``. Stored as an ISO-8601 string."""

    kind = FieldKind.DATE

    def cast(self, value: Any, data: Any = None) -> Any:
        value = super().cast(value, data)
        if value is None:
            return value
        return _to_datetime(value)

    def validate(self, value: Any, data: Any = None) -> Any:
        value = super().validate(value, data)
        if isinstance(value, ValidationError):
            return value
        if value is not None and not isinstance(value, datetime):
            return ValidationError(f"`{value}` is not a valid date!", path=self.name, value=value)
        return value

    def match(self, value: Any, query: Any, data: Any = None) -> bool:
        if value is None or query is None:
            return False
        value = _to_datetime(value)
        query = _to_datetime(query)
        if not isinstance(value, datetime) or not isinstance(query, datetime):
            return False
        return to_millis(value) == to_millis(query)

    def compare(self, a: Any, b: Any) -> int:
        if a is None:
            return 0 if b is None else -1
        if b is None:
            return 1
        a, b = _to_datetime(a), _to_datetime(b)
        if not isinstance(a, datetime) or not isinstance(b, datetime):
            return super().compare(a, b)
        return _sign(to_millis(a) - to_millis(b))

    def parse(self, value: Any, data: Any = None) -> Any:
        if not value:
            return None
        return _to_datetime(value)

    def value(self, value: Any, data: Any = None) -> Any:
        if isinstance(value, datetime):
            return to_iso(value)
        return value


class Array(SchemaType):
    """Array type whose elements are handled by a child type.

    Attributes:
        child: SchemaType applied to every element
    """

    kind = FieldKind.ARRAY

    def __init__(
        self,
        name: str = "",
        child: SchemaType | None = None,
        **options: Any,
    ) -> None:
        super().__init__(name, **{"default": list, **options})
        self.child = child if child is not None else SchemaType(name)

    def cast(self, value: Any, data: Any = None) -> Any:
        value = super().cast(value, data)
        if value is None:
            return None
        if isinstance(value, tuple):
            value = list(value)
        elif not isinstance(value, list):
            value = [value]
        return [self.child.cast(item, data) for item in value]

    def validate(self, value: Any, data: Any = None) -> Any:
        """Validate the array and every element; the first element error wins."""
        value = super().validate(value, data)
        if isinstance(value, ValidationError) or value is None:
            return value
        if not isinstance(value, list):
            return ValidationError(f"`{value}` is not an array!", path=self.name, value=value)

        result = []
        for item in value:
            checked = self.child.validate(item, data)
            if isinstance(checked, ValidationError):
                return checked
            result.append(checked)
        return result

    def compare(self, a: Any, b: Any) -> int:
        if a is None:
            return 0 if b is None else -1
        if b is None:
            return 1

        for x, y in zip(a, b):
            result = self.child.compare(x, y)
            if result:
                return result

        return _sign(len(a) - len(b))

    def match(self, value: Any, query: Any, data: Any = None) -> bool:
        """A list query matches element-wise; a scalar matches any element."""
        if value is None:
            return query is None
        if isinstance(query, list):
            return len(value) == len(query) and all(
                self.child.match(x, y, data) for x, y in zip(value, query)
            )
        return any(self.child.match(item, query, data) for item in value)

    def parse(self, value: Any, data: Any = None) -> Any:
        if value is None:
            return []
        return [self.child.parse(item, data) for item in value]

    def value(self, value: Any, data: Any = None) -> Any:
        if value is None:
            return []
        return [self.child.value(item, data) for item in value]

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["child"] = self.child.to_dict()
        return result


class Object(SchemaType):
    """Structural object type; the implicit type of nested shapes."""

    kind = FieldKind.OBJECT

    def __init__(self, name: str = "", **options: Any) -> None:
        super().__init__(name, **{"default": dict, **options})

    def validate(self, value: Any, data: Any = None) -> Any:
        value = super().validate(value, data)
        if isinstance(value, ValidationError):
            return value
        if value is not None and not isinstance(value, Mapping):
            return ValidationError(f"`{value}` is not an object!", path=self.name, value=value)
        return value


class Enum(SchemaType):
    """String restricted to a fixed set of values.

    Attributes:
        values: Allowed values, in declaration order
    """

    kind = FieldKind.ENUM

    def __init__(self, name: str = "", values: Any = None, **options: Any) -> None:
        super().__init__(name, **options)
        if not values:
            raise SchemaError(f"values required for enum path `{name}`", path=name)
        self.values = tuple(values)

    def validate(self, value: Any, data: Any = None) -> Any:
        value = super().validate(value, data)
        if isinstance(value, ValidationError):
            return value
        if value is not None and value not in self.values:
            allowed = ", ".join(str(v) for v in self.values)
            return ValidationError(
                f"`{value}` is not a valid value for `{self.name}`! Expected one of: {allowed}",
                path=self.name,
                value=value,
            )
        return value

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["values"] = list(self.values)
        return result


class Identifier(SchemaType):
    """Document identifier. A required identifier is generated when absent."""

    kind = FieldKind.IDENTIFIER

    def cast(self, value: Any, data: Any = None) -> Any:
        value = super().cast(value, data)
        if value is None and self.required:
            return new_id()
        return value

    def validate(self, value: Any, data: Any = None) -> Any:
        value = super().validate(value, data)
        if isinstance(value, ValidationError):
            return value
        if value is not None and (not isinstance(value, str) or not value):
            return ValidationError(
                f"`{value}` is not a valid identifier!", path=self.name, value=value
            )
        return value


class Virtual(SchemaType):
    """Computed path with no stored representation.

    The getter receives the document (or plain record) being processed and
    runs during the getter pass. Setter, import and export passes drop the
    path.

    Example:
        >>> schema.virtual("name.full").get(
        ...     lambda doc: f"{doc['name']['first']} {doc['name']['last']}"
        ... )
    """

    kind = FieldKind.VIRTUAL

    def __init__(
        self,
        name: str = "",
        getter: Callable[[Any], Any] | None = None,
        **options: Any,
    ) -> None:
        super().__init__(name, **options)
        self.getter = getter

    def get(self, fn: Callable[[Any], Any]) -> Virtual:
        """Attach the getter. Returns self for chaining."""
        self.getter = fn
        return self

    def cast(self, value: Any, data: Any = None) -> Any:
        if self.getter is None:
            return None
        return self.getter(data)

    def validate(self, value: Any, data: Any = None) -> Any:
        return None

    def parse(self, value: Any, data: Any = None) -> Any:
        return None

    def value(self, value: Any, data: Any = None) -> Any:
        return None


_PYTHON_TAGS: dict[type, type[SchemaType]] = {
    str: String,
    float: Number,
    int: Integer,
    bool: Boolean,
    datetime: Date,
    date: Date,
    list: Array,
    tuple: Array,
    dict: Object,
}

_KIND_TYPES: dict[FieldKind, type[SchemaType]] = {
    FieldKind.ANY: SchemaType,
    FieldKind.STRING: String,
    FieldKind.NUMBER: Number,
    FieldKind.INTEGER: Integer,
    FieldKind.BOOLEAN: Boolean,
    FieldKind.DATE: Date,
    FieldKind.ARRAY: Array,
    FieldKind.OBJECT: Object,
    FieldKind.ENUM: Enum,
    FieldKind.IDENTIFIER: Identifier,
    FieldKind.VIRTUAL: Virtual,
}


def type_for_tag(tag: Any) -> type[SchemaType] | None:
    """Resolve a type tag to a SchemaType class.

    Args:
        tag: SchemaType subclass, Python builtin, FieldKind or FieldKind string

    Returns:
        The SchemaType class, or None if ``tag`` is not a type tag
    """
    if isinstance(tag, type):
        if issubclass(tag, SchemaType):
            return tag
        return _PYTHON_TAGS.get(tag)
    if isinstance(tag, FieldKind):
        return _KIND_TYPES[tag]
    if isinstance(tag, str):
        try:
            return _KIND_TYPES[FieldKind.from_str(tag)]
        except ValueError:
            return None
    return None
