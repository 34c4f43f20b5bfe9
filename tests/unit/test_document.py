"""
Unit tests for Document and EventEmitter.

Tests cover:
- Attribute and item access, dotted get()
- Instance methods bound from the schema
- to_object() copying (virtual values by reference)
- Event listener registration and emission
"""

import json
import threading
from datetime import datetime, timezone

import pytest

from docstore_sdk.document import Document
from docstore_sdk.errors import DocStoreError
from docstore_sdk.events import EventEmitter
from docstore_sdk.schema import Schema


def make_document_class(schema):
    """Unbound Document subclass for a schema."""
    return type("Person", (Document,), {"_schema": schema})


class TestDocumentAccess:
    """Tests for field access."""

    @pytest.fixture
    def Person(self):
        """Document class for a person schema."""
        schema = Schema({"name": {"first": str, "last": str}, "nickname": str})
        schema.method("initials", lambda doc: doc.name["first"][0] + doc.name["last"][0])
        return make_document_class(schema)

    def test_attribute_and_item_access(self, Person):
        """Fields are reachable as attributes and items."""
        doc = Person({"name": {"first": "John", "last": "Doe"}})

        assert doc.name == {"first": "John", "last": "Doe"}
        assert doc["name"] is doc.name
        assert "name" in doc
        assert doc.keys() == ["name"]

        doc["age"] = 3
        assert doc.age == 3
        del doc["age"]
        assert "age" not in doc

    def test_declared_path_absent_is_none(self, Person):
        """Declared but unset paths read as None; unknown ones raise."""
        doc = Person()

        assert doc.nickname is None
        with pytest.raises(AttributeError):
            doc.unknown

    def test_dotted_get(self, Person):
        """get() follows dotted paths."""
        doc = Person({"name": {"first": "John"}})

        assert doc.get("name.first") == "John"
        assert doc.get("name.last", "n/a") == "n/a"

    def test_methods_are_bound(self, Person):
        """Schema methods receive the document as self."""
        doc = Person({"name": {"first": "John", "last": "Doe"}})
        assert doc.initials() == "JD"

    def test_equality(self, Person):
        """Documents of the same class compare by fields."""
        assert Person({"a": 1}) == Person({"a": 1})
        assert Person({"a": 1}) != Person({"a": 2})

    @pytest.mark.asyncio
    async def test_unbound_save(self, Person):
        """Persistence on an unbound document fails clearly."""
        with pytest.raises(DocStoreError) as exc_info:
            await Person({"_id": "x"}).save()

        assert exc_info.value.code == "UNBOUND_DOCUMENT"


class TestToObject:
    """Tests for to_object and to_json."""

    def test_deep_copy(self):
        """Nested values are copied."""
        Person = make_document_class(Schema({"tags": [str]}))
        doc = Person({"tags": ["a"]})

        clone = doc.to_object()
        clone["tags"].append("b")

        assert doc.tags == ["a"]

    def test_virtual_values_by_reference(self):
        """Virtual values are shared, even when they cannot be deep-copied."""
        schema = Schema({"name": str})
        schema.virtual("lock")
        Person = make_document_class(schema)
        lock = threading.Lock()
        doc = Person({"name": "John", "lock": lock})

        clone = doc.to_object()

        assert clone["lock"] is lock
        assert clone["name"] == "John"

    def test_to_json(self):
        """to_json serialises the exported form."""
        schema = Schema({"born": datetime, "active": bool})
        Person = make_document_class(schema)
        doc = Person({"_id": "x", "born": datetime(2014, 1, 1, tzinfo=timezone.utc), "active": True})

        data = json.loads(doc.to_json())

        assert data == {"_id": "x", "born": "2014-01-01T00:00:00.000Z", "active": 1}

    def test_matches(self):
        """matches() uses the schema's client-side filter."""
        Person = make_document_class(Schema({"age": float}))
        doc = Person({"age": 20})

        assert doc.matches({"age": {"gte": 18}})
        assert not doc.matches({"age": 21})


class TestEventEmitter:
    """Tests for EventEmitter."""

    def test_emit_in_order(self):
        """Listeners run in registration order with the emitted args."""
        emitter = EventEmitter()
        calls = []

        emitter.on("insert", lambda doc: calls.append(("a", doc)))
        emitter.on("insert", lambda doc: calls.append(("b", doc)))

        assert emitter.emit("insert", 1)
        assert calls == [("a", 1), ("b", 1)]

    def test_emit_without_listeners(self):
        """Emitting to nobody returns False."""
        assert not EventEmitter().emit("remove", None)

    def test_once(self):
        """once() listeners fire a single time."""
        emitter = EventEmitter()
        calls = []
        emitter.once("update", calls.append)

        emitter.emit("update", 1)
        emitter.emit("update", 2)

        assert calls == [1]

    def test_off(self):
        """off() removes one listener or all of an event."""
        emitter = EventEmitter()
        first, second = (lambda doc: None), (lambda doc: None)
        emitter.on("insert", first)
        emitter.on("insert", second)

        emitter.off("insert", first)
        assert emitter.listeners("insert") == [second]

        emitter.off("insert")
        assert emitter.listeners("insert") == []

    def test_on_returns_listener(self):
        """on() returns the listener it registered."""
        emitter = EventEmitter()

        def listener(doc):
            pass

        assert emitter.on("insert", listener) is listener

    def test_listener_errors_propagate(self):
        """A raising listener propagates to the emitter."""
        emitter = EventEmitter()

        def boom(doc):
            raise RuntimeError("boom")

        emitter.on("insert", boom)

        with pytest.raises(RuntimeError, match="boom"):
            emitter.emit("insert", None)
