"""
Unit tests for the model registry.

Tests cover:
- Model and node registration
- Registry freezing
- Fingerprint generation
- Duplicate detection
"""

import json

import pytest

from docstore_sdk.model import Model
from docstore_sdk.node import Node
from docstore_sdk.registry import (
    DuplicateRegistrationError,
    ModelRegistry,
    RegistryFrozenError,
)
from docstore_sdk.store.memory import InMemoryStore


@pytest.fixture
def store():
    """Unconnected in-memory store (registration never touches it)."""
    return InMemoryStore()


class TestModelRegistry:
    """Tests for ModelRegistry."""

    def test_register_model(self, store):
        """Can register and look up a model."""
        registry = ModelRegistry()
        User = Model("User", {"name": str}, store, "app")

        registry.register_model(User)

        assert registry.get_model("User") is User
        assert registry.get_model("Task") is None
        assert list(registry.models()) == [User]
        assert len(registry) == 1

    def test_register_node(self):
        """Node classes are keyed by their type."""
        registry = ModelRegistry()

        class Tag(Node):
            _type = "tag"
            _schema = {"name": str}

        registry.register_node(Tag)
        registry.register_node(Tag)

        assert registry.get_node("tag") is Tag
        assert list(registry.nodes()) == [Tag]

    def test_duplicate_model_raises(self, store):
        """Registering a model name twice raises."""
        registry = ModelRegistry()
        registry.register_model(Model("User", {}, store, "app"))

        with pytest.raises(DuplicateRegistrationError, match="Model 'User' already registered"):
            registry.register_model(Model("User", {}, store, "app"))

    def test_duplicate_node_type_raises(self):
        """Two classes with the same type conflict."""
        registry = ModelRegistry()

        class First(Node):
            _type = "thing"

        class Second(Node):
            _type = "thing"

        registry.register_node(First)

        with pytest.raises(DuplicateRegistrationError, match="Node type 'thing'"):
            registry.register_node(Second)


class TestFreeze:
    """Tests for freezing and fingerprints."""

    def test_frozen_rejects_registration(self, store):
        """A frozen registry cannot be modified."""
        registry = ModelRegistry()
        registry.freeze()

        assert registry.frozen
        with pytest.raises(RegistryFrozenError):
            registry.register_model(Model("User", {}, store, "app"))

    def test_freeze_twice_raises(self):
        """freeze() can only run once."""
        registry = ModelRegistry()
        registry.freeze()

        with pytest.raises(RegistryFrozenError, match="already frozen"):
            registry.freeze()

    def test_fingerprint_format(self, store):
        """Fingerprints are prefixed SHA-256 digests."""
        registry = ModelRegistry()
        registry.register_model(Model("User", {"name": str}, store, "app"))

        fingerprint = registry.freeze()

        assert fingerprint.startswith("sha256:")
        assert len(fingerprint) == len("sha256:") + 64
        assert registry.fingerprint == fingerprint

    def test_fingerprint_is_deterministic(self, store):
        """Same shapes produce the same fingerprint regardless of order."""
        first, second = ModelRegistry(), ModelRegistry()
        first.register_model(Model("User", {"name": str}, store, "app"))
        first.register_model(Model("Task", {"title": str}, store, "app"))
        second.register_model(Model("Task", {"title": str}, store, "app"))
        second.register_model(Model("User", {"name": str}, store, "app"))

        assert first.freeze() == second.freeze()

    def test_fingerprint_changes_with_schema(self, store):
        """Different shapes produce different fingerprints."""
        first, second = ModelRegistry(), ModelRegistry()
        first.register_model(Model("User", {"name": str}, store, "app"))
        second.register_model(Model("User", {"name": int}, store, "app"))

        assert first.freeze() != second.freeze()

    def test_to_json(self, store):
        """to_json describes models and nodes."""
        registry = ModelRegistry()
        registry.register_model(Model("User", {"name": str}, store, "app"))

        data = json.loads(registry.to_json())

        assert data["models"][0]["name"] == "User"
        assert data["models"][0]["category"] == "user"
        assert data["nodes"] == []
