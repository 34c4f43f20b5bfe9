"""
Model registry for the DocStore SDK.

This module provides the registry of entity types owned by one Database:
- Registering models (by name) and node classes (by type)
- Lookup by name
- Schema fingerprinting

There is no process-wide registry; every Database owns its own instance.
The registry can be frozen once the application has declared its types.

Example:
    >>> registry = ModelRegistry()
    >>> registry.register_model(User)
    >>> registry.freeze()
    'sha256:...'
"""

from __future__ import annotations

import hashlib
import json
import threading
from collections.abc import Iterator
from typing import TYPE_CHECKING

from .errors import DocStoreError

if TYPE_CHECKING:
    from .model import Model
    from .node import Node


class RegistryFrozenError(DocStoreError):
    """Registry is frozen and cannot be modified."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="REGISTRY_FROZEN")


class DuplicateRegistrationError(DocStoreError):
    """A model or node type with this name is already registered."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="DUPLICATE_REGISTRATION")


class ModelRegistry:
    """Registry of the models and node classes of one Database.

    Example:
        >>> registry = ModelRegistry()
        >>> registry.register_model(User)
        >>> registry.register_node(Relationship)
        >>> registry.get_model("User")
        Model('User', collection='app')
    """

    def __init__(self) -> None:
        """Initialize empty registry."""
        self._models: dict[str, Model] = {}
        self._nodes: dict[str, type[Node]] = {}
        self._frozen = False
        self._fingerprint: str | None = None
        self._lock = threading.Lock()

    @property
    def frozen(self) -> bool:
        """Whether registry is frozen."""
        return self._frozen

    @property
    def fingerprint(self) -> str | None:
        """Schema fingerprint (available after freeze)."""
        return self._fingerprint

    def register_model(self, model: Model) -> None:
        """Register a model.

        Raises:
            RegistryFrozenError: If registry is frozen
            DuplicateRegistrationError: If the name is already registered
        """
        with self._lock:
            if self._frozen:
                raise RegistryFrozenError("Cannot register: registry is frozen")

            if model.name in self._models:
                raise DuplicateRegistrationError(f"Model '{model.name}' already registered")

            self._models[model.name] = model

    def register_node(self, node_cls: type[Node]) -> None:
        """Register a node class under its type.

        Raises:
            RegistryFrozenError: If registry is frozen
            DuplicateRegistrationError: If another class has the same type
        """
        with self._lock:
            if self._frozen:
                raise RegistryFrozenError("Cannot register: registry is frozen")

            node_type = node_cls.get_type()
            existing = self._nodes.get(node_type)
            if existing is not None and existing is not node_cls:
                raise DuplicateRegistrationError(
                    f"Node type '{node_type}' already registered as '{existing.__name__}'"
                )

            self._nodes[node_type] = node_cls

    def get_model(self, name: str) -> Model | None:
        """Get model by name."""
        return self._models.get(name)

    def get_node(self, node_type: str) -> type[Node] | None:
        """Get node class by type."""
        return self._nodes.get(node_type)

    def models(self) -> Iterator[Model]:
        """Iterate over all models."""
        yield from list(self._models.values())

    def nodes(self) -> Iterator[type[Node]]:
        """Iterate over all node classes."""
        yield from list(self._nodes.values())

    def __len__(self) -> int:
        return len(self._models) + len(self._nodes)

    def freeze(self) -> str:
        """Freeze registry and compute fingerprint.

        Returns:
            Schema fingerprint

        Raises:
            RegistryFrozenError: If already frozen
        """
        with self._lock:
            if self._frozen:
                raise RegistryFrozenError("Registry is already frozen")

            self._fingerprint = self._compute_fingerprint()
            self._frozen = True
            return self._fingerprint

    def _compute_fingerprint(self) -> str:
        """Compute SHA-256 fingerprint."""
        canonical = json.dumps(self.to_dict(), sort_keys=True, separators=(",", ":"))
        hash_bytes = hashlib.sha256(canonical.encode("utf-8")).hexdigest()
        return f"sha256:{hash_bytes}"

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "models": [self._models[name].to_dict() for name in sorted(self._models)],
            "nodes": [
                {"type": node_type, "schema": self._nodes[node_type].get_schema().to_dict()}
                for node_type in sorted(self._nodes)
            ],
        }

    def to_json(self, indent: int | None = 2) -> str:
        """Convert to JSON string."""
        return json.dumps(self.to_dict(), indent=indent, sort_keys=True)
