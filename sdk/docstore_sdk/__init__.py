"""
DocStore Python SDK - object-document mapping for search/document stores.

This SDK gives schema-defined structure to documents kept in an external
document index:
- Schema and SchemaType definitions (casting, validation, wire forms)
- Model / Document active-record operations with lifecycle hooks
- Node / Relationship declarative entity types
- Store adapters (Elasticsearch-compatible HTTP, in-memory)

Example:
    >>> from docstore_sdk import Database, InMemoryStore, Schema
    >>>
    >>> schema = Schema({"name": {"first": str, "last": str}, "age": int})
    >>> schema.virtual("name.full").get(
    ...     lambda doc: f"{doc['name']['first']} {doc['name']['last']}"
    ... )
    >>>
    >>> async with Database(InMemoryStore(), "app") as db:
    ...     User = db.model("User", schema)
    ...     user = await User.save({"name": {"first": "John", "last": "Doe"}, "age": 20})
    ...     user.name["full"]
    'John Doe'

Invariants:
    - Validation happens before any store write
    - Hooks run sequentially around save and remove
    - Entity types are owned by one Database

Version: 1.0.0
"""

__version__ = "1.0.0"

from .config import Settings, StoreBackend, setup_logging
from .database import Database
from .document import Document
from .errors import (
    DocStoreError,
    DocumentNotFoundError,
    DomainError,
    MissingIdError,
    NotFoundError,
    RequiredPathError,
    SchemaError,
    StoreConnectionError,
    StoreError,
    ValidationError,
)
from .model import Model
from .node import Node, Relationship
from .query import build_query
from .registry import DuplicateRegistrationError, ModelRegistry, RegistryFrozenError
from .schema import Schema
from .store import HttpStore, InMemoryStore, Record, SearchResult, StoreAdapter
from .types import (
    Array,
    Boolean,
    Date,
    Enum,
    FieldKind,
    Identifier,
    Integer,
    Number,
    Object,
    SchemaType,
    String,
    Virtual,
)

__all__ = [
    # Version
    "__version__",
    # Schema
    "Schema",
    "SchemaType",
    "FieldKind",
    "String",
    "Number",
    "Integer",
    "Boolean",
    "Date",
    "Array",
    "Object",
    "Enum",
    "Identifier",
    "Virtual",
    "build_query",
    # Entities
    "Database",
    "Model",
    "Document",
    "Node",
    "Relationship",
    "ModelRegistry",
    # Store
    "StoreAdapter",
    "Record",
    "SearchResult",
    "HttpStore",
    "InMemoryStore",
    # Config
    "Settings",
    "StoreBackend",
    "setup_logging",
    # Errors
    "DocStoreError",
    "DomainError",
    "MissingIdError",
    "DocumentNotFoundError",
    "RequiredPathError",
    "ValidationError",
    "SchemaError",
    "StoreError",
    "NotFoundError",
    "StoreConnectionError",
    "RegistryFrozenError",
    "DuplicateRegistrationError",
]
