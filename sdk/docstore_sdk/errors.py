"""
Error types for the DocStore SDK.

This module defines all exception types raised by the SDK:
- DocStoreError: Base exception
- DomainError: Caller-actionable lifecycle failures (missing/unknown IDs,
  required paths)
- ValidationError: A schema type rejected a value
- SchemaError: Invalid schema definition
- StoreError: Failures surfaced by a store adapter

Invariants:
    - All errors inherit from DocStoreError
    - Every error carries a stable ``code`` for programmatic handling
    - ValidationError instances are *returned* by SchemaType.validate and only
      raised by the pipeline that detects them
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class DocStoreError(Exception):
    """Base exception for all DocStore SDK errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "DOCSTORE_ERROR"
        self.details = details or {}


class DomainError(DocStoreError):
    """A lifecycle operation was asked to do something impossible.

    Raised synchronously, before any store call is issued.
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, code=code or "DOMAIN_ERROR", details=details)


class MissingIdError(DomainError):
    """Document has no identifier.

    Raised when:
    - save() is given a document without ``_id``
    - update_by_id() / remove() is called with a falsy id
    """

    def __init__(self, message: str = "ID is not defined") -> None:
        super().__init__(message, code="MISSING_ID")


class DocumentNotFoundError(DomainError):
    """No document exists for the given identifier."""

    def __init__(self, document_id: Any, category: Optional[str] = None) -> None:
        super().__init__(
            f"ID `{document_id}` does not exist",
            code="DOCUMENT_NOT_FOUND",
            details={"document_id": document_id, "category": category},
        )
        self.document_id = document_id
        self.category = category


class RequiredPathError(DomainError):
    """A required path is still missing after defaults were applied."""

    def __init__(self, path: str, type_name: Optional[str] = None) -> None:
        msg = f"`{path}` is required but missing"
        if type_name:
            msg += f" in '{type_name}'"
        super().__init__(
            msg,
            code="REQUIRED_PATH",
            details={"path": path, "type_name": type_name},
        )
        self.path = path
        self.type_name = type_name


class ValidationError(DocStoreError):
    """A schema type rejected a value.

    Attributes:
        path: Schema path that failed
        value: The offending value
    """

    def __init__(
        self,
        message: str,
        path: Optional[str] = None,
        value: Any = None,
    ) -> None:
        super().__init__(
            message,
            code="VALIDATION_ERROR",
            details={"path": path, "value": repr(value)},
        )
        self.path = path
        self.value = value


class SchemaError(DocStoreError):
    """Schema definition error.

    Raised when:
    - A path descriptor cannot be resolved to a type
    - A hook is registered for an unknown event
    - A static/instance method is not callable
    """

    def __init__(self, message: str, path: Optional[str] = None) -> None:
        super().__init__(message, code="SCHEMA_ERROR", details={"path": path})
        self.path = path


class StoreError(DocStoreError):
    """Opaque failure reported by a store adapter.

    Attributes:
        status: Backend status code, if any
        body: Raw backend response, if any
    """

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        body: Any = None,
        code: Optional[str] = None,
    ) -> None:
        super().__init__(
            message,
            code=code or "STORE_ERROR",
            details={"status": status, "body": body},
        )
        self.status = status
        self.body = body


class NotFoundError(StoreError):
    """Record not found in the store.

    Translated into ``None`` by get()/find_by_id().
    """

    def __init__(
        self,
        collection: str,
        category: str,
        record_id: Any,
    ) -> None:
        super().__init__(
            f"Record '{record_id}' not found in {collection}/{category}",
            status=404,
            code="NOT_FOUND",
        )
        self.collection = collection
        self.category = category
        self.record_id = record_id


class StoreConnectionError(StoreError):
    """Failed to reach the store backend.

    Raised when:
    - Adapter is used before connect()
    - Backend is unreachable
    - Request times out
    """

    def __init__(self, message: str, address: Optional[str] = None) -> None:
        super().__init__(message, code="CONNECTION_ERROR")
        self.details["address"] = address
        self.address = address
