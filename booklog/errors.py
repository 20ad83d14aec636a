# booklog/errors.py
"""
Error hierarchy for the library API.

Every error carries a machine-readable ``code``, a ``category`` and the
HTTP status it maps to. The global handlers in
``booklog.error_handlers`` turn any ``BooklogError`` into a JSON body built
by ``to_response()``. The body keeps the human message under ``error`` so
simple clients can print it directly.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional


class ErrorCategory(str, Enum):
    """High-level error categories for routing and handling."""
    VALIDATION = "validation"
    RESOURCE_NOT_FOUND = "resource_not_found"
    CONFLICT = "conflict"
    STORAGE = "storage"
    INTERNAL = "internal"


class BooklogError(Exception):
    """Base exception for all library API errors."""

    def __init__(
        self,
        message: str,
        code: str,
        category: ErrorCategory,
        http_status: int = 500,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.category = category
        self.http_status = http_status

    def to_response(self) -> Dict[str, Any]:
        """Convert to the REST error envelope."""
        return {
            "error": self.message,
            "code": self.code,
            "category": self.category.value,
        }


# ─── Client errors (400-level) ──────────────────────────────────

class BookValidationError(BooklogError):
    """A body or query failed schema validation.

    ``details`` holds one ``{field, message, type}`` entry per problem.
    ``extra`` is merged into the response body (the import route uses it to
    echo the offending item back).
    """

    def __init__(
        self,
        message: str = "Validation failed",
        details: Optional[List[Dict[str, Any]]] = None,
        extra: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, "VALIDATION_ERROR", ErrorCategory.VALIDATION, 400)
        self.details = details or []
        self.extra = extra or {}

    def to_response(self) -> Dict[str, Any]:
        body = super().to_response()
        body["details"] = self.details
        body.update(self.extra)
        return body


class BookNotFoundError(BooklogError):
    def __init__(self, book_id: str):
        super().__init__("Not found", "NOT_FOUND", ErrorCategory.RESOURCE_NOT_FOUND, 404)
        self.book_id = book_id


class DuplicateIsbnError(BooklogError):
    """A new book shares its normalised ISBN with a stored one."""

    def __init__(self, existing_id: str):
        super().__init__("Duplicate ISBN", "DUPLICATE_ISBN", ErrorCategory.CONFLICT, 409)
        self.existing_id = existing_id

    def to_response(self) -> Dict[str, Any]:
        body = super().to_response()
        body["existingId"] = self.existing_id
        return body


class PayloadTooLargeError(BooklogError):
    def __init__(self, limit: int):
        super().__init__(
            f"Request body exceeds {limit} bytes",
            "PAYLOAD_TOO_LARGE", ErrorCategory.VALIDATION, 413,
        )
        self.limit = limit


# ─── Storage errors (500-level) ─────────────────────────────────

class StorageError(BooklogError):
    """Reading or writing the backing file failed."""

    def __init__(self, message: str, code: str = "STORAGE_ERROR"):
        super().__init__(message, code, ErrorCategory.STORAGE, 500)


class StorageCorruptError(StorageError):
    """The backing file exists but does not hold a valid library document.

    Raised at startup so the service never runs against a store it could
    not load.
    """

    def __init__(self, path: str, reason: str):
        super().__init__(f"Library file {path} is unreadable: {reason}", "STORAGE_CORRUPT")
        self.path = path
        self.reason = reason
