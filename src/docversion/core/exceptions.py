"""
Error taxonomy for the document version store.

Each error carries the HTTP status an outer API layer is expected to map it
to, so wrappers never need to inspect error messages.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class VersioningError(Exception):
    """Base class for all version store errors."""

    http_status: int = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "error": type(self).__name__,
            "message": self.message,
            "details": self.details,
        }


class ValidationError(VersioningError):
    """A required field is missing or a value is out of bounds."""

    http_status = 400


class NotFoundError(VersioningError):
    """Unknown document or version."""

    http_status = 404


NotFound = NotFoundError


class ConflictError(VersioningError):
    """A store already holds a record for the claimed version slot."""

    http_status = 409


class WriteConflict(VersioningError):
    """Version numbering contention persisted past the retry bound."""

    http_status = 409


class StorageError(VersioningError):
    """The persistence backend failed. Never retried."""

    http_status = 503


class DiffError(VersioningError):
    """Malformed or non-text input to the differ."""

    http_status = 422


class OperationCancelled(VersioningError):
    """A long-running read was cancelled or ran past its timeout."""

    http_status = 499
