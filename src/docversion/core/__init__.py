"""
Core data model and error types.
"""

from .exceptions import (
    ConflictError,
    DiffError,
    NotFound,
    NotFoundError,
    OperationCancelled,
    StorageError,
    ValidationError,
    VersioningError,
    WriteConflict,
)
from .models import (
    AuditAction,
    AuditEntry,
    Author,
    Change,
    ChangeType,
    Diff,
    DiffSummary,
    HistoryEntry,
    HistoryExport,
    Version,
    VersionComparison,
    VersionRef,
)

__all__ = [
    "AuditAction",
    "AuditEntry",
    "Author",
    "Change",
    "ChangeType",
    "ConflictError",
    "Diff",
    "DiffError",
    "DiffSummary",
    "HistoryEntry",
    "HistoryExport",
    "NotFound",
    "NotFoundError",
    "OperationCancelled",
    "StorageError",
    "ValidationError",
    "Version",
    "VersionComparison",
    "VersionRef",
    "VersioningError",
    "WriteConflict",
]
