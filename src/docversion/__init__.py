"""
docversion: version history for text documents.

Line-level diffs, gapless version numbering, comparison, restore,
audit-trail projections and bounded retention.
"""

from .config import DocVersionConfig, VersioningConfig
from .core import (
    AuditEntry,
    Author,
    Diff,
    DiffSummary,
    NotFoundError,
    ValidationError,
    Version,
    VersioningError,
    WriteConflict,
)
from .version import (
    AuditTrailProjector,
    DiffEngine,
    InMemoryVersionStore,
    JsonFileVersionStore,
    VersionStore,
    VersioningService,
)

__version__ = "0.1.0"

__all__ = [
    "AuditEntry",
    "AuditTrailProjector",
    "Author",
    "Diff",
    "DiffEngine",
    "DiffSummary",
    "DocVersionConfig",
    "InMemoryVersionStore",
    "JsonFileVersionStore",
    "NotFoundError",
    "ValidationError",
    "Version",
    "VersionStore",
    "VersioningConfig",
    "VersioningError",
    "VersioningService",
    "WriteConflict",
]
