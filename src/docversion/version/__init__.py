"""
Document versioning and change tracking modules.
"""

from .audit import AuditTrailProjector, entries_to_csv, entries_to_json, export_to_json
from .diff_engine import DiffEngine
from .store import InMemoryVersionStore, JsonFileVersionStore, VersionStore
from .version_control import VersioningService

__all__ = [
    "AuditTrailProjector",
    "DiffEngine",
    "InMemoryVersionStore",
    "JsonFileVersionStore",
    "VersionStore",
    "VersioningService",
    "entries_to_csv",
    "entries_to_json",
    "export_to_json",
]
