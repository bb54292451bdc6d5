"""
Audit trail projections over version history.

Projections are recomputed from the store on every call and never cached,
so they always reflect what is currently retained.
"""

from __future__ import annotations

import csv
import io
import json
from typing import TYPE_CHECKING, Iterable, List, Optional, Sequence, Union

from ..core.models import AuditAction, AuditEntry, HistoryEntry, HistoryExport, Version

if TYPE_CHECKING:
    from .version_control import VersioningService


CSV_COLUMNS = [
    "action",
    "timestamp",
    "author_id",
    "author_name",
    "version_number",
    "version_id",
    "comment",
    "added",
    "removed",
    "modified",
    "total",
]


def to_audit_entry(version: Version) -> AuditEntry:
    """Version 1 is the creation; everything after it is a modification."""
    return AuditEntry(
        action=AuditAction.CREATED if version.version_number == 1 else AuditAction.MODIFIED,
        timestamp=version.timestamp,
        author=version.author,
        version_number=version.version_number,
        version_id=version.id,
        comment=version.comment,
        changes=version.diff_summary,
    )


def to_history_entry(version: Version) -> HistoryEntry:
    return HistoryEntry(
        version_id=version.id,
        version_number=version.version_number,
        timestamp=version.timestamp,
        author=version.author,
        comment=version.comment,
        changes=version.diff_summary,
    )


class AuditTrailProjector:
    """Read-only view turning a document's versions into audit records."""

    def __init__(self, service: VersioningService):
        self.service = service

    def audit_trail(self, document_id: str) -> List[AuditEntry]:
        return [to_audit_entry(v) for v in self.service.get_versions(document_id)]

    def history(
        self,
        document_id: str,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[HistoryEntry]:
        versions = self.service.get_versions(document_id, limit=limit, offset=offset)
        return [to_history_entry(v) for v in versions]


def entries_to_json(entries: Iterable[Union[AuditEntry, HistoryEntry]], indent: int = 2) -> str:
    """Serialize audit or history entries as a JSON array."""
    return json.dumps([entry.to_dict() for entry in entries], indent=indent)


def entries_to_csv(entries: Sequence[AuditEntry]) -> str:
    """
    Serialize audit entries as CSV with a header row.

    Author and change counts are flattened into their own columns.
    """
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=CSV_COLUMNS, lineterminator="\n")
    writer.writeheader()
    for entry in entries:
        writer.writerow({
            "action": entry.action.value,
            "timestamp": entry.timestamp.isoformat(),
            "author_id": entry.author.id,
            "author_name": entry.author.display_name,
            "version_number": entry.version_number,
            "version_id": entry.version_id,
            "comment": entry.comment,
            "added": entry.changes.added,
            "removed": entry.changes.removed,
            "modified": entry.changes.modified,
            "total": entry.changes.total,
        })
    return buffer.getvalue()


def export_to_json(export: HistoryExport, indent: int = 2) -> str:
    return json.dumps(export.to_dict(), indent=indent)
