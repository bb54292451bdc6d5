"""
Tests for audit projections and their JSON/CSV exports.
"""

import csv
import io
import json

from docversion.version.audit import (
    CSV_COLUMNS,
    AuditTrailProjector,
    entries_to_csv,
    entries_to_json,
    export_to_json,
)


def test_projector_matches_service(service, author):
    service.create_version("doc", "a\nb", author, "first")
    service.create_version("doc", "a\nc", author, "second")

    projector = AuditTrailProjector(service)

    assert projector.audit_trail("doc") == service.get_audit_trail("doc")
    assert [h.version_number for h in projector.history("doc", limit=1)] == [2]


def test_entries_to_json(service, author):
    service.create_version("doc", "a", author, "first")
    service.create_version("doc", "a\nb", author, "second")

    data = json.loads(entries_to_json(service.get_audit_trail("doc")))

    assert data[0]["action"] == "modified"
    assert data[0]["changes"] == {"added": 1, "removed": 0, "modified": 0, "total": 1}
    assert data[1]["action"] == "created"
    assert data[1]["author"] == {"id": "u-1", "displayName": "Ada"}


def test_entries_to_csv(service, author):
    service.create_version("doc", "a", author, "first, with comma")
    service.create_version("doc", "b", author, "second")

    rows = list(csv.DictReader(io.StringIO(entries_to_csv(service.get_audit_trail("doc")))))

    assert list(rows[0].keys()) == CSV_COLUMNS
    assert [r["action"] for r in rows] == ["modified", "created"]
    assert rows[1]["comment"] == "first, with comma"
    assert rows[0]["modified"] == "1"
    assert rows[0]["author_name"] == "Ada"


def test_entries_to_csv_empty():
    assert entries_to_csv([]).strip() == ",".join(CSV_COLUMNS)


def test_export_to_json(service, author):
    service.create_version("doc", "a", author, metadata={"blob": b"\xff"})

    data = json.loads(export_to_json(service.export_history("doc")))

    assert data["versionCount"] == 1
    assert data["firstVersion"] == data["latestVersion"]
    assert data["versions"][0]["metadata"] == {"blob": {"$bytes": "/w=="}}
