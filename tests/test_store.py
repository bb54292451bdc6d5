"""
Tests for the in-memory and JSON-file version stores.
"""

import json
import os

import pytest

from docversion.core.exceptions import ConflictError, NotFoundError, StorageError, ValidationError
from docversion.core.models import Author, Change, Diff, Version
from docversion.version.store import InMemoryVersionStore, JsonFileVersionStore
from docversion.version.version_control import VersioningService


def make_version(number, document_id="doc", **kwargs):
    return Version(
        id=f"{document_id}-{number}",
        document_id=document_id,
        version_number=number,
        author=Author(id="u-1", display_name="Ada"),
        content=f"content {number}",
        **kwargs,
    )


@pytest.fixture(params=["memory", "file"])
def any_store(request, tmp_path):
    if request.param == "memory":
        return InMemoryVersionStore()
    return JsonFileVersionStore(tmp_path / "versions")


def test_put_and_list(any_store):
    any_store.put(make_version(1))
    any_store.put(make_version(2))

    assert sorted(v.version_number for v in any_store.list("doc")) == [1, 2]
    assert any_store.list("other") == []


def test_duplicate_number_conflicts(any_store):
    any_store.put(make_version(1))

    with pytest.raises(ConflictError):
        any_store.put(Version(id="doc-other", document_id="doc", version_number=1))


def test_duplicate_id_conflicts(any_store):
    any_store.put(make_version(1))

    with pytest.raises(ConflictError):
        any_store.put(Version(id="doc-1", document_id="doc", version_number=2))


def test_pruned_number_is_never_reused(any_store):
    any_store.put(make_version(1))
    any_store.put(make_version(2))
    any_store.delete("doc", "doc-1")

    with pytest.raises(ConflictError):
        any_store.put(Version(id="doc-again", document_id="doc", version_number=1))


def test_numbers_are_scoped_per_document(any_store):
    any_store.put(make_version(1, document_id="a"))
    any_store.put(make_version(1, document_id="b"))

    assert any_store.document_ids() == ["a", "b"]


def test_get_by_number_and_id(any_store):
    any_store.put(make_version(1))
    any_store.put(make_version(2))

    assert any_store.get("doc", 2).id == "doc-2"
    assert any_store.get("doc", "doc-1").version_number == 1


def test_get_missing_raises(any_store):
    any_store.put(make_version(1))

    with pytest.raises(NotFoundError):
        any_store.get("doc", 7)
    with pytest.raises(NotFoundError):
        any_store.get("missing", 1)


def test_get_rejects_bool_reference(any_store):
    any_store.put(make_version(1))

    with pytest.raises(ValidationError):
        any_store.get("doc", True)


def test_delete(any_store):
    any_store.put(make_version(1))
    any_store.put(make_version(2))
    any_store.delete("doc", "doc-1")

    assert [v.version_number for v in any_store.list("doc")] == [2]
    with pytest.raises(NotFoundError):
        any_store.delete("doc", "doc-1")


def test_file_store_survives_reopen(tmp_path):
    root = tmp_path / "versions"
    version = make_version(
        2,
        metadata={"blob": b"\x00\x01", "restoredFrom": {"versionId": "doc-1", "versionNumber": 1}},
        diff_from_previous=Diff(changes=(Change.modified(1, 1, "a", "b"),)),
    )
    JsonFileVersionStore(root).put(version)

    reopened = JsonFileVersionStore(root).get("doc", 2)

    assert reopened.content == version.content
    assert reopened.timestamp == version.timestamp
    assert reopened.author == version.author
    assert reopened.metadata["blob"] == b"\x00\x01"
    assert reopened.metadata["restoredFrom"]["versionNumber"] == 1
    assert reopened.diff_from_previous == version.diff_from_previous


def test_file_store_metadata_survives_reopen_unchanged(tmp_path):
    root = tmp_path / "versions"
    service = VersioningService(JsonFileVersionStore(root))
    metadata = {"blob": b"hi", "nested": {"encoding": "aGk=", "raw": b"\xff"}, "plain": "$bytes"}
    service.create_version("doc", "text", {"id": "u-1"}, metadata=metadata)

    reopened = JsonFileVersionStore(root).get("doc", 1)

    assert reopened.metadata["blob"] == b"hi"
    assert dict(reopened.metadata["nested"]) == {"encoding": "aGk=", "raw": b"\xff"}
    assert reopened.metadata["plain"] == "$bytes"

    with pytest.raises(ValidationError):
        service.create_version("doc", "text", {"id": "u-1"}, metadata={"x": {"$bytes": "aGk="}})
    assert dict(JsonFileVersionStore(root).get("doc", 1).metadata["nested"])["encoding"] == "aGk="


def test_file_store_failed_write_leaves_no_temp_file(tmp_path, monkeypatch):
    store = JsonFileVersionStore(tmp_path)
    store.put(make_version(1))

    def failing_replace(src, dst):
        raise OSError("disk full")

    monkeypatch.setattr(os, "replace", failing_replace)
    with pytest.raises(StorageError):
        store.put(make_version(2))
    monkeypatch.undo()

    assert list(tmp_path.glob("*.tmp")) == []
    assert [v.version_number for v in store.list("doc")] == [1]


def test_file_store_writes_wire_format(tmp_path):
    store = JsonFileVersionStore(tmp_path)
    store.put(make_version(1))

    (path,) = tmp_path.glob("*.json")
    data = json.loads(path.read_text())
    record = data["versions"][0]
    assert data["documentId"] == "doc"
    assert record["versionNumber"] == 1
    assert record["author"] == {"id": "u-1", "displayName": "Ada"}
    assert record["diff"] is None


def test_file_store_corrupt_file_raises_storage_error(tmp_path):
    store = JsonFileVersionStore(tmp_path)
    store.put(make_version(1))
    (path,) = tmp_path.glob("*.json")
    path.write_text("{not json")

    with pytest.raises(StorageError):
        store.list("doc")
