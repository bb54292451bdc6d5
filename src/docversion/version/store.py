"""
Persistence backends for version records.

A store is an append-only log per document. It guarantees at most one
successful put per (document_id, version_number) and never hands a number
out twice, even after the original record has been pruned.
"""

from __future__ import annotations

import contextlib
import hashlib
import json
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Tuple, Union

from ..core.exceptions import ConflictError, NotFoundError, StorageError, ValidationError
from ..core.models import Version


VersionRefArg = Union[int, str]


def matches_reference(version: Version, reference: VersionRefArg) -> bool:
    """True when reference is this version's number (int) or ID (str)."""
    if isinstance(reference, bool):
        raise ValidationError("Version reference must be a number or an ID, not a bool")
    if isinstance(reference, int):
        return version.version_number == reference
    if isinstance(reference, str):
        return version.id == reference
    raise ValidationError(
        "Version reference must be a number or an ID",
        details={"type": type(reference).__name__},
    )


class VersionStore(ABC):
    """Base class for version persistence backends."""

    @abstractmethod
    def put(self, version: Version) -> None:
        """
        Append a version to its document's log.

        Raises:
            ConflictError: if the version number or ID was already claimed
            StorageError: if the backend fails
        """

    @abstractmethod
    def list(self, document_id: str) -> List[Version]:
        """All retained versions for a document, in no particular order."""

    @abstractmethod
    def delete(self, document_id: str, version_id: str) -> None:
        """
        Remove a single version. Only retention pruning calls this.

        Raises:
            NotFoundError: if no such version is stored
        """

    @abstractmethod
    def document_ids(self) -> List[str]:
        """IDs of documents that hold at least one version."""

    def get(self, document_id: str, reference: VersionRefArg) -> Version:
        """
        Look up a version by number or ID.

        Raises:
            NotFoundError: if the version is not stored
        """
        for version in self.list(document_id):
            if matches_reference(version, reference):
                return version
        raise NotFoundError(
            f"Version {reference} not found for document {document_id}",
            details={"document_id": document_id, "version": reference},
        )


def _check_claim(document_id: str, high_water: int, versions: List[Version], version: Version) -> None:
    if version.version_number <= high_water:
        raise ConflictError(
            f"Version number {version.version_number} already claimed for document {document_id}",
            details={"document_id": document_id, "version_number": version.version_number},
        )
    if any(v.id == version.id for v in versions):
        raise ConflictError(
            f"Version ID {version.id} already exists",
            details={"document_id": document_id, "version_id": version.id},
        )


class InMemoryVersionStore(VersionStore):
    """
    In-process store keyed by document ID.

    Each document maps to an append-only list. A lock makes the
    check-and-append in put atomic.
    """

    def __init__(self):
        self._versions: Dict[str, List[Version]] = {}
        self._high_water: Dict[str, int] = {}
        self._lock = threading.Lock()

    def put(self, version: Version) -> None:
        with self._lock:
            versions = self._versions.setdefault(version.document_id, [])
            _check_claim(
                version.document_id,
                self._high_water.get(version.document_id, 0),
                versions,
                version,
            )
            versions.append(version)
            self._high_water[version.document_id] = version.version_number

    def list(self, document_id: str) -> List[Version]:
        with self._lock:
            return list(self._versions.get(document_id, []))

    def delete(self, document_id: str, version_id: str) -> None:
        with self._lock:
            versions = self._versions.get(document_id, [])
            remaining = [v for v in versions if v.id != version_id]
            if len(remaining) == len(versions):
                raise NotFoundError(
                    f"Version {version_id} not found for document {document_id}",
                    details={"document_id": document_id, "version_id": version_id},
                )
            self._versions[document_id] = remaining

    def document_ids(self) -> List[str]:
        with self._lock:
            return sorted(doc_id for doc_id, versions in self._versions.items() if versions)


class JsonFileVersionStore(VersionStore):
    """
    Durable store writing one JSON file per document.

    Files are replaced atomically. The lock serializes writers within a
    process; separate processes sharing a directory are not coordinated.
    """

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root)
        self._lock = threading.RLock()
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Could not create store directory {self.root}: {e}") from e

    def _path_for(self, document_id: str) -> Path:
        digest = hashlib.sha256(document_id.encode("utf-8")).hexdigest()[:24]
        return self.root / f"{digest}.json"

    def _read_file(self, path: Path) -> Dict[str, Any]:
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise StorageError(f"Could not read version file {path}: {e}") from e

    def _load(self, document_id: str) -> Tuple[int, List[Version]]:
        path = self._path_for(document_id)
        if not path.exists():
            return 0, []

        data = self._read_file(path)
        try:
            versions = [Version.from_dict(v) for v in data.get("versions", [])]
            return int(data.get("highWater", 0)), versions
        except (KeyError, TypeError, ValueError, ValidationError) as e:
            raise StorageError(f"Corrupt version file {path}: {e}") from e

    def _save(self, document_id: str, high_water: int, versions: List[Version]) -> None:
        path = self._path_for(document_id)
        data = {
            "documentId": document_id,
            "highWater": high_water,
            "versions": [v.to_dict() for v in versions],
        }
        try:
            fd, tmp_name = tempfile.mkstemp(dir=self.root, suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(data, f, indent=2)
                os.replace(tmp_name, path)
            except BaseException:
                with contextlib.suppress(OSError):
                    os.unlink(tmp_name)
                raise
        except OSError as e:
            raise StorageError(f"Could not write version file {path}: {e}") from e

    def put(self, version: Version) -> None:
        with self._lock:
            high_water, versions = self._load(version.document_id)
            _check_claim(version.document_id, high_water, versions, version)
            versions.append(version)
            self._save(version.document_id, version.version_number, versions)

    def list(self, document_id: str) -> List[Version]:
        with self._lock:
            return self._load(document_id)[1]

    def delete(self, document_id: str, version_id: str) -> None:
        with self._lock:
            high_water, versions = self._load(document_id)
            remaining = [v for v in versions if v.id != version_id]
            if len(remaining) == len(versions):
                raise NotFoundError(
                    f"Version {version_id} not found for document {document_id}",
                    details={"document_id": document_id, "version_id": version_id},
                )
            self._save(document_id, high_water, remaining)

    def document_ids(self) -> List[str]:
        with self._lock:
            ids = []
            for path in sorted(self.root.glob("*.json")):
                data = self._read_file(path)
                if data.get("versions"):
                    ids.append(data["documentId"])
            return sorted(ids)
