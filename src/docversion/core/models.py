"""
Core data model for versioned text documents.

Versions are immutable snapshots of a document's full text. Diffs and
summaries travel with them so history can be audited without recomputation.
"""

from __future__ import annotations

import base64
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from .exceptions import ValidationError


Scalar = Union[str, int, float, bool, bytes, None]
MetadataValue = Union[Scalar, Mapping[str, Scalar]]

_SCALAR_TYPES = (str, int, float, bool, bytes, type(None))
_BYTES_KEY = "$bytes"
RESTORED_FROM_KEY = "restoredFrom"


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def generate_version_id(document_id: str) -> str:
    """Generate a unique version ID scoped to a document."""
    return f"{document_id}-v{int(time.time() * 1000)}-{uuid4().hex[:9]}"


class Author(BaseModel):
    """Identity of whoever created a version. Supplied by the caller, never authenticated here."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    display_name: str = Field(default="Unknown", alias="displayName")

    @field_validator("id", mode="before")
    @classmethod
    def _require_id(cls, value: Any) -> str:
        if value is None:
            raise ValueError("author id is required")
        value = str(value).strip()
        if not value:
            raise ValueError("author id must not be blank")
        return value

    @classmethod
    def coerce(cls, value: Any) -> Author:
        """Build an Author from an Author instance or a mapping."""
        if isinstance(value, Author):
            return value
        if value is None:
            raise ValidationError("Author is required")
        if not isinstance(value, Mapping):
            raise ValidationError(
                "Author must be an Author or a mapping",
                details={"type": type(value).__name__},
            )

        display_name = (
            value.get("displayName")
            or value.get("display_name")
            or value.get("name")
            or value.get("username")
            or "Unknown"
        )
        try:
            return cls.model_validate({"id": value.get("id"), "displayName": display_name})
        except PydanticValidationError as e:
            raise ValidationError(
                "Invalid author",
                details={"errors": e.errors(include_url=False, include_context=False)},
            ) from e

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return self.model_dump(by_alias=True)


class ChangeType(Enum):
    """Types of line-level changes."""
    ADDED = "added"
    REMOVED = "removed"
    MODIFIED = "modified"


@dataclass(frozen=True)
class Change:
    """A single line-level change between two snapshots. Line numbers are 1-based."""

    change_type: ChangeType
    old_line: Optional[int] = None
    new_line: Optional[int] = None
    old_content: Optional[str] = None
    new_content: Optional[str] = None

    @classmethod
    def added(cls, line_number: int, content: str) -> Change:
        return cls(ChangeType.ADDED, new_line=line_number, new_content=content)

    @classmethod
    def removed(cls, line_number: int, content: str) -> Change:
        return cls(ChangeType.REMOVED, old_line=line_number, old_content=content)

    @classmethod
    def modified(cls, old_line: int, new_line: int, old_content: str, new_content: str) -> Change:
        return cls(
            ChangeType.MODIFIED,
            old_line=old_line,
            new_line=new_line,
            old_content=old_content,
            new_content=new_content,
        )

    @property
    def line_number(self) -> Optional[int]:
        """Line number on the side the change lives on (new side for modifications)."""
        if self.change_type == ChangeType.REMOVED:
            return self.old_line
        return self.new_line

    @property
    def content(self) -> Optional[str]:
        if self.change_type == ChangeType.REMOVED:
            return self.old_content
        return self.new_content

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        if self.change_type == ChangeType.MODIFIED:
            return {
                "type": self.change_type.value,
                "lineNumberA": self.old_line,
                "lineNumberB": self.new_line,
                "contentA": self.old_content,
                "contentB": self.new_content,
            }
        return {
            "type": self.change_type.value,
            "lineNumber": self.line_number,
            "content": self.content,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Change:
        """Create from dictionary."""
        change_type = ChangeType(data["type"])
        if change_type == ChangeType.MODIFIED:
            return cls.modified(
                data["lineNumberA"], data["lineNumberB"], data["contentA"], data["contentB"]
            )
        if change_type == ChangeType.ADDED:
            return cls.added(data["lineNumber"], data["content"])
        return cls.removed(data["lineNumber"], data["content"])


@dataclass(frozen=True)
class Diff:
    """Ordered changes transforming one content snapshot into another."""

    changes: Tuple[Change, ...] = ()

    def __len__(self) -> int:
        return len(self.changes)

    @property
    def is_empty(self) -> bool:
        return not self.changes

    def get_changes_by_type(self, change_type: ChangeType) -> List[Change]:
        """Get all changes of a specific type."""
        return [c for c in self.changes if c.change_type == change_type]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {"changes": [c.to_dict() for c in self.changes]}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Diff:
        """Create from dictionary."""
        return cls(changes=tuple(Change.from_dict(c) for c in data.get("changes", [])))


@dataclass(frozen=True)
class DiffSummary:
    """Change counts for a diff. Always consistent with the diff it was built from."""

    added: int = 0
    removed: int = 0
    modified: int = 0

    @property
    def total(self) -> int:
        return self.added + self.removed + self.modified

    @classmethod
    def from_changes(cls, changes: Iterable[Change]) -> DiffSummary:
        counts = {change_type: 0 for change_type in ChangeType}
        for change in changes:
            counts[change.change_type] += 1
        return cls(
            added=counts[ChangeType.ADDED],
            removed=counts[ChangeType.REMOVED],
            modified=counts[ChangeType.MODIFIED],
        )

    def to_dict(self) -> Dict[str, int]:
        """Convert to dictionary for serialization."""
        return {
            "added": self.added,
            "removed": self.removed,
            "modified": self.modified,
            "total": self.total,
        }


def validate_metadata(
    metadata: Optional[Mapping[str, Any]],
    max_entries: int = 64,
    max_key_length: int = 128,
    max_value_length: int = 4096,
) -> Dict[str, MetadataValue]:
    """
    Check a metadata map against the bounded key-value schema.

    Values are scalars (str, int, float, bool, bytes, None) or one level of
    nested mapping of string keys to scalars. The restoredFrom entry written
    by a restore does not count toward max_entries. The "$bytes" key is
    reserved for the wire encoding of bytes values.

    Returns:
        A plain dict copy of the metadata

    Raises:
        ValidationError: if the map violates any bound
    """
    if metadata is None:
        return {}
    if not isinstance(metadata, Mapping):
        raise ValidationError("Metadata must be a mapping", details={"type": type(metadata).__name__})
    entries = sum(1 for key in metadata if key != RESTORED_FROM_KEY)
    if entries > max_entries:
        raise ValidationError(
            f"Metadata has {entries} entries, limit is {max_entries}",
            details={"entries": entries, "limit": max_entries},
        )

    def check_key(key: Any) -> None:
        if not isinstance(key, str) or not key:
            raise ValidationError("Metadata keys must be non-empty strings", details={"key": repr(key)})
        if key == _BYTES_KEY:
            raise ValidationError(f"Metadata key '{_BYTES_KEY}' is reserved", details={"key": key})
        if len(key) > max_key_length:
            raise ValidationError(f"Metadata key too long: {key[:32]}...", details={"limit": max_key_length})

    def check_scalar(key: str, value: Any) -> Scalar:
        if not isinstance(value, _SCALAR_TYPES):
            raise ValidationError(
                f"Unsupported metadata value for '{key}'",
                details={"key": key, "type": type(value).__name__},
            )
        if isinstance(value, (str, bytes)) and len(value) > max_value_length:
            raise ValidationError(
                f"Metadata value for '{key}' exceeds {max_value_length} characters",
                details={"key": key, "limit": max_value_length},
            )
        return value

    result: Dict[str, MetadataValue] = {}
    for key, value in metadata.items():
        check_key(key)
        if isinstance(value, Mapping):
            if len(value) > max_entries:
                raise ValidationError(f"Nested metadata '{key}' has too many entries", details={"key": key})
            nested = {}
            for nested_key, nested_value in value.items():
                check_key(nested_key)
                nested[nested_key] = check_scalar(f"{key}.{nested_key}", nested_value)
            result[key] = nested
        else:
            result[key] = check_scalar(key, value)
    return result


def _freeze_metadata(metadata: Mapping[str, Any]) -> Mapping[str, Any]:
    return MappingProxyType({
        key: MappingProxyType(dict(value)) if isinstance(value, Mapping) else value
        for key, value in metadata.items()
    })


def _dump_value(value: Any) -> Any:
    if isinstance(value, bytes):
        return {_BYTES_KEY: base64.b64encode(value).decode("ascii")}
    if isinstance(value, Mapping):
        return {k: _dump_value(v) for k, v in value.items()}
    return value


def _load_value(value: Any) -> Any:
    if isinstance(value, dict):
        if set(value) == {_BYTES_KEY}:
            return base64.b64decode(value[_BYTES_KEY])
        return {k: _load_value(v) for k, v in value.items()}
    return value


def metadata_to_dict(metadata: Mapping[str, Any]) -> Dict[str, Any]:
    """Convert metadata into a JSON-safe dict. Bytes become {"$bytes": base64}."""
    return {key: _dump_value(value) for key, value in metadata.items()}


@dataclass(frozen=True)
class Version:
    """An immutable snapshot of a document's content."""

    id: str
    document_id: str
    version_number: int
    timestamp: datetime = field(default_factory=utc_now)
    author: Author = field(default_factory=lambda: Author(id="system"))
    comment: str = ""
    content: str = ""
    metadata: Mapping[str, Any] = field(default_factory=dict)
    diff_from_previous: Optional[Diff] = None

    def __post_init__(self):
        """Freeze metadata so the snapshot cannot be edited in place."""
        object.__setattr__(self, "metadata", _freeze_metadata(self.metadata))

    @property
    def diff_summary(self) -> DiffSummary:
        if self.diff_from_previous is None:
            return DiffSummary()
        return DiffSummary.from_changes(self.diff_from_previous.changes)

    def to_ref(self) -> VersionRef:
        return VersionRef(
            id=self.id,
            number=self.version_number,
            timestamp=self.timestamp,
            author=self.author,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "documentId": self.document_id,
            "versionNumber": self.version_number,
            "timestamp": self.timestamp.isoformat(),
            "author": self.author.to_dict(),
            "comment": self.comment,
            "content": self.content,
            "metadata": metadata_to_dict(self.metadata),
            "diff": self.diff_from_previous.to_dict() if self.diff_from_previous else None,
            "diffSummary": self.diff_summary.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Version:
        """Create from dictionary."""
        diff_data = data.get("diff")
        return cls(
            id=data["id"],
            document_id=data["documentId"],
            version_number=int(data["versionNumber"]),
            timestamp=datetime.fromisoformat(data["timestamp"]),
            author=Author.coerce(data["author"]),
            comment=data.get("comment", ""),
            content=data.get("content", ""),
            metadata=_load_value(data.get("metadata") or {}),
            diff_from_previous=Diff.from_dict(diff_data) if diff_data else None,
        )


@dataclass(frozen=True)
class VersionRef:
    """Lightweight pointer to a version, used in comparisons."""

    id: str
    number: int
    timestamp: datetime
    author: Author

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "number": self.number,
            "timestamp": self.timestamp.isoformat(),
            "author": self.author.to_dict(),
        }


@dataclass(frozen=True)
class VersionComparison:
    """Result of comparing two arbitrary versions of a document."""

    document_id: str
    version_a: VersionRef
    version_b: VersionRef
    diff: Diff
    summary: DiffSummary

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "documentId": self.document_id,
            "versions": {"a": self.version_a.to_dict(), "b": self.version_b.to_dict()},
            "diff": self.diff.to_dict(),
            "summary": self.summary.to_dict(),
        }


class AuditAction(Enum):
    """Audit actions derived from version numbers."""
    CREATED = "created"
    MODIFIED = "modified"


@dataclass(frozen=True)
class HistoryEntry:
    """One row of a document's version history."""

    version_id: str
    version_number: int
    timestamp: datetime
    author: Author
    comment: str
    changes: DiffSummary

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "versionId": self.version_id,
            "versionNumber": self.version_number,
            "timestamp": self.timestamp.isoformat(),
            "author": self.author.to_dict(),
            "comment": self.comment,
            "changes": self.changes.to_dict(),
        }


@dataclass(frozen=True)
class AuditEntry:
    """Read-only audit record derived from a version."""

    action: AuditAction
    timestamp: datetime
    author: Author
    version_number: int
    version_id: str
    comment: str
    changes: DiffSummary

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "action": self.action.value,
            "timestamp": self.timestamp.isoformat(),
            "author": self.author.to_dict(),
            "versionNumber": self.version_number,
            "versionId": self.version_id,
            "comment": self.comment,
            "changes": self.changes.to_dict(),
        }


@dataclass(frozen=True)
class HistoryExport:
    """Full export of a document's retained history."""

    document_id: str
    exported_at: datetime
    versions: Tuple[Version, ...] = ()

    @property
    def version_count(self) -> int:
        return len(self.versions)

    @property
    def first_version(self) -> Optional[Dict[str, Any]]:
        """Oldest retained version as {number, timestamp}. Versions are stored newest first."""
        if not self.versions:
            return None
        oldest = self.versions[-1]
        return {"number": oldest.version_number, "timestamp": oldest.timestamp.isoformat()}

    @property
    def latest_version(self) -> Optional[Dict[str, Any]]:
        if not self.versions:
            return None
        newest = self.versions[0]
        return {"number": newest.version_number, "timestamp": newest.timestamp.isoformat()}

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "documentId": self.document_id,
            "exportTimestamp": self.exported_at.isoformat(),
            "versionCount": self.version_count,
            "firstVersion": self.first_version,
            "latestVersion": self.latest_version,
            "versions": [v.to_dict() for v in self.versions],
        }
