"""
Document version control service.

Creates sequentially numbered versions, attaches diffs, compares and
restores versions and applies the retention policy. All business rules
live here; stores only persist records.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, List, Mapping, Optional

from ..config import VersioningConfig
from ..core.exceptions import (
    ConflictError,
    NotFoundError,
    OperationCancelled,
    StorageError,
    ValidationError,
    WriteConflict,
)
from ..core.models import (
    AuditEntry,
    Author,
    HistoryEntry,
    HistoryExport,
    RESTORED_FROM_KEY,
    Version,
    VersionComparison,
    generate_version_id,
    utc_now,
    validate_metadata,
)
from .audit import AuditTrailProjector
from .diff_engine import DiffEngine
from .store import VersionRefArg, VersionStore


DEFAULT_RESTORE_COMMENT = "Restored from previous version"


class VersioningService:
    """
    Version history for text documents backed by a VersionStore.

    Numbering uses optimistic concurrency: a writer reads the latest version,
    claims the next number with put, and starts over with a fresh read when
    another writer got there first.
    """

    def __init__(
        self,
        store: VersionStore,
        differ: Optional[DiffEngine] = None,
        config: Optional[VersioningConfig] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.store = store
        self.differ = differ or DiffEngine()
        self.config = config or VersioningConfig()
        self.config.validate()
        self.logger = logger or logging.getLogger(__name__)

    def _require_document_id(self, document_id: Any) -> str:
        if not isinstance(document_id, str) or not document_id.strip():
            raise ValidationError("Document ID is required", details={"document_id": document_id})
        return document_id

    def _sorted_versions(self, document_id: str) -> List[Version]:
        """Retained versions, newest first."""
        versions = self.store.list(document_id)
        versions.sort(key=lambda v: v.version_number, reverse=True)
        return versions

    def create_version(
        self,
        document_id: str,
        content: str,
        author: Any,
        comment: str = "",
        metadata: Optional[Mapping[str, Any]] = None,
    ) -> Version:
        """
        Create a new version of a document.

        Args:
            document_id: Document identifier
            content: Full text snapshot
            author: Author, or a mapping with at least an "id"
            comment: Version comment
            metadata: Bounded key-value metadata

        Returns:
            Created Version

        Raises:
            ValidationError: if a required field is missing or invalid
            WriteConflict: if numbering contention outlasts the retry bound
            StorageError: if the store fails
        """
        self._require_document_id(document_id)
        if content is None:
            raise ValidationError("Content is required", details={"document_id": document_id})
        if not isinstance(content, str):
            raise ValidationError(
                "Content must be text",
                details={"document_id": document_id, "type": type(content).__name__},
            )
        author = Author.coerce(author)
        metadata = validate_metadata(
            metadata,
            max_entries=self.config.max_metadata_entries,
            max_key_length=self.config.max_metadata_key_length,
            max_value_length=self.config.max_metadata_value_length,
        )

        attempts = self.config.max_write_attempts
        for attempt in range(1, attempts + 1):
            versions = self.store.list(document_id)
            latest = max(versions, key=lambda v: v.version_number) if versions else None

            version = Version(
                id=generate_version_id(document_id),
                document_id=document_id,
                version_number=latest.version_number + 1 if latest else 1,
                timestamp=utc_now(),
                author=author,
                comment=comment or "",
                content=content,
                metadata=metadata,
                diff_from_previous=self.differ.diff(latest.content, content) if latest else None,
            )

            try:
                self.store.put(version)
            except ConflictError:
                self.logger.debug(
                    f"Version {version.version_number} of {document_id} was claimed concurrently "
                    f"(attempt {attempt}/{attempts})"
                )
                continue
            break
        else:
            raise WriteConflict(
                f"Could not claim a version number for document {document_id} after {attempts} attempts",
                details={"document_id": document_id, "attempts": attempts},
            )

        self.logger.info(
            f"Created version {version.version_number} for document {document_id}",
            extra={
                "document_id": document_id,
                "version_number": version.version_number,
                "user_id": author.id,
            },
        )

        try:
            self.prune(document_id)
        except (StorageError, NotFoundError) as e:
            self.logger.warning(f"Pruning failed for document {document_id}: {e}")

        return version

    def prune(self, document_id: str) -> List[int]:
        """
        Delete the oldest versions beyond the retention limit.

        The newest version is never removed and surviving versions keep
        their numbers.

        Returns:
            Version numbers that were removed
        """
        versions = self._sorted_versions(document_id)
        limit = self.config.retention_limit
        if len(versions) <= limit:
            return []

        to_delete = versions[limit:]
        removed = []
        for version in to_delete:
            self.store.delete(document_id, version.id)
            removed.append(version.version_number)

        self.logger.info(
            f"Pruned {len(removed)} old versions for document {document_id}",
            extra={"document_id": document_id, "deleted_versions": removed},
        )
        return removed

    def get_versions(
        self,
        document_id: str,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[Version]:
        """
        Get versions of a document, newest first.

        Args:
            document_id: Document identifier
            limit: Maximum versions to return (all when None)
            offset: Number of versions to skip

        Raises:
            NotFoundError: if the document has no versions
        """
        self._require_document_id(document_id)
        if limit is not None and limit < 0:
            raise ValidationError("limit must not be negative", details={"limit": limit})
        if offset < 0:
            raise ValidationError("offset must not be negative", details={"offset": offset})

        versions = self._sorted_versions(document_id)
        if not versions:
            raise NotFoundError(f"Document {document_id} not found", details={"document_id": document_id})

        end = None if limit is None else offset + limit
        return versions[offset:end]

    def get_version(self, document_id: str, reference: VersionRefArg) -> Version:
        """
        Get a specific version.

        Args:
            document_id: Document identifier
            reference: Version number (int) or version ID (str)

        Raises:
            NotFoundError: if the document or version does not exist
        """
        self._require_document_id(document_id)
        if reference is None or reference == "":
            raise ValidationError("Version identifier is required")
        return self.store.get(document_id, reference)

    def compare_versions(
        self,
        document_id: str,
        version_a: VersionRefArg,
        version_b: VersionRefArg,
    ) -> VersionComparison:
        """Diff two versions of a document, adjacent or not."""
        a = self.get_version(document_id, version_a)
        b = self.get_version(document_id, version_b)

        diff = self.differ.diff(a.content, b.content)
        return VersionComparison(
            document_id=document_id,
            version_a=a.to_ref(),
            version_b=b.to_ref(),
            diff=diff,
            summary=self.differ.summarize(diff),
        )

    def restore_version(
        self,
        document_id: str,
        reference: VersionRefArg,
        author: Any,
        comment: Optional[str] = None,
    ) -> Version:
        """
        Restore a previous version by appending a copy of its content.

        History is never rewritten: the result is a new version numbered
        after every existing one, with metadata.restoredFrom pointing back.
        """
        target = self.get_version(document_id, reference)

        metadata = dict(target.metadata)
        metadata[RESTORED_FROM_KEY] = {
            "versionId": target.id,
            "versionNumber": target.version_number,
        }

        new_version = self.create_version(
            document_id,
            target.content,
            author,
            f"{comment or DEFAULT_RESTORE_COMMENT} (version {target.version_number})",
            metadata=metadata,
        )

        self.logger.info(
            f"Restored document {document_id} to version {target.version_number}",
            extra={
                "document_id": document_id,
                "restored_from": target.version_number,
                "new_version": new_version.version_number,
                "user_id": new_version.author.id,
            },
        )
        return new_version

    def get_version_history(
        self,
        document_id: str,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[HistoryEntry]:
        """Paginated history rows, newest first."""
        return AuditTrailProjector(self).history(document_id, limit=limit, offset=offset)

    def get_audit_trail(self, document_id: str) -> List[AuditEntry]:
        """Audit entries for every retained version, newest first."""
        return AuditTrailProjector(self).audit_trail(document_id)

    def export_history(
        self,
        document_id: str,
        timeout: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> HistoryExport:
        """
        Export a document's full retained history.

        Args:
            document_id: Document identifier
            timeout: Seconds before the export gives up
            cancel_event: Set from another thread to abandon the export

        Raises:
            OperationCancelled: if cancelled or the timeout elapses
        """
        deadline = time.monotonic() + timeout if timeout is not None else None

        def check() -> None:
            if cancel_event is not None and cancel_event.is_set():
                raise OperationCancelled(f"Export of {document_id} was cancelled")
            if deadline is not None and time.monotonic() > deadline:
                raise OperationCancelled(
                    f"Export of {document_id} timed out after {timeout}s",
                    details={"timeout": timeout},
                )

        check()
        versions = self.get_versions(document_id)
        collected = []
        for version in versions:
            check()
            collected.append(version)

        return HistoryExport(
            document_id=document_id,
            exported_at=utc_now(),
            versions=tuple(collected),
        )
