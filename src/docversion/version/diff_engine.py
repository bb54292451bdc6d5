"""
Diff engine for calculating line-level differences between text snapshots.

Uses a greedy forward-scan alignment rather than a minimal edit script, so
change counts stay stable and auditable across runs.
"""

from __future__ import annotations

from typing import Any, List, Optional

from ..core.exceptions import DiffError
from ..core.models import Change, Diff, DiffSummary


def _find(lines: List[str], value: str, start: int) -> int:
    """Index of value in lines at or after start, or -1."""
    try:
        return lines.index(value, start)
    except ValueError:
        return -1


class DiffEngine:
    """
    Engine for calculating diffs between document versions.

    Stateless; a single instance can be shared between threads.
    """

    def split_lines(self, text: str) -> List[str]:
        """Split text on newlines. An empty string is a single empty line."""
        return text.split("\n")

    def diff(self, old_text: Any, new_text: Any) -> Diff:
        """
        Calculate the diff that transforms old_text into new_text.

        Args:
            old_text: Original content
            new_text: New content

        Returns:
            Diff with changes in document order

        Raises:
            DiffError: if either input is not a string
        """
        if not isinstance(old_text, str) or not isinstance(new_text, str):
            raise DiffError(
                "Both inputs must be strings",
                details={
                    "old_type": type(old_text).__name__,
                    "new_type": type(new_text).__name__,
                },
            )

        old = self.split_lines(old_text)
        new = self.split_lines(new_text)
        changes: List[Change] = []
        i = j = 0

        while i < len(old) or j < len(new):
            if i >= len(old):
                changes.append(Change.added(j + 1, new[j]))
                j += 1
            elif j >= len(new):
                changes.append(Change.removed(i + 1, old[i]))
                i += 1
            elif old[i] == new[j]:
                i += 1
                j += 1
            else:
                old_in_new = _find(new, old[i], j)
                new_in_old = _find(old, new[j], i)

                if old_in_new != -1 and (new_in_old == -1 or old_in_new - j <= new_in_old - i):
                    # old[i] shows up again further down: new[j] was inserted
                    changes.append(Change.added(j + 1, new[j]))
                    j += 1
                elif new_in_old != -1:
                    changes.append(Change.removed(i + 1, old[i]))
                    i += 1
                else:
                    changes.append(Change.modified(i + 1, j + 1, old[i], new[j]))
                    i += 1
                    j += 1

        return Diff(changes=tuple(changes))

    def summarize(self, diff: Optional[Diff]) -> DiffSummary:
        """
        Count changes by type.

        Args:
            diff: Diff to summarize, or None for no diff

        Returns:
            DiffSummary whose counts sum to len(diff.changes)
        """
        if diff is None:
            return DiffSummary()
        return DiffSummary.from_changes(diff.changes)

    def describe(self, summary: DiffSummary) -> str:
        """Generate a one-line human-readable description of a summary."""
        if summary.total == 0:
            return "No changes"

        parts = []
        if summary.added:
            parts.append(f"{summary.added} added")
        if summary.removed:
            parts.append(f"{summary.removed} removed")
        if summary.modified:
            parts.append(f"{summary.modified} modified")
        noun = "line" if summary.total == 1 else "lines"
        return f"{summary.total} {noun} changed ({', '.join(parts)})"
