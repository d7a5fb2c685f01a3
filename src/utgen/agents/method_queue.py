"""Ordered worklist of target methods for the iterative generation loop."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

from utgen.models.coverage import Priority

if TYPE_CHECKING:
    from collections.abc import Iterable

    from utgen.models.coverage import MethodCoverageInfo

logger = logging.getLogger(__name__)


class MethodStatus(Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"
    PARTIAL = "partial"

    @property
    def is_terminal(self) -> bool:
        return self not in (MethodStatus.PENDING, MethodStatus.IN_PROGRESS)


_STATUS_ICONS = {
    MethodStatus.PENDING: "⏳",
    MethodStatus.IN_PROGRESS: "🔄",
    MethodStatus.SUCCESS: "✅",
    MethodStatus.FAILED: "❌",
    MethodStatus.SKIPPED: "⏭️",
    MethodStatus.PARTIAL: "⚠️",
}


class MethodQueueError(Exception):
    """Raised when the queue is driven out of order."""


@dataclass
class MethodEntry:
    """A queued method plus its processing outcome."""

    info: MethodCoverageInfo
    """Coverage snapshot taken when the queue was built."""

    status: MethodStatus = MethodStatus.PENDING
    """Current processing status."""

    coverage_achieved: float = 0.0
    """Last measured line coverage for this method."""

    notes: str = ""
    """Free-form outcome notes."""

    started_at: float = 0.0
    finished_at: float = 0.0

    @property
    def name(self) -> str:
        return self.info.name

    @property
    def priority(self) -> Priority:
        return self.info.priority


@dataclass
class QueueProgress:
    """Status counts for the whole queue."""

    total: int = 0
    counts: dict[MethodStatus, int] = field(default_factory=dict)

    @property
    def processed(self) -> int:
        return sum(n for status, n in self.counts.items() if status.is_terminal)

    @property
    def percent_complete(self) -> float:
        if self.total == 0:
            return 100.0
        return self.processed / self.total * 100.0


class MethodQueue:
    """Methods sorted ascending by overall coverage, consumed one at a time.

    The cursor only advances past an entry once it reached a terminal status
    (or was never visited), so asking for the next method twice returns the
    same IN_PROGRESS entry.
    """

    def __init__(self) -> None:
        self._entries: list[MethodEntry] = []
        self._cursor = -1

    def build(self, methods: Iterable[MethodCoverageInfo]) -> None:
        """Replace the queue contents; ties keep their discovery order."""
        self._entries = [
            MethodEntry(info=m) for m in sorted(methods, key=lambda m: m.overall_coverage)
        ]
        self._cursor = -1
        logger.info("Method queue built with %d methods", len(self._entries))

    @property
    def entries(self) -> list[MethodEntry]:
        return list(self._entries)

    @property
    def current(self) -> MethodEntry | None:
        if 0 <= self._cursor < len(self._entries):
            return self._entries[self._cursor]
        return None

    @property
    def is_complete(self) -> bool:
        return all(e.status.is_terminal for e in self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def next(self) -> MethodEntry | None:
        """Return the entry to work on, or None when the queue is exhausted."""
        current = self.current
        if current is not None and current.status is MethodStatus.IN_PROGRESS:
            return current

        while self._cursor + 1 < len(self._entries):
            self._cursor += 1
            entry = self._entries[self._cursor]
            if entry.status is MethodStatus.PENDING:
                entry.status = MethodStatus.IN_PROGRESS
                entry.started_at = time.monotonic()
                return entry
        self._cursor = len(self._entries)
        return None

    def complete(
        self, status: MethodStatus, coverage: float = 0.0, notes: str = ""
    ) -> MethodEntry:
        """Record the terminal outcome of the current entry."""
        entry = self.current
        if entry is None:
            raise MethodQueueError("No method is currently being processed")
        if not status.is_terminal:
            raise MethodQueueError(f"{status.name} is not a terminal status")
        entry.status = status
        entry.coverage_achieved = coverage
        entry.notes = notes
        entry.finished_at = time.monotonic()
        logger.info("Method %s finished: %s (%.1f%%)", entry.name, status.name, coverage)
        return entry

    def skip_low_priority(self, reason: str = "low priority") -> int:
        """Mark every still-pending P2 entry SKIPPED; returns how many were skipped."""
        skipped = 0
        for entry in self._entries:
            if entry.status is MethodStatus.PENDING and entry.priority is Priority.P2:
                entry.status = MethodStatus.SKIPPED
                entry.coverage_achieved = entry.info.line_coverage
                entry.notes = reason
                skipped += 1
        if skipped:
            logger.info("Skipped %d low-priority methods", skipped)
        return skipped

    def progress(self) -> QueueProgress:
        counts: dict[MethodStatus, int] = dict.fromkeys(MethodStatus, 0)
        for entry in self._entries:
            counts[entry.status] += 1
        return QueueProgress(total=len(self._entries), counts=counts)

    def render_progress(self) -> str:
        """Multi-line progress listing used by the iterator tools."""
        progress = self.progress()
        lines = [
            f"Progress: {progress.processed}/{progress.total} methods "
            f"({progress.percent_complete:.0f}%)"
        ]
        for entry in self._entries:
            lines.append(
                f"  {_STATUS_ICONS[entry.status]} [{entry.priority.value}] {entry.name} "
                f"line {entry.info.line_coverage:.1f}% -> {entry.status.value}"
            )
        return "\n".join(lines)
