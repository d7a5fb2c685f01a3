"""Compile gate: no build runs while a touched file lacks a passing syntax check."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

_MAX_ERROR_PREVIEW = 100

_REQUIRED_ACTION = (
    "⚠️ REQUIRED ACTION:\n"
    "1. Use check_syntax(file_path) or check_syntax_with_lsp(file_path) to check the file\n"
    "2. If errors are found, fix them using search_replace() or write_file()\n"
    "3. Re-run the syntax check until it passes\n"
    "4. Then call compile_project() again"
)


@dataclass(frozen=True)
class FileSyntaxStatus:
    """Latest syntax-check outcome for one file."""

    syntax_passed: bool
    last_checked: float
    last_error: str = ""


@dataclass(frozen=True)
class CompileCheckResult:
    """Answer to "may a build run now?"."""

    allowed: bool
    block_reason: str = ""


def normalize_path(path: str | Path) -> str:
    """Absolute, symlink-resolved form used as the status key."""
    return str(Path(path).expanduser().resolve())


class CompileGuard:
    """Tracks per-file syntax status and refuses builds on unconfirmed files.

    Instances are passed explicitly to the build tools and the verification
    pipeline. Refusals are returned as :class:`CompileCheckResult`, never
    raised, so the caller can feed the instruction back to the model.
    """

    def __init__(self, *, enabled: bool = True) -> None:
        self._enabled = enabled
        self._lock = threading.Lock()
        self._status: dict[str, FileSyntaxStatus] = {}

    @property
    def enabled(self) -> bool:
        return self._enabled

    def set_enabled(self, enabled: bool) -> None:
        self._enabled = enabled
        logger.info("Compile guard %s", "enabled" if enabled else "disabled")

    def _record(self, path: str | Path, status: FileSyntaxStatus) -> None:
        if not self._enabled:
            return
        key = normalize_path(path)
        with self._lock:
            self._status[key] = status

    def mark_file_modified(self, path: str | Path) -> None:
        """A write happened; the file needs a fresh syntax check."""
        self._record(
            path,
            FileSyntaxStatus(
                syntax_passed=False,
                last_checked=time.time(),
                last_error="modified, syntax not checked yet",
            ),
        )
        logger.debug("Marked modified: %s", path)

    def mark_syntax_passed(self, path: str | Path) -> None:
        self._record(path, FileSyntaxStatus(syntax_passed=True, last_checked=time.time()))
        logger.debug("Syntax passed: %s", path)

    def mark_syntax_failed(self, path: str | Path, error_summary: str) -> None:
        self._record(
            path,
            FileSyntaxStatus(
                syntax_passed=False, last_checked=time.time(), last_error=error_summary
            ),
        )
        logger.debug("Syntax failed: %s", path)

    def get_status(self, path: str | Path) -> FileSyntaxStatus | None:
        with self._lock:
            return self._status.get(normalize_path(path))

    def pending_files(self) -> list[str]:
        """Tracked files whose last write or check has not passed, sorted."""
        with self._lock:
            return sorted(p for p, s in self._status.items() if not s.syntax_passed)

    def can_compile(self) -> CompileCheckResult:
        """Allow the build only if every tracked file passed its last check."""
        if not self._enabled:
            return CompileCheckResult(allowed=True)

        with self._lock:
            failing = [(p, s) for p, s in self._status.items() if not s.syntax_passed]

        if not failing:
            return CompileCheckResult(allowed=True)

        details = []
        for path, status in failing:
            line = f"  - {path}"
            if status.last_error:
                preview = status.last_error[:_MAX_ERROR_PREVIEW]
                if len(status.last_error) > _MAX_ERROR_PREVIEW:
                    preview += "..."
                line += f": {preview}"
            details.append(line)

        message = (
            f"COMPILE_BLOCKED: {len(failing)} file(s) have not passed syntax check.\n"
            + "\n".join(details)
            + "\n\n"
            + _REQUIRED_ACTION
        )
        logger.warning("Compile blocked for %d file(s)", len(failing))
        return CompileCheckResult(allowed=False, block_reason=message)

    def clear_status(self, path: str | Path) -> None:
        with self._lock:
            self._status.pop(normalize_path(path), None)

    def clear_all(self) -> None:
        with self._lock:
            self._status.clear()

    def status_summary(self) -> str:
        if not self._enabled:
            return "Compile guard is DISABLED"
        with self._lock:
            snapshot = dict(self._status)
        passed = sum(1 for s in snapshot.values() if s.syntax_passed)
        lines = [
            f"Compile guard status: {passed} passed, {len(snapshot) - passed} pending/failed"
        ]
        pending = [p for p, s in snapshot.items() if not s.syntax_passed]
        if pending:
            lines.append("Files needing syntax check:")
            lines.extend(f"  - {p}" for p in pending)
        return "\n".join(lines)
