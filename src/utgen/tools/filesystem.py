"""File read/write tools confined to the project root."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from utgen.tools.registry import Capability, ToolParameter

if TYPE_CHECKING:
    from utgen.tools.compile_guard import CompileGuard
    from utgen.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

_MAX_READ_CHARS = 60_000
_MAX_LISTING = 200


class PathOutsideProjectError(ValueError):
    """Raised when a tool argument points outside the project root."""


def resolve_in_project(project_root: Path, path: str) -> Path:
    """Resolve *path* against *project_root*, refusing escapes."""
    root = project_root.resolve()
    candidate = Path(path)
    resolved = (candidate if candidate.is_absolute() else root / candidate).resolve()
    if resolved != root and root not in resolved.parents:
        raise PathOutsideProjectError(f"Path is outside the project root: {path}")
    return resolved


class FileSystemTools:
    """Read, write and edit project files; Java writes reset the compile guard."""

    def __init__(self, project_root: Path, guard: CompileGuard) -> None:
        self.project_root = project_root
        self.guard = guard

    def _touch(self, path: Path) -> None:
        if path.suffix == ".java":
            self.guard.mark_file_modified(path)

    def read_file(self, path: str) -> str:
        target = resolve_in_project(self.project_root, path)
        if not target.is_file():
            return f"ERROR: File not found: {path}"
        text = target.read_text(encoding="utf-8", errors="replace")
        if len(text) > _MAX_READ_CHARS:
            return text[:_MAX_READ_CHARS] + f"\n...(truncated, {len(text)} chars total)"
        return text

    def write_file(self, path: str, content: str) -> str:
        target = resolve_in_project(self.project_root, path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")
        self._touch(target)
        logger.info("Wrote %s (%d chars)", target, len(content))
        return f"Wrote {len(content)} chars to {path}. Run check_syntax before compiling."

    def search_replace(self, path: str, search: str, replace: str) -> str:
        target = resolve_in_project(self.project_root, path)
        if not target.is_file():
            return f"ERROR: File not found: {path}"
        text = target.read_text(encoding="utf-8")
        if search not in text:
            return f"ERROR: Search text not found in {path}"
        target.write_text(text.replace(search, replace, 1), encoding="utf-8")
        self._touch(target)
        return f"Replaced 1 occurrence in {path}. Run check_syntax before compiling."

    def file_exists(self, path: str) -> str:
        target = resolve_in_project(self.project_root, path)
        return "true" if target.exists() else "false"

    def list_directory(self, path: str = ".") -> str:
        target = resolve_in_project(self.project_root, path)
        if not target.is_dir():
            return f"ERROR: Not a directory: {path}"
        entries = sorted(target.iterdir())
        lines = [
            f"{entry.name}/" if entry.is_dir() else entry.name for entry in entries[:_MAX_LISTING]
        ]
        if len(entries) > _MAX_LISTING:
            lines.append(f"... {len(entries) - _MAX_LISTING} more")
        return "\n".join(lines) or "(empty)"

    def register(self, registry: ToolRegistry) -> None:
        path_param = ToolParameter("path", "File path relative to the project root")
        registry.register(
            "read_file",
            "Read a file (source code, pom.xml, logs).",
            Capability.FILE_SYSTEM,
            self.read_file,
            [path_param],
        )
        registry.register(
            "write_file",
            "Write full content to a file, creating parent directories.",
            Capability.FILE_SYSTEM,
            self.write_file,
            [path_param, ToolParameter("content", "Complete file content")],
        )
        registry.register(
            "search_replace",
            "Replace the first occurrence of a string in a file. Use for precise fixes.",
            Capability.FILE_SYSTEM,
            self.search_replace,
            [
                path_param,
                ToolParameter("search", "Exact text to find"),
                ToolParameter("replace", "Replacement text"),
            ],
        )
        registry.register(
            "file_exists",
            "Check whether a file exists.",
            Capability.FILE_SYSTEM,
            self.file_exists,
            [path_param],
        )
        registry.register(
            "list_directory",
            "List the entries of a directory.",
            Capability.FILE_SYSTEM,
            self.list_directory,
            [ToolParameter("path", "Directory relative to the project root", required=False)],
        )
