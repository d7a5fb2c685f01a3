"""Syntax checking tools; every check result is recorded on the compile guard."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from utgen.analysis.java_source import find_syntax_errors
from utgen.tools.filesystem import resolve_in_project
from utgen.tools.registry import Capability, ToolParameter

if TYPE_CHECKING:
    from pathlib import Path

    from utgen.diagnostics.source import Diagnostic, DiagnosticSource
    from utgen.diagnostics.stabilizer import DiagnosticReport, DiagnosticStabilizer
    from utgen.tools.compile_guard import CompileGuard
    from utgen.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

_MAX_LISTED_ERRORS = 10

_DEPENDENCY_HINTS = ("cannot be resolved", "cannot find symbol", "does not exist")


def _format_diagnostics(label: str, items: list[Diagnostic]) -> list[str]:
    lines = [f"{label} ({len(items)}):"]
    lines.extend(f"  - {item}" for item in items[:_MAX_LISTED_ERRORS])
    if len(items) > _MAX_LISTED_ERRORS:
        lines.append(f"  ... {len(items) - _MAX_LISTED_ERRORS} more")
    return lines


class SyntaxTools:
    """``check_syntax`` (tree-sitter) and ``check_syntax_with_lsp`` (stabilized diagnostics)."""

    def __init__(
        self,
        project_root: Path,
        guard: CompileGuard,
        *,
        diagnostics: DiagnosticSource | None = None,
        stabilizer: DiagnosticStabilizer | None = None,
    ) -> None:
        self.project_root = project_root
        self.guard = guard
        self.diagnostics = diagnostics
        self.stabilizer = stabilizer

    def check_syntax(self, file_path: str) -> str:
        path = resolve_in_project(self.project_root, file_path)
        if not path.is_file():
            return f"ERROR: File not found: {file_path}"
        issues = find_syntax_errors(path.read_bytes())
        if not issues:
            self.guard.mark_syntax_passed(path)
            return f"SYNTAX_OK: No errors found in {file_path}"

        summary = "; ".join(str(issue) for issue in issues[:_MAX_LISTED_ERRORS])
        self.guard.mark_syntax_failed(path, summary)
        lines = [f"SYNTAX_ERROR: {len(issues)} problem(s) in {file_path}"]
        lines.extend(f"  - {issue}" for issue in issues[:_MAX_LISTED_ERRORS])
        return "\n".join(lines)

    async def check_syntax_with_lsp(self, file_path: str) -> str:
        if self.diagnostics is None or self.stabilizer is None:
            return "ERROR: Diagnostic checking is not enabled (workflow.use_lsp)"
        path = resolve_in_project(self.project_root, file_path)
        if not path.is_file():
            return f"ERROR: File not found: {file_path}"

        content = path.read_text(encoding="utf-8", errors="replace")
        report = await self.stabilizer.wait_for_diagnostics(
            self.diagnostics, path.as_uri(), content
        )
        return self._record_report(path, file_path, report)

    def _record_report(self, path: Path, file_path: str, report: DiagnosticReport) -> str:
        if report.has_errors:
            self.guard.mark_syntax_failed(path, "; ".join(d.message for d in report.errors))
        else:
            self.guard.mark_syntax_passed(path)

        if not report.errors and not report.warnings:
            return f"LSP_OK: No errors found in {file_path}"

        lines: list[str] = []
        if report.errors:
            lines.extend(_format_diagnostics("LSP_ERRORS", report.errors))
        if report.warnings:
            if lines:
                lines.append("")
            lines.extend(_format_diagnostics("LSP_WARNINGS", report.warnings))
        if any(h in d.message for d in report.errors for h in _DEPENDENCY_HINTS):
            lines.extend(
                [
                    "",
                    "SUGGESTIONS:",
                    "  - Check that test dependencies (JUnit 5, Mockito) are declared in pom.xml",
                    "  - Check imports for the classes under test",
                ]
            )
        return "\n".join(lines)

    def register(self, registry: ToolRegistry) -> None:
        file_param = ToolParameter("file_path", "Path to the Java file (relative to project root)")
        registry.register(
            "check_syntax",
            "Check Java file syntax before compilation. Returns syntax errors if any.",
            Capability.SYNTAX_CHECKER,
            self.check_syntax,
            [file_param],
        )
        registry.register(
            "check_syntax_with_lsp",
            "Check a Java file with the diagnostic service (waits for results to settle).",
            Capability.LSP_CHECKER,
            self.check_syntax_with_lsp,
            [file_param],
        )
