"""Source analysis tools: class structure, testable methods, boundaries, test paths."""

from __future__ import annotations

from typing import TYPE_CHECKING

from utgen.analysis.boundaries import render_boundaries
from utgen.analysis.java_source import describe_source, parse_java_file
from utgen.tools.filesystem import resolve_in_project
from utgen.tools.registry import Capability, ToolParameter
from utgen.utils.paths import class_name_for, derive_test_file

if TYPE_CHECKING:
    from pathlib import Path

    from utgen.tools.registry import ToolRegistry


class CodeAnalyzerTools:
    def __init__(self, project_root: Path) -> None:
        self.project_root = project_root

    def _source(self, file_path: str) -> Path | str:
        path = resolve_in_project(self.project_root, file_path)
        if not path.is_file():
            return f"ERROR: File not found: {file_path}"
        return path

    def analyze_class(self, file_path: str) -> str:
        path = self._source(file_path)
        if isinstance(path, str):
            return path
        return describe_source(parse_java_file(path))

    def get_methods_for_testing(self, file_path: str) -> str:
        path = self._source(file_path)
        if isinstance(path, str):
            return path
        methods = [m for m in parse_java_file(path).methods if m.is_testable]
        if not methods:
            return f"No testable methods found in {file_path}"
        lines = [f"Testable methods in {path.name}: {len(methods)}"]
        lines.extend(
            f"  - {m.signature} (lines {m.start_line}-{m.end_line}, "
            f"{m.end_line - m.start_line + 1} lines)"
            for m in methods
        )
        return "\n".join(lines)

    def analyze_boundaries(self, file_path: str, method_name: str = "") -> str:
        path = self._source(file_path)
        if isinstance(path, str):
            return path
        return render_boundaries(path, method_name)

    def find_test_file(self, file_path: str) -> str:
        path = self._source(file_path)
        if isinstance(path, str):
            return path
        test_file = derive_test_file(path, self.project_root)
        state = "exists" if test_file.is_file() else "does not exist yet"
        return (
            f"Source class: {class_name_for(path, self.project_root)}\n"
            f"Test file: {test_file.resolve().relative_to(self.project_root.resolve())} ({state})"
        )

    def register(self, registry: ToolRegistry) -> None:
        file_param = ToolParameter("file_path", "Path to the Java source file")
        registry.register(
            "analyze_class",
            "Analyze a Java class: package, classes, methods with signatures and line ranges.",
            Capability.CODE_ANALYZER,
            self.analyze_class,
            [file_param],
        )
        registry.register(
            "get_methods_for_testing",
            "List the methods worth testing (excludes constructors, main, toString, "
            "equals and hashCode).",
            Capability.CODE_ANALYZER,
            self.get_methods_for_testing,
            [file_param],
        )
        registry.register(
            "analyze_boundaries",
            "Find branch conditions and comparisons and suggest edge-case tests.",
            Capability.CODE_ANALYZER,
            self.analyze_boundaries,
            [file_param, ToolParameter("method_name", "Limit to one method", required=False)],
        )
        registry.register(
            "find_test_file",
            "Get the expected test file path for a source class.",
            Capability.CODE_ANALYZER,
            self.find_test_file,
            [file_param],
        )
