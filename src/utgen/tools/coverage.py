"""Coverage query tools backed by the JaCoCo XML report."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from utgen.coverage.jacoco import find_report, parse_jacoco_xml, render_report_summary
from utgen.tools.registry import Capability, ToolParameter

if TYPE_CHECKING:
    from utgen.coverage.jacoco import ClassCoverage
    from utgen.coverage.parser import CoverageParser
    from utgen.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

_NO_REPORT = "ERROR: No JaCoCo report found under {module}. Run execute_test first."


class CoverageTools:
    """``get_coverage_report``, ``get_method_coverage_details`` and
    ``get_single_method_coverage``.

    ``module_path`` arguments are resolved against the project root, so the
    model may pass ``.`` for single-module projects.
    """

    def __init__(self, project_root: Path, parser: CoverageParser) -> None:
        self.project_root = project_root
        self.parser = parser

    def _module(self, module_path: str) -> Path:
        path = Path(module_path)
        return path if path.is_absolute() else self.project_root / path

    def _load_class(self, module_path: str, class_name: str) -> ClassCoverage | str:
        module = self._module(module_path)
        report_file = find_report(module)
        if report_file is None:
            return _NO_REPORT.format(module=module_path)
        class_cov = parse_jacoco_xml(report_file).find_class(class_name)
        if class_cov is None:
            return f"ERROR: Class {class_name} not found in coverage report"
        return class_cov

    def get_coverage_report(self, module_path: str = ".") -> str:
        report_file = find_report(self._module(module_path))
        if report_file is None:
            return _NO_REPORT.format(module=module_path)
        report = parse_jacoco_xml(report_file)
        lines = [render_report_summary(report), "", "Classes:"]
        for name in sorted(report.classes):
            class_cov = report.classes[name]
            lines.append(
                f"  {name}: line {class_cov.percentage('LINE'):.1f}%, "
                f"branch {class_cov.percentage('BRANCH'):.1f}%"
            )
        return "\n".join(lines)

    def get_method_coverage_details(self, module_path: str, class_name: str) -> str:
        loaded = self._load_class(module_path, class_name)
        if isinstance(loaded, str):
            return loaded
        return self.parser.render_class(loaded)

    def get_single_method_coverage(
        self, module_path: str, class_name: str, method_name: str
    ) -> str:
        """One line per matching method; a bare name lists every overload."""
        loaded = self._load_class(module_path, class_name)
        if isinstance(loaded, str):
            return loaded
        methods = loaded.find_methods(method_name)
        if not methods:
            return f"ERROR: Method {method_name} not found in {class_name}"
        return "\n".join(
            f"{loaded.name}: {self.parser.method_info(m).render()}" for m in methods
        )

    def register(self, registry: ToolRegistry) -> None:
        module_param = ToolParameter("module_path", "Maven module directory ('.' for the root)")
        class_param = ToolParameter("class_name", "Fully qualified class name")
        registry.register(
            "get_coverage_report",
            "Summarize the JaCoCo report: totals and per-class line/branch coverage.",
            Capability.COVERAGE,
            self.get_coverage_report,
            [ToolParameter("module_path", module_param.description, required=False)],
        )
        registry.register(
            "get_method_coverage_details",
            "Per-method line and branch coverage for one class.",
            Capability.COVERAGE,
            self.get_method_coverage_details,
            [module_param, class_param],
        )
        registry.register(
            "get_single_method_coverage",
            "Line and branch coverage for one method. Pass a signature such as "
            "calc(int, int) to select one overload.",
            Capability.COVERAGE,
            self.get_single_method_coverage,
            [module_param, class_param, ToolParameter("method_name", "Method name or signature")],
        )
