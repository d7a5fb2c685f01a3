"""Per-method coverage extraction from structured reports or rendered text.

Two extraction paths produce the same :class:`MethodCoverageInfo` records:

* walking JaCoCo counters directly (:meth:`CoverageParser.from_class`), and
* matching rendered summary lines such as
  ``◐ calc(int, int) Line: 62.5% Branch: 50.0%`` (:meth:`CoverageParser.from_text`).

:class:`CoverageSource` hides which of the two is in use from callers.
"""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from utgen.coverage.jacoco import (
    CONSTRUCTOR,
    CONSTRUCTOR_DISPLAY,
    SYNTHETIC_MARKER,
    find_report,
    parse_jacoco_xml,
)
from utgen.models.coverage import DEFAULT_THRESHOLD, MethodCoverageInfo, select_methods

if TYPE_CHECKING:
    from pathlib import Path

    from utgen.coverage.jacoco import ClassCoverage, MethodCounters
    from utgen.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

_SUMMARY_LINE_RE = re.compile(
    r"([✓◐✗])\s+([\w$]+|<init>)\(([^)]*)\)\s+Line:\s*([\d.]+)%\s+Branch:\s*([\d.]+)%"
)
_CLASS_HEADER_RE = re.compile(r"Class:\s*(\S+)\s+\(Line:\s*([\d.]+)%")
_LINE_VALUE_RE = re.compile(r"line[=:]\s*([\d.]+)%", re.IGNORECASE)
_ANY_PERCENT_RE = re.compile(r"([\d.]+)%")

_SKIPPED_NAMES = frozenset({CONSTRUCTOR, CONSTRUCTOR_DISPLAY})


class CoverageParser:
    """Derive prioritized per-method coverage records."""

    def __init__(self, threshold: float = DEFAULT_THRESHOLD) -> None:
        self.threshold = threshold

    # ── Structured path ──────────────────────────────────────────

    def method_info(self, method: MethodCounters) -> MethodCoverageInfo:
        return MethodCoverageInfo.from_percentages(
            method.display_name,
            method.line_coverage,
            method.branch_coverage,
            threshold=self.threshold,
            signature=method.signature,
        )

    def from_class(self, class_cov: ClassCoverage) -> list[MethodCoverageInfo]:
        """Records for every non-constructor method of *class_cov*."""
        return [self.method_info(m) for m in class_cov.methods if not m.is_constructor]

    # ── Rendered text path ───────────────────────────────────────

    def render_class(self, class_cov: ClassCoverage) -> str:
        """Render a class as a header plus one summary line per method."""
        lines = [
            f"Class: {class_cov.name} (Line: {class_cov.percentage('LINE'):.1f}%, "
            f"Branch: {class_cov.percentage('BRANCH'):.1f}%)"
        ]
        lines.extend(self.method_info(m).render() for m in class_cov.methods)
        if not class_cov.methods:
            lines.append("  (no methods reported)")
        return "\n".join(lines)

    def from_text(self, text: str) -> list[MethodCoverageInfo]:
        """Records for every summary line found in *text*, in order."""
        methods: list[MethodCoverageInfo] = []
        for match in _SUMMARY_LINE_RE.finditer(text):
            name = match.group(2)
            if name in _SKIPPED_NAMES or SYNTHETIC_MARKER in name:
                continue
            methods.append(
                MethodCoverageInfo.from_percentages(
                    name,
                    float(match.group(4)),
                    float(match.group(5)),
                    threshold=self.threshold,
                    signature=f"{name}({match.group(3)})",
                )
            )
        return methods

    def extract_line_coverage(self, text: str, method: str = "") -> float | None:
        """Pull a single line-coverage value out of free-form tool output.

        Tries a summary line for *method* (a name or a signature) first, then
        ``line=NN%`` / ``line: NN%``, then the first bare percentage. Output
        holding summary lines only for other methods yields None.
        """
        infos = self.from_text(text)
        if infos:
            matches = select_methods(infos, method) if method else infos
            return matches[0].line_coverage if matches else None
        for pattern in (_LINE_VALUE_RE, _ANY_PERCENT_RE):
            match = pattern.search(text)
            if match:
                try:
                    return float(match.group(1))
                except ValueError:
                    continue
        return None

    @staticmethod
    def extract_class_line_coverage(text: str) -> float | None:
        match = _CLASS_HEADER_RE.search(text)
        return float(match.group(2)) if match else None


def is_tool_error(result: str | None) -> bool:
    """Return True for ``ERROR...`` tool results and missing-argument complaints."""
    if result is None:
        return True
    lowered = result.strip().lower()
    return lowered.startswith("error") or "missing required parameter" in lowered


# ── Coverage sources ─────────────────────────────────────────────


class CoverageSource(ABC):
    """Where per-method coverage comes from."""

    def __init__(self, parser: CoverageParser) -> None:
        self.parser = parser

    @property
    @abstractmethod
    def name(self) -> str:
        """Short identifier used in logs."""

    @abstractmethod
    async def method_coverages(self, class_name: str) -> list[MethodCoverageInfo] | None:
        """Per-method records for *class_name*, or None when no data exists."""

    @abstractmethod
    async def class_line_coverage(self, class_name: str) -> float | None:
        """Overall line coverage for *class_name*, or None when unknown."""

    @abstractmethod
    async def describe(self, class_name: str) -> str:
        """Human-readable coverage summary for prompts."""

    async def method_line_coverage(self, class_name: str, method: str) -> float | None:
        matches = select_methods(await self.method_coverages(class_name) or [], method)
        return matches[0].line_coverage if matches else None


class JaCoCoCoverageSource(CoverageSource):
    """Reads the JaCoCo XML report from disk on every query."""

    def __init__(self, module_path: Path, parser: CoverageParser) -> None:
        super().__init__(parser)
        self.module_path = module_path

    @property
    def name(self) -> str:
        return "jacoco"

    def _load_class(self, class_name: str) -> ClassCoverage | None:
        report_file = find_report(self.module_path)
        if report_file is None:
            logger.info("No JaCoCo report under %s", self.module_path)
            return None
        return parse_jacoco_xml(report_file).find_class(class_name)

    async def method_coverages(self, class_name: str) -> list[MethodCoverageInfo] | None:
        class_cov = self._load_class(class_name)
        if class_cov is None:
            return None
        return self.parser.from_class(class_cov)

    async def class_line_coverage(self, class_name: str) -> float | None:
        class_cov = self._load_class(class_name)
        return class_cov.percentage("LINE") if class_cov else None

    async def describe(self, class_name: str) -> str:
        class_cov = self._load_class(class_name)
        if class_cov is None:
            return f"No coverage data for {class_name}"
        return self.parser.render_class(class_cov)


class ToolCoverageSource(CoverageSource):
    """Parses the rendered output of the coverage tools via tool dispatch."""

    def __init__(self, registry: ToolRegistry, module_path: Path, parser: CoverageParser) -> None:
        super().__init__(parser)
        self.registry = registry
        self.module_path = module_path

    @property
    def name(self) -> str:
        return "tool"

    async def _details(self, class_name: str) -> str | None:
        result = await self.registry.invoke(
            "get_method_coverage_details",
            {"module_path": str(self.module_path), "class_name": class_name},
        )
        if is_tool_error(result):
            logger.info(
                "Coverage details unavailable for %s: %s", class_name, (result or "")[:200]
            )
            return None
        return result

    async def method_coverages(self, class_name: str) -> list[MethodCoverageInfo] | None:
        text = await self._details(class_name)
        if text is None:
            return None
        return self.parser.from_text(text)

    async def class_line_coverage(self, class_name: str) -> float | None:
        text = await self._details(class_name)
        return self.parser.extract_class_line_coverage(text) if text else None

    async def describe(self, class_name: str) -> str:
        text = await self._details(class_name)
        return text if text is not None else f"No coverage data for {class_name}"
