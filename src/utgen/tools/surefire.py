"""Surefire report tools: test result summaries and failure classification."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

from defusedxml import ElementTree
from defusedxml.ElementTree import ParseError as DefusedParseError

from utgen.tools.registry import Capability, ToolParameter

if TYPE_CHECKING:
    from pathlib import Path
    from xml.etree.ElementTree import Element as XmlElement

    from utgen.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

REPORTS_DIR = "target/surefire-reports"

_STACK_PREVIEW_LINES = 5


class FailureType(Enum):
    """Failure category with the repair hint handed to the model."""

    COMPILATION_ERROR = (
        "Compilation error",
        "Check for syntax errors, missing imports or type mismatches.",
    )
    NULL_POINTER = (
        "NullPointerException",
        "A null value was encountered. Initialize mocks with @Mock and @InjectMocks.",
    )
    DEPENDENCY_ERROR = (
        "Dependency/ClassNotFound error",
        "A required class is missing. Check imports and pom.xml dependencies.",
    )
    MOCK_ERROR = (
        "Mock configuration error",
        "Verify that when().thenReturn() stubs match the method signatures.",
    )
    TIMEOUT = ("Test timeout", "Check for infinite loops or blocking calls.")
    INITIALIZATION_ERROR = (
        "Initialization error",
        "Check constructors and @BeforeEach setup.",
    )
    ASSERTION_FAILURE = (
        "Assertion failure",
        "Compare expected and actual values against the production logic.",
    )
    UNKNOWN = ("Unknown error", "Analyze the stack trace for details.")

    def __init__(self, description: str, repair_hint: str) -> None:
        self.description = description
        self.repair_hint = repair_hint


_CLASSIFIERS: list[tuple[FailureType, tuple[str, ...]]] = [
    (
        FailureType.COMPILATION_ERROR,
        ("compilationerror", "cannot find symbol", "cannot resolve", "syntax error"),
    ),
    (FailureType.NULL_POINTER, ("nullpointerexception",)),
    (
        FailureType.DEPENDENCY_ERROR,
        ("classnotfoundexception", "noclassdeffounderror", "nosuchmethod"),
    ),
    (
        FailureType.MOCK_ERROR,
        ("mock", "stubbing", "wanted but not invoked", "misplacedmatcherexception"),
    ),
    (FailureType.TIMEOUT, ("timeout", "timed out")),
    (FailureType.INITIALIZATION_ERROR, ("initializationerror", "beforeeach", "beforeall")),
    (FailureType.ASSERTION_FAILURE, ("assertionfailederror", "assertionerror", "expected")),
]


def classify_failure(kind: str, message: str, stack_trace: str) -> FailureType:
    combined = f"{kind} {message} {stack_trace}".lower()
    for failure_type, needles in _CLASSIFIERS:
        if any(needle in combined for needle in needles):
            return failure_type
    return FailureType.UNKNOWN


@dataclass
class CaseFailure:
    class_name: str
    method_name: str
    failure_type: FailureType
    message: str = ""
    stack_trace: str = ""


@dataclass
class SuiteTotals:
    tests: int = 0
    failures: int = 0
    errors: int = 0
    skipped: int = 0
    time: float = 0.0
    failed: list[CaseFailure] = field(default_factory=list)

    @property
    def passed(self) -> int:
        return self.tests - self.failures - self.errors - self.skipped


def _int(element: XmlElement, key: str) -> int:
    try:
        return int(element.get(key, "0"))
    except ValueError:
        return 0


def _float(element: XmlElement, key: str) -> float:
    try:
        return float(element.get(key, "0").replace(",", ""))
    except ValueError:
        return 0.0


def parse_surefire_report(report_file: Path, totals: SuiteTotals) -> None:
    """Accumulate one ``TEST-*.xml`` file into *totals*."""
    try:
        root = ElementTree.parse(report_file).getroot()
    except (DefusedParseError, OSError) as e:
        logger.warning("Failed to parse Surefire report %s: %s", report_file, e)
        return

    totals.tests += _int(root, "tests")
    totals.failures += _int(root, "failures")
    totals.errors += _int(root, "errors")
    totals.skipped += _int(root, "skipped")
    totals.time += _float(root, "time")
    for testcase in root.iter("testcase"):
        problem = testcase.find("failure")
        if problem is None:
            problem = testcase.find("error")
        if problem is None:
            continue
        message = problem.get("message", "")
        stack_trace = (problem.text or "").strip()
        totals.failed.append(
            CaseFailure(
                class_name=testcase.get("classname", ""),
                method_name=testcase.get("name", "unknown"),
                failure_type=classify_failure(problem.get("type", ""), message, stack_trace),
                message=message,
                stack_trace=stack_trace,
            )
        )


def collect_reports(module_path: Path, test_class_name: str = "") -> SuiteTotals | None:
    reports_dir = module_path / REPORTS_DIR
    if not reports_dir.is_dir():
        return None
    pattern = f"TEST-{test_class_name}.xml" if test_class_name else "TEST-*.xml"
    files = sorted(reports_dir.glob(pattern))
    if not files:
        return None
    totals = SuiteTotals()
    for report_file in files:
        parse_surefire_report(report_file, totals)
    return totals


class SurefireReportTools:
    """``get_test_results_summary`` and ``analyze_test_failures``."""

    def __init__(self, project_root: Path) -> None:
        self.project_root = project_root

    def get_test_results_summary(self, test_class_name: str = "") -> str:
        totals = collect_reports(self.project_root, test_class_name)
        if totals is None:
            return f"No Surefire reports found under {REPORTS_DIR}. Run execute_test first."
        lines = [
            "Test Results Summary",
            f"  Total: {totals.tests}",
            f"  Passed: {totals.passed}",
            f"  Failures: {totals.failures}",
            f"  Errors: {totals.errors}",
            f"  Skipped: {totals.skipped}",
            f"  Time: {totals.time:.2f}s",
        ]
        if not totals.failed:
            lines.append("ALL TESTS PASSED")
        else:
            lines.append("FAILED TESTS:")
            lines.extend(f"  - {f.class_name}.{f.method_name}" for f in totals.failed)
        return "\n".join(lines)

    def analyze_test_failures(self, test_class_name: str = "") -> str:
        totals = collect_reports(self.project_root, test_class_name)
        if totals is None:
            return "No Surefire reports found. Run tests first."
        if not totals.failed:
            return "No test failures found. All tests passed."

        lines = [f"Found {len(totals.failed)} failure(s):"]
        for index, failure in enumerate(totals.failed, start=1):
            lines.extend(
                [
                    "",
                    f"#{index} {failure.class_name}.{failure.method_name}",
                    f"  Type: {failure.failure_type.description}",
                    f"  Message: {failure.message or 'N/A'}",
                    f"  Repair hint: {failure.failure_type.repair_hint}",
                ]
            )
            stack = failure.stack_trace.splitlines()[:_STACK_PREVIEW_LINES]
            lines.extend(f"    {line.strip()}" for line in stack)
        return "\n".join(lines)

    def register(self, registry: ToolRegistry) -> None:
        class_param = ToolParameter(
            "test_class_name",
            "Fully qualified test class name (all reports if empty)",
            required=False,
        )
        registry.register(
            "get_test_results_summary",
            "Summarize the latest Surefire test reports.",
            Capability.TEST_REPORT,
            self.get_test_results_summary,
            [class_param],
        )
        registry.register(
            "analyze_test_failures",
            "Classify test failures and give repair hints.",
            Capability.TEST_REPORT,
            self.analyze_test_failures,
            [class_param],
        )
