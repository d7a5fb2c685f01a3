"""Pre-check: build the project, read coverage and pick the methods to work on.

Runs once per target before any model turn. A failed build is fatal for the
whole run; missing coverage is not, the static scan stands in for it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from utgen.analysis.java_source import scan_testable_methods

if TYPE_CHECKING:
    from utgen.agents.feedback import CoverageFeedbackEngine, FeedbackResult
    from utgen.coverage.parser import CoverageSource
    from utgen.models.coverage import MethodCoverageInfo
    from utgen.reporters.terminal import CLIReporter
    from utgen.tools.build import MavenExecutor
    from utgen.utils.paths import TargetLayout
    from utgen.utils.subprocess_runner import SubprocessResult

logger = logging.getLogger(__name__)

_MAX_ERROR_CHARS = 2000


@dataclass
class PreCheckResult:
    success: bool
    error_message: str = ""

    coverage_info_text: str = ""
    """Rendered coverage of the target class, shown to the model."""

    has_existing_tests: bool = False
    method_coverages: list[MethodCoverageInfo] = field(default_factory=list)

    from_report: bool = False
    """True when ``method_coverages`` came from a coverage report, not the static scan."""

    class_coverage: float | None = None
    """Class line coverage from the report, when available."""

    feedback_result: FeedbackResult | None = None

    @classmethod
    def failure(cls, message: str) -> PreCheckResult:
        return cls(success=False, error_message=message)

    def methods_sorted_by_coverage(self) -> list[MethodCoverageInfo]:
        return sorted(self.method_coverages, key=lambda m: m.overall_coverage)


def _build_failure(outcome: SubprocessResult | str) -> str | None:
    """Error text when a pre-check build did not succeed."""
    if isinstance(outcome, str):
        return outcome
    if outcome.success:
        return None
    return outcome.format_for_tool(max_chars=_MAX_ERROR_CHARS)


def _static_summary(methods: list[MethodCoverageInfo]) -> str:
    lines = ["Static analysis result (no coverage data yet):"]
    lines.extend(m.render() for m in methods)
    return "\n".join(lines)


class PreCheckExecutor:
    """Validates the project and gathers the per-method starting point."""

    def __init__(
        self,
        maven: MavenExecutor,
        coverage: CoverageSource,
        *,
        feedback: CoverageFeedbackEngine | None = None,
        coverage_threshold: float = 80.0,
        reporter: CLIReporter | None = None,
    ) -> None:
        self.maven = maven
        self.coverage = coverage
        self.feedback = feedback
        self.coverage_threshold = coverage_threshold
        self.reporter = reporter

    async def execute(self, layout: TargetLayout) -> PreCheckResult:
        if not layout.project_root.is_dir():
            return PreCheckResult.failure(
                f"Cannot determine project root from target file: {layout.source_file}"
            )
        if not layout.source_file.is_file():
            return PreCheckResult.failure(f"Target file not found: {layout.source_file}")

        has_tests = layout.test_file.is_file()
        if has_tests:
            self._info(f"Found existing test file: {layout.relative(layout.test_file)}")
            outcome = await self.maven.run_goals(*self.maven.goals_with_coverage("clean", "test"))
            error = _build_failure(outcome)
            if error is not None:
                if isinstance(outcome, str):
                    return PreCheckResult.failure(f"Test run failed: {error}")
                logger.warning("Existing tests did not pass; continuing with coverage analysis")
                self._warn("Some existing tests failed; coverage may be incomplete")
        else:
            self._info("No existing test file; compiling the project")
            outcome = await self.maven.run_goals("test-compile")
            error = _build_failure(outcome)
            if error is not None:
                return PreCheckResult.failure(f"Compilation failed: {error}")

        methods = await self.coverage.method_coverages(layout.class_name)
        from_report = bool(methods)
        class_coverage = None
        if from_report:
            coverage_text = await self.coverage.describe(layout.class_name)
            class_coverage = await self.coverage.class_line_coverage(layout.class_name)
        else:
            self._warn("No coverage data found; discovering methods from source")
            methods = scan_testable_methods(layout.source_file)
            coverage_text = _static_summary(methods) if methods else ""
        logger.info(
            "Pre-check found %d method(s) for %s (report=%s)",
            len(methods),
            layout.class_name,
            from_report,
        )

        feedback_result = None
        if self.feedback is not None and from_report:
            feedback_result = await self.feedback.run_feedback_cycle(
                layout, self.coverage_threshold
            )

        return PreCheckResult(
            success=True,
            coverage_info_text=coverage_text,
            has_existing_tests=has_tests,
            method_coverages=list(methods),
            from_report=from_report,
            class_coverage=class_coverage,
            feedback_result=feedback_result,
        )

    def _info(self, message: str) -> None:
        logger.info(message)
        if self.reporter is not None:
            self.reporter.print_info(message)

    def _warn(self, message: str) -> None:
        if self.reporter is not None:
            self.reporter.print_warning(message)
