"""Method iteration tools: let a model session walk the method queue itself."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from utgen.agents.method_queue import MethodQueue, MethodQueueError, MethodStatus
from utgen.analysis.java_source import scan_testable_methods
from utgen.tools.registry import Capability, ToolParameter

if TYPE_CHECKING:
    from utgen.coverage.parser import CoverageSource
    from utgen.models.coverage import MethodCoverageInfo
    from utgen.tools.registry import ToolRegistry
    from utgen.utils.paths import TargetLayout

logger = logging.getLogger(__name__)

_RULE = "─" * 50

_STATUS_ALIASES = {
    "PASS": MethodStatus.SUCCESS,
    "FAIL": MethodStatus.FAILED,
    "SKIP": MethodStatus.SKIPPED,
}


async def collect_method_coverage(
    source: CoverageSource, layout: TargetLayout
) -> list[MethodCoverageInfo]:
    """Per-method records from coverage data, or a static scan when none exists."""
    methods = await source.method_coverages(layout.class_name)
    if methods:
        logger.info(
            "Using %s coverage for %s (%d methods)", source.name, layout.class_name, len(methods)
        )
        return methods
    logger.info("No coverage data for %s, scanning source", layout.class_name)
    return scan_testable_methods(layout.source_file)


def parse_status(value: str) -> MethodStatus:
    """Accept PASS/FAIL/SKIP or any terminal status name."""
    key = value.strip().upper()
    if key in _STATUS_ALIASES:
        return _STATUS_ALIASES[key]
    try:
        return MethodStatus[key]
    except KeyError:
        raise ValueError(f"Unknown method status: {value}") from None


class MethodIteratorTools:
    """Wraps a :class:`MethodQueue` in tool form."""

    def __init__(
        self,
        queue: MethodQueue,
        layout: TargetLayout,
        coverage: CoverageSource,
        *,
        module_path: str = ".",
    ) -> None:
        self.queue = queue
        self.layout = layout
        self.coverage = coverage
        self.module_path = module_path

    async def init_method_iteration(self) -> str:
        methods = await collect_method_coverage(self.coverage, self.layout)
        self.queue.build(methods)
        if not methods:
            return f"ERROR: No testable methods found in {self.layout.class_name}"
        lines = [f"Method iteration initialized for {self.layout.class_name}: {len(methods)}"]
        lines.extend(
            f"  [{entry.priority.value}] {entry.info.signature} "
            f"line {entry.info.line_coverage:.1f}%"
            for entry in self.queue.entries
        )
        lines.append("Call get_next_method() to start.")
        return "\n".join(lines)

    def get_next_method(self) -> str:
        if not len(self.queue):
            return "ERROR: Not initialized. Call init_method_iteration first."
        entry = self.queue.next()
        if entry is None:
            return (
                "ITERATION_COMPLETE: All methods have been processed.\n"
                "Call get_iteration_progress() for a summary."
            )
        position = self.queue.entries.index(entry) + 1
        test_file = self.layout.relative(self.layout.test_file)
        return "\n".join(
            [
                _RULE,
                f"Progress: {position}/{len(self.queue)}",
                f"FOCUS ON: {entry.info.signature}",
                f"Priority: {entry.priority.value}",
                f"Current line coverage: {entry.info.line_coverage:.1f}%",
                _RULE,
                "Steps for THIS method only:",
                f"  1. Read the test file: read_file('{test_file}')",
                f"  2. Add tests for {entry.name} only",
                "  3. check_syntax -> compile_project -> execute_test",
                f"  4. get_single_method_coverage('{self.module_path}', "
                f"'{self.layout.class_name}', '{entry.info.signature}')",
                "  5. complete_current_method(status, coverage, notes)",
            ]
        )

    def complete_current_method(self, status: str, coverage: float = 0.0, notes: str = "") -> str:
        try:
            entry = self.queue.complete(parse_status(status), float(coverage), notes or "")
        except (MethodQueueError, ValueError) as exc:
            return f"ERROR: {exc}"
        remaining = sum(1 for e in self.queue.entries if not e.status.is_terminal)
        lines = [
            f"Method completed: {entry.info.signature}",
            f"Status: {entry.status.name}",
            f"Coverage: {entry.coverage_achieved:.1f}%",
        ]
        if notes:
            lines.append(f"Notes: {notes}")
        if remaining:
            lines.append(f"Remaining: {remaining} methods. Call get_next_method() to continue.")
        else:
            lines.append("This was the last method. Call get_iteration_progress() for a summary.")
        return "\n".join(lines)

    def get_iteration_progress(self) -> str:
        if not len(self.queue):
            return "ERROR: Not initialized."
        return self.queue.render_progress()

    def skip_low_priority_methods(self, reason: str = "") -> str:
        skipped = self.queue.skip_low_priority(reason or "coverage already above threshold")
        return f"Skipped {skipped} low-priority (P2) methods"

    def register(self, registry: ToolRegistry) -> None:
        registry.register(
            "init_method_iteration",
            "Initialize method iteration: prioritize the target class's methods by coverage.",
            Capability.METHOD_ITERATOR,
            self.init_method_iteration,
        )
        registry.register(
            "get_next_method",
            "Get the next method to test. Returns the current method again while it is "
            "in progress.",
            Capability.METHOD_ITERATOR,
            self.get_next_method,
        )
        registry.register(
            "complete_current_method",
            "Mark the current method as completed.",
            Capability.METHOD_ITERATOR,
            self.complete_current_method,
            [
                ToolParameter("status", "PASS, FAIL, SKIP or PARTIAL"),
                ToolParameter("coverage", "Line coverage achieved (0-100)", type="number"),
                ToolParameter("notes", "Optional notes", required=False),
            ],
        )
        registry.register(
            "get_iteration_progress",
            "Progress summary showing the status of every method.",
            Capability.METHOD_ITERATOR,
            self.get_iteration_progress,
        )
        registry.register(
            "skip_low_priority_methods",
            "Skip the remaining P2 methods once the coverage threshold is met.",
            Capability.METHOD_ITERATOR,
            self.skip_low_priority_methods,
            [ToolParameter("reason", "Why the methods are skipped", required=False)],
        )
