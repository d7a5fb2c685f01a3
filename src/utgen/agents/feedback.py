"""Coverage feedback: turn a coverage snapshot into ranked improvement suggestions.

Each cycle reads the current class coverage, lists the methods still below
the target, runs the boundary analysis on the source and decides which kind
of work should come next. Cycles are recorded so the run report can show how
coverage moved between them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import TYPE_CHECKING

from utgen.analysis.boundaries import find_boundaries

if TYPE_CHECKING:
    from utgen.coverage.parser import CoverageSource
    from utgen.utils.paths import TargetLayout

logger = logging.getLogger(__name__)

_MAX_LISTED = 10
_NO_PROGRESS_WINDOW = 3


class SuggestionType(Enum):
    MISSING_TEST = "missing_test"
    BOUNDARY_TEST = "boundary_test"
    WEAK_ASSERTION = "weak_assertion"
    EXCEPTION_HANDLING = "exception_handling"


class SuggestionPriority(Enum):
    """Ordered most urgent first."""

    HIGH = 0
    MEDIUM = 1
    LOW = 2


class NextAction(Enum):
    """Recommended follow-up for the model."""

    NONE = ("none", "No action needed")
    ADD_NEW_TESTS = ("add_new_tests", "Add new test methods for uncovered code")
    STRENGTHEN_EXISTING_TESTS = (
        "strengthen_existing_tests",
        "Strengthen existing tests with better assertions",
    )
    ADD_BOUNDARY_TESTS = ("add_boundary_tests", "Add boundary value and edge case tests")
    MANUAL_REVIEW = (
        "manual_review",
        "Manual review needed; consider reducing the code's complexity",
    )

    def __init__(self, key: str, description: str) -> None:
        self.key = key
        self.description = description


@dataclass
class ImprovementSuggestion:
    type: SuggestionType
    description: str
    priority: SuggestionPriority
    method_name: str = ""
    line: int | None = None


@dataclass
class FeedbackResult:
    """Outcome of one feedback cycle."""

    iteration: int
    class_name: str
    current_coverage: float
    """Class line coverage when the cycle ran."""

    target_coverage: float
    target_met: bool
    uncovered_methods: list[str] = field(default_factory=list)
    """Methods whose line coverage is below the target."""

    improvements: list[ImprovementSuggestion] = field(default_factory=list)
    """Sorted by priority, most urgent first."""

    next_action: NextAction = NextAction.NONE

    def suggestions_for(self, method_name: str, limit: int = 5) -> list[ImprovementSuggestion]:
        return [s for s in self.improvements if s.method_name == method_name][:limit]

    def to_agent_message(self) -> str:
        lines = [
            f"=== Coverage Feedback (cycle {self.iteration}) ===",
            f"Class: {self.class_name}",
            f"Coverage: {self.current_coverage:.1f}% / Target: {self.target_coverage:.0f}% "
            f"[{'MET' if self.target_met else 'NOT MET'}]",
        ]
        if self.target_met:
            lines.append("Coverage target achieved.")
            return "\n".join(lines)

        if self.uncovered_methods:
            lines.append("Methods below target:")
            lines.extend(f"  - {m}" for m in self.uncovered_methods[:_MAX_LISTED])
            if len(self.uncovered_methods) > _MAX_LISTED:
                lines.append(f"  ... and {len(self.uncovered_methods) - _MAX_LISTED} more")

        if self.improvements:
            lines.append("Suggestions (by priority):")
            for suggestion in self.improvements[:_MAX_LISTED]:
                lines.append(
                    f"  [{suggestion.priority.name}] {suggestion.type.value}: "
                    f"{suggestion.description}"
                )
            if len(self.improvements) > _MAX_LISTED:
                lines.append(f"  ... and {len(self.improvements) - _MAX_LISTED} more")

        lines.append(f"Recommended next action: {self.next_action.description}")
        return "\n".join(lines)


@dataclass
class FeedbackIteration:
    number: int
    timestamp: str
    coverage_at_start: float
    target_coverage: float
    suggestions: int
    result: str


def _boundary_priority(suggestion: str, uncovered: list[str]) -> SuggestionPriority:
    lowered = suggestion.lower()
    if any(method.lower() in lowered for method in uncovered):
        return SuggestionPriority.HIGH
    if "boundary" in lowered or "null" in lowered:
        return SuggestionPriority.MEDIUM
    return SuggestionPriority.LOW


def determine_next_action(
    current: float, target: float, improvements: list[ImprovementSuggestion]
) -> NextAction:
    if current >= target:
        return NextAction.NONE
    if not improvements:
        return NextAction.MANUAL_REVIEW
    kinds = {s.type for s in improvements}
    if SuggestionType.MISSING_TEST in kinds:
        return NextAction.ADD_NEW_TESTS
    if SuggestionType.WEAK_ASSERTION in kinds:
        return NextAction.STRENGTHEN_EXISTING_TESTS
    return NextAction.ADD_BOUNDARY_TESTS


class CoverageFeedbackEngine:
    """Runs feedback cycles against a coverage source and keeps their history."""

    def __init__(self, coverage: CoverageSource) -> None:
        self.coverage = coverage
        self.history: list[FeedbackIteration] = []
        self._cycles = 0

    async def run_feedback_cycle(
        self, layout: TargetLayout, target_coverage: float
    ) -> FeedbackResult:
        self._cycles += 1
        class_name = layout.class_name
        logger.info(
            "Feedback cycle %d for %s (target %.0f%%)", self._cycles, class_name, target_coverage
        )

        current = await self.coverage.class_line_coverage(class_name) or 0.0
        result = FeedbackResult(
            iteration=self._cycles,
            class_name=class_name,
            current_coverage=current,
            target_coverage=target_coverage,
            target_met=current >= target_coverage,
        )
        if result.target_met:
            logger.info("Coverage target met for %s (%.1f%%)", class_name, current)
            self._record(result)
            return result

        methods = await self.coverage.method_coverages(class_name) or []
        result.uncovered_methods = [m.name for m in methods if m.line_coverage < target_coverage]

        improvements: list[ImprovementSuggestion] = []
        try:
            conditions = find_boundaries(layout.source_file.read_bytes())
        except OSError as exc:
            logger.warning("Boundary analysis skipped for %s: %s", layout.source_file, exc)
            conditions = []
        for condition in conditions:
            for text in condition.suggestions():
                improvements.append(
                    ImprovementSuggestion(
                        type=SuggestionType.BOUNDARY_TEST,
                        description=text,
                        priority=_boundary_priority(text, result.uncovered_methods),
                        method_name=condition.method_name,
                        line=condition.line,
                    )
                )
        improvements.extend(
            ImprovementSuggestion(
                type=SuggestionType.MISSING_TEST,
                description=f"Add tests for uncovered method: {name}",
                priority=SuggestionPriority.HIGH,
                method_name=name,
            )
            for name in result.uncovered_methods
        )
        improvements.sort(key=lambda s: s.priority.value)

        result.improvements = improvements
        result.next_action = determine_next_action(current, target_coverage, improvements)
        self._record(result)
        logger.info(
            "Feedback cycle %d: %d suggestion(s), next action %s",
            self._cycles,
            len(improvements),
            result.next_action.key,
        )
        return result

    def _record(self, result: FeedbackResult) -> None:
        self.history.append(
            FeedbackIteration(
                number=result.iteration,
                timestamp=datetime.now(tz=UTC).isoformat(timespec="seconds"),
                coverage_at_start=result.current_coverage,
                target_coverage=result.target_coverage,
                suggestions=len(result.improvements),
                result="TARGET_MET" if result.target_met else "IN_PROGRESS",
            )
        )

    def should_continue(self, max_cycles: int) -> bool:
        """False once *max_cycles* ran or coverage stalled over the last three cycles."""
        if self._cycles >= max_cycles:
            return False
        if len(self.history) >= _NO_PROGRESS_WINDOW:
            recent = {it.coverage_at_start for it in self.history[-_NO_PROGRESS_WINDOW:]}
            if len(recent) == 1:
                logger.info("No coverage progress in the last %d cycles", _NO_PROGRESS_WINDOW)
                return False
        return True

    def iteration_summary(self) -> str:
        if not self.history:
            return ""
        lines = ["Coverage feedback history:"]
        for it in self.history:
            lines.append(
                f"  Cycle {it.number} ({it.timestamp}): {it.coverage_at_start:.1f}% -> "
                f"target {it.target_coverage:.0f}%, {it.suggestions} suggestion(s), {it.result}"
            )
        if len(self.history) > 1:
            first = self.history[0].coverage_at_start
            last = self.history[-1].coverage_at_start
            lines.append(f"  Overall: {first:.1f}% -> {last:.1f}% ({last - first:+.1f})")
        return "\n".join(lines)

    def reset(self) -> None:
        self.history.clear()
        self._cycles = 0
