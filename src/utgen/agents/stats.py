"""Run statistics and the Markdown report written at the end of a run."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from utgen.agents.method_queue import MethodStatus

logger = logging.getLogger(__name__)

REPORT_PREFIX = "test-generation-report-"

_BAR_WIDTH = 40
_NAME_WIDTH = 20
_TREND_WINDOW = 3

_STATUS_ICONS = {
    MethodStatus.SUCCESS: "✅",
    MethodStatus.SKIPPED: "⏭️",
    MethodStatus.PARTIAL: "⚠️",
    MethodStatus.FAILED: "❌",
}


def _format_duration(seconds: float) -> str:
    minutes, secs = divmod(int(seconds), 60)
    return f"{minutes}m {secs}s" if minutes else f"{secs}s"


def _shorten(text: str, width: int) -> str:
    return text if len(text) <= width else text[: width - 3] + "..."


@dataclass
class MethodStats:
    """Timing, tokens and outcome for one processed method."""

    name: str
    priority: str
    initial_coverage: float = 0.0
    status: MethodStatus = MethodStatus.IN_PROGRESS
    coverage: float = 0.0
    """Final line coverage."""

    iterations: int = 0
    """Verified generation rounds."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    skip_reason: str = ""
    started: float = field(default_factory=time.monotonic)
    finished: float | None = None

    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.completion_tokens

    @property
    def duration(self) -> float:
        end = self.finished if self.finished is not None else time.monotonic()
        return end - self.started

    @property
    def is_success(self) -> bool:
        return self.status in (MethodStatus.SUCCESS, MethodStatus.SKIPPED)

    def add_tokens(self, prompt: int, completion: int) -> None:
        self.prompt_tokens += prompt
        self.completion_tokens += completion

    def complete(self, status: MethodStatus, coverage: float) -> None:
        self.status = status
        self.coverage = coverage
        self.finished = time.monotonic()

    def mark_skipped(self, reason: str) -> None:
        self.skip_reason = reason
        self.complete(MethodStatus.SKIPPED, self.initial_coverage)


@dataclass
class IterationStats:
    """Run-wide counters for one target file."""

    target_file: str
    started_at: datetime = field(default_factory=datetime.now)
    methods: list[MethodStats] = field(default_factory=list)
    prompt_tokens: int = 0
    completion_tokens: int = 0
    feedback_summary: str = ""

    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.completion_tokens

    def start_method(
        self, name: str, priority: str, initial_coverage: float = 0.0
    ) -> MethodStats:
        stats = MethodStats(name=name, priority=priority, initial_coverage=initial_coverage)
        self.methods.append(stats)
        return stats

    def remove_method(self, stats: MethodStats) -> None:
        self.methods = [m for m in self.methods if m is not stats]

    def record_tokens(
        self, prompt: int, completion: int, method: MethodStats | None = None
    ) -> None:
        """Add to the run totals and, when given, to *method*."""
        self.prompt_tokens += prompt
        self.completion_tokens += completion
        if method is not None:
            method.add_tokens(prompt, completion)

    def count(self, status: MethodStatus) -> int:
        return sum(1 for m in self.methods if m.status is status)

    def token_trend(self) -> str:
        """Compare prompt tokens of the first and last processed methods."""
        processed = [m for m in self.methods if m.status is not MethodStatus.SKIPPED]
        if len(processed) < _TREND_WINDOW:
            return ""
        first = sum(m.prompt_tokens for m in processed[:_TREND_WINDOW]) // _TREND_WINDOW
        last = sum(m.prompt_tokens for m in processed[-_TREND_WINDOW:]) // _TREND_WINDOW
        if first <= 0:
            return ""
        if last < first:
            return f"Prompt tokens per method fell by {(first - last) * 100 // first}%"
        return "Prompt tokens per method stayed stable"

    # ── Markdown ─────────────────────────────────────────────────

    def render_markdown(self, now: datetime | None = None) -> str:
        now = now or datetime.now()
        stamp = "%Y-%m-%d %H:%M:%S"
        count = len(self.methods)
        lines = [
            "# Unit Test Generation Report",
            "",
            "## Run",
            "",
            "| Item | Value |",
            "|------|-------|",
            f"| **Target file** | `{self.target_file}` |",
            f"| **Started** | {self.started_at.strftime(stamp)} |",
            f"| **Finished** | {now.strftime(stamp)} |",
            f"| **Duration** | "
            f"{_format_duration((now - self.started_at).total_seconds())} |",
            f"| **Methods** | {count} |",
            "",
            "## Tokens",
            "",
            "| Metric | Value |",
            "|--------|-------|",
            f"| **Prompt tokens** | {self.prompt_tokens:,} |",
            f"| **Completion tokens** | {self.completion_tokens:,} |",
            f"| **Total tokens** | {self.total_tokens:,} |",
        ]
        if count:
            lines.append(f"| **Average per method** | {self.total_tokens // count:,} |")

        lines.extend(
            [
                "",
                "## Methods",
                "",
                "| # | Method | Priority | Initial | Final | Iterations | Status "
                "| Prompt | Completion | Time |",
                "|---|--------|----------|---------|-------|------------|--------"
                "|--------|------------|------|",
            ]
        )
        for index, method in enumerate(self.methods, start=1):
            gain = ""
            if method.coverage > method.initial_coverage > 0:
                gain = f" (+{method.coverage - method.initial_coverage:.1f}%)"
            status = f"{_STATUS_ICONS.get(method.status, '')} {method.status.name}".strip()
            if method.skip_reason:
                status += f" ({method.skip_reason})"
            lines.append(
                f"| {index} | `{method.name}` | {method.priority} "
                f"| {method.initial_coverage:.1f}% | {method.coverage:.1f}%{gain} "
                f"| {method.iterations} | {status} "
                f"| {method.prompt_tokens:,} | {method.completion_tokens:,} "
                f"| {_format_duration(method.duration)} |"
            )

        succeeded = self.count(MethodStatus.SUCCESS)
        skipped = self.count(MethodStatus.SKIPPED)
        average = sum(m.coverage for m in self.methods) / count if count else 0.0
        success_rate = (succeeded + skipped) * 100 / count if count else 0.0
        lines.extend(
            [
                "",
                "## Summary",
                "",
                "| Metric | Value |",
                "|--------|-------|",
                f"| **Succeeded** | {succeeded} |",
                f"| **Skipped** | {skipped} (coverage already met) |",
                f"| **Partial** | {self.count(MethodStatus.PARTIAL)} |",
                f"| **Failed** | {self.count(MethodStatus.FAILED)} |",
                f"| **Success rate** | {success_rate:.1f}% |",
                f"| **Average final coverage** | {average:.1f}% |",
                "",
            ]
        )

        if count > 1:
            lines.extend(self._render_token_chart())

        if self.feedback_summary:
            lines.extend(["## Coverage Feedback", "", "```", self.feedback_summary, "```", ""])

        lines.extend(["---", f"*Generated {now.strftime(stamp)}*", ""])
        return "\n".join(lines)

    def _render_token_chart(self) -> list[str]:
        lines = ["## Token Trend", "", "```"]
        peak = max(m.total_tokens for m in self.methods)
        if peak > 0:
            for method in self.methods:
                bar = "█" * max(1, method.total_tokens * _BAR_WIDTH // peak)
                name = _shorten(method.name, _NAME_WIDTH)
                lines.append(f"{name:<{_NAME_WIDTH}} │{bar} {method.total_tokens:,}")
        else:
            lines.append("(no token data recorded)")
        lines.extend(["```", ""])
        trend = self.token_trend()
        if trend:
            lines.extend([trend, ""])
        return lines

    # ── Persistence ──────────────────────────────────────────────

    def report_filename(self) -> str:
        return f"{REPORT_PREFIX}{self.started_at.strftime('%Y%m%d-%H%M%S')}.md"

    def save_report(self, project_root: Path, output_dir: str = "result") -> Path | None:
        """Write the report under ``<root>/<output_dir>``, or the root when that fails."""
        target_dir = project_root / output_dir
        try:
            target_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            logger.warning("Cannot create %s (%s); writing report to project root", target_dir, exc)
            target_dir = project_root

        report_path = target_dir / self.report_filename()
        try:
            report_path.write_text(self.render_markdown(), encoding="utf-8")
        except OSError as exc:
            logger.error("Failed to write report %s: %s", report_path, exc)
            return None
        logger.info("Report written to %s", report_path)
        return report_path
