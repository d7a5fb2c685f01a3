"""Tests for run statistics and the Markdown report (agents/stats.py)."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from utgen.agents.method_queue import MethodStatus
from utgen.agents.stats import REPORT_PREFIX, IterationStats, MethodStats

if TYPE_CHECKING:
    from pathlib import Path

_STARTED = datetime(2026, 3, 1, 10, 0, 0)
_NOW = datetime(2026, 3, 1, 10, 2, 5)


def _stats() -> IterationStats:
    stats = IterationStats(target_file="src/main/java/com/example/Calculator.java")
    stats.started_at = _STARTED

    add = stats.start_method("add", "P2", initial_coverage=100.0)
    add.mark_skipped("coverage already met")

    divide = stats.start_method("divide", "P1", initial_coverage=33.3)
    stats.record_tokens(1200, 300, divide)
    divide.iterations = 2
    divide.complete(MethodStatus.SUCCESS, 100.0)

    positive = stats.start_method("isPositive", "P0")
    stats.record_tokens(800, 100, positive)
    positive.complete(MethodStatus.FAILED, 0.0)
    return stats


class TestMethodStats:
    def test_tokens_and_duration(self) -> None:
        method = MethodStats("divide", "P1", started=10.0, finished=12.5)
        method.add_tokens(100, 20)
        method.add_tokens(50, 5)
        assert method.total_tokens == 175
        assert method.duration == 2.5

    def test_skipped_keeps_initial_coverage(self) -> None:
        method = MethodStats("add", "P2", initial_coverage=95.0)
        method.mark_skipped("coverage already met")
        assert method.status is MethodStatus.SKIPPED
        assert method.coverage == 95.0
        assert method.is_success


class TestIterationStats:
    def test_totals_and_counts(self) -> None:
        stats = _stats()
        assert stats.prompt_tokens == 2000
        assert stats.completion_tokens == 400
        assert stats.count(MethodStatus.SUCCESS) == 1
        assert stats.count(MethodStatus.SKIPPED) == 1
        assert stats.count(MethodStatus.FAILED) == 1

    def test_run_totals_without_method(self) -> None:
        stats = IterationStats(target_file="A.java")
        stats.record_tokens(10, 5)
        assert stats.total_tokens == 15
        assert stats.methods == []

    def test_remove_method(self) -> None:
        stats = IterationStats(target_file="A.java")
        entry = stats.start_method("f", "P0")
        stats.remove_method(entry)
        assert stats.methods == []

    def test_token_trend(self) -> None:
        stats = IterationStats(target_file="A.java")
        for tokens in (1000, 1000, 1000, 500, 500, 500):
            stats.start_method("m", "P0").add_tokens(tokens, 0)
        assert stats.token_trend() == "Prompt tokens per method fell by 50%"

    def test_token_trend_needs_enough_methods(self) -> None:
        assert _stats().token_trend() == ""


class TestMarkdown:
    def test_sections(self) -> None:
        text = _stats().render_markdown(now=_NOW)

        assert text.startswith("# Unit Test Generation Report")
        assert "| **Duration** | 2m 5s |" in text
        assert "| **Methods** | 3 |" in text
        assert "| **Total tokens** | 2,400 |" in text
        assert "| **Average per method** | 800 |" in text
        assert "## Token Trend" in text
        assert text.endswith("*Generated 2026-03-01 10:02:05*\n")

    def test_method_rows(self) -> None:
        text = _stats().render_markdown(now=_NOW)

        assert "| 1 | `add` | P2 | 100.0% | 100.0% | 0 | ⏭️ SKIPPED (coverage already met)" in text
        assert "| 2 | `divide` | P1 | 33.3% | 100.0% (+66.7%) | 2 | ✅ SUCCESS" in text
        assert "| 3 | `isPositive` | P0 | 0.0% | 0.0% | 0 | ❌ FAILED" in text

    def test_summary(self) -> None:
        text = _stats().render_markdown(now=_NOW)

        assert "| **Succeeded** | 1 |" in text
        assert "| **Success rate** | 66.7% |" in text
        assert "| **Average final coverage** | 66.7% |" in text

    def test_feedback_section(self) -> None:
        stats = _stats()
        stats.feedback_summary = "Coverage feedback history:\n  Cycle 1"
        text = stats.render_markdown(now=_NOW)
        assert "## Coverage Feedback\n\n```\nCoverage feedback history:" in text

    def test_empty_run(self) -> None:
        text = IterationStats(target_file="A.java").render_markdown(now=_NOW)
        assert "| **Methods** | 0 |" in text
        assert "Average per method" not in text
        assert "## Token Trend" not in text


class TestSaveReport:
    def test_writes_under_output_dir(self, tmp_path: Path) -> None:
        stats = _stats()
        path = stats.save_report(tmp_path, "reports")

        assert path == tmp_path / "reports" / "test-generation-report-20260301-100000.md"
        assert path.read_text(encoding="utf-8").startswith("# Unit Test Generation Report")

    def test_falls_back_to_project_root(self, tmp_path: Path) -> None:
        (tmp_path / "result").write_text("not a directory", encoding="utf-8")

        path = _stats().save_report(tmp_path)

        assert path is not None
        assert path.parent == tmp_path
        assert path.name.startswith(REPORT_PREFIX)

    def test_write_error_returns_none(self, tmp_path: Path) -> None:
        stats = _stats()
        (tmp_path / "result" / stats.report_filename()).mkdir(parents=True)
        assert stats.save_report(tmp_path) is None
