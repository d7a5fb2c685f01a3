"""Tests for the terminal (Rich) reporter."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from rich.panel import Panel
from rich.table import Table

from utgen.agents.method_queue import MethodStatus
from utgen.agents.stats import IterationStats
from utgen.models.coverage import MethodCoverageInfo
from utgen.models.verification import VerificationResult, VerificationStep
from utgen.reporters.terminal import CLIReporter, _coverage_color, _format_duration, reporter
from utgen.utils.environment import EnvironmentCheck

# ── Fixtures ────────────────────────────────────────────────────


@pytest.fixture
def mock_console() -> MagicMock:
    """Return a MagicMock that replaces the console."""
    return MagicMock()


@pytest.fixture
def cli_reporter(mock_console: MagicMock) -> CLIReporter:
    r = CLIReporter()
    r.console = mock_console
    return r


def _printed(mock_console: MagicMock) -> list[str]:
    return [str(c.args[0]) if c.args else "" for c in mock_console.print.call_args_list]


# ── Helpers ─────────────────────────────────────────────────────


@pytest.mark.parametrize(
    ("seconds", "expected"), [(0.0, "0.0s"), (12.34, "12.3s"), (60.0, "1.0m"), (150.0, "2.5m")]
)
def test_format_duration(seconds: float, expected: str) -> None:
    assert _format_duration(seconds) == expected


@pytest.mark.parametrize(
    ("percentage", "expected"), [(100.0, "green"), (80.0, "green"), (50.0, "yellow"), (49.9, "red")]
)
def test_coverage_color(percentage: float, expected: str) -> None:
    assert _coverage_color(percentage) == expected


def test_module_reporter_is_a_cli_reporter() -> None:
    assert isinstance(reporter, CLIReporter)


# ── Messages ────────────────────────────────────────────────────


class TestMessages:
    def test_status_lines(self, cli_reporter: CLIReporter, mock_console: MagicMock) -> None:
        cli_reporter.print_success("done")
        cli_reporter.print_error("broken")
        cli_reporter.print_warning("careful")
        cli_reporter.print_info("fyi")

        assert _printed(mock_console) == [
            "[green]✓[/green] done",
            "[red]✗[/red] broken",
            "[yellow]⚠[/yellow] careful",
            "[dim]fyi[/dim]",
        ]

    def test_pipeline_header_is_a_panel(
        self, cli_reporter: CLIReporter, mock_console: MagicMock
    ) -> None:
        cli_reporter.print_pipeline_header("ITERATIVE")
        assert isinstance(mock_console.print.call_args.args[0], Panel)

    def test_step_lines(self, cli_reporter: CLIReporter, mock_console: MagicMock) -> None:
        cli_reporter.print_step_header(2, 5, "divide(int, int)")
        cli_reporter.print_step_done("divide", 75.0)
        cli_reporter.print_step_skip("add")

        lines = _printed(mock_console)
        assert "Method 2/5" in lines[0]
        assert "divide(int, int)" in lines[0]
        assert lines[1].endswith("divide [dim](1.2m)[/dim]")
        assert lines[2].endswith("add [dim](skipped)[/dim]")

    @pytest.mark.parametrize(
        ("result", "color"),
        [
            (VerificationResult.passed(85.0, threshold_met=True), "green"),
            (VerificationResult.passed(40.0, threshold_met=False), "yellow"),
            (VerificationResult.failure(VerificationStep.COMPILE, "cannot find symbol"), "red"),
        ],
    )
    def test_verification_colors(
        self,
        cli_reporter: CLIReporter,
        mock_console: MagicMock,
        result: VerificationResult,
        color: str,
    ) -> None:
        cli_reporter.print_verification(result)

        (line,) = _printed(mock_console)
        assert line.startswith(f"  [{color}]●[/{color}]")
        assert line.endswith(result.summary())


# ── Tables ──────────────────────────────────────────────────────


class TestTables:
    def test_method_coverage(self, cli_reporter: CLIReporter, mock_console: MagicMock) -> None:
        methods = [
            MethodCoverageInfo.from_percentages(
                "isPositive", 0.0, 0.0, signature="isPositive(int)"
            ),
            MethodCoverageInfo.from_percentages("add", 100.0, 100.0, signature="add(int, int)"),
        ]

        cli_reporter.print_method_coverage(methods, threshold=80.0)

        table = mock_console.print.call_args.args[0]
        assert isinstance(table, Table)
        assert table.row_count == 2
        assert list(table.columns[1]._cells) == ["P0", "P2"]
        assert list(table.columns[4]._cells) == ["generate", "skip"]

    def test_run_summary(self, cli_reporter: CLIReporter, mock_console: MagicMock) -> None:
        stats = IterationStats(target_file="Calculator.java")
        divide = stats.start_method("divide", "P1", initial_coverage=33.3)
        stats.record_tokens(1200, 300, divide)
        divide.complete(MethodStatus.SUCCESS, 100.0)
        stats.start_method("add", "P2", initial_coverage=100.0).mark_skipped("met")

        cli_reporter.print_run_summary(stats)

        table = mock_console.print.call_args_list[0].args[0]
        assert isinstance(table, Table)
        assert table.row_count == 2
        assert list(table.columns[4]._cells) == ["1,500", "0"]
        lines = _printed(mock_console)
        assert "✓ 1 succeeded" in lines[1]
        assert "⊘ 1 skipped" in lines[1]
        assert "Tokens: 1,500 (prompt 1,200, completion 300)" in lines[2]

    def test_environment_checks(self, cli_reporter: CLIReporter, mock_console: MagicMock) -> None:
        checks = [
            EnvironmentCheck("Maven", ok=True, detail="Apache Maven 3.9.6"),
            EnvironmentCheck(
                "LLM", ok=False, detail="llm.model is required", suggestion="Set llm.model"
            ),
        ]

        cli_reporter.print_environment_checks(checks)

        table = mock_console.print.call_args.args[0]
        assert isinstance(table, Table)
        assert list(table.columns[0]._cells) == ["Maven", "LLM"]
        assert list(table.columns[1]._cells) == ["[green]✓ OK[/green]", "[red]✗ FAILED[/red]"]
        assert list(table.columns[2]._cells) == [
            "Apache Maven 3.9.6",
            "llm.model is required\n[dim]Set llm.model[/dim]",
        ]
