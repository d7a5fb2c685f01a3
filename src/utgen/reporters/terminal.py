"""Terminal reporter with rich output formatting."""

from __future__ import annotations

from typing import TYPE_CHECKING

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from utgen.agents.method_queue import MethodStatus

if TYPE_CHECKING:
    from rich.status import Status

    from utgen.agents.stats import IterationStats
    from utgen.models.coverage import MethodCoverageInfo
    from utgen.models.verification import VerificationResult
    from utgen.utils.environment import EnvironmentCheck

console = Console()

_HIGH_COVERAGE = 80.0
_MEDIUM_COVERAGE = 50.0
_SECONDS_PER_MINUTE = 60.0
_MAX_METHOD_NAME_LENGTH = 40

_STATUS_STYLES = {
    MethodStatus.SUCCESS: ("✓", "green"),
    MethodStatus.SKIPPED: ("⊘", "yellow"),
    MethodStatus.PARTIAL: ("◐", "yellow"),
    MethodStatus.FAILED: ("✗", "red"),
    MethodStatus.PENDING: ("·", "dim"),
    MethodStatus.IN_PROGRESS: ("…", "cyan"),
}


def _format_duration(seconds: float) -> str:
    """Format a duration in seconds to a human-readable string."""
    if seconds >= _SECONDS_PER_MINUTE:
        return f"{seconds / _SECONDS_PER_MINUTE:.1f}m"
    return f"{seconds:.1f}s"


def _coverage_color(percentage: float) -> str:
    if percentage >= _HIGH_COVERAGE:
        return "green"
    if percentage >= _MEDIUM_COVERAGE:
        return "yellow"
    return "red"


class CLIReporter:
    """Rich terminal output for a generation run."""

    def __init__(self) -> None:
        self.console = console

    def print_header(self, title: str) -> None:
        self.console.print(f"\n[bold cyan]{title}[/bold cyan]\n")

    def print_success(self, message: str) -> None:
        self.console.print(f"[green]✓[/green] {message}")

    def print_error(self, message: str) -> None:
        self.console.print(f"[red]✗[/red] {message}")

    def print_warning(self, message: str) -> None:
        self.console.print(f"[yellow]⚠[/yellow] {message}")

    def print_info(self, message: str) -> None:
        self.console.print(f"[dim]{message}[/dim]")

    # ── Run progress ───────────────────────────────────────────────

    def print_pipeline_header(self, name: str) -> None:
        """Print a styled banner for a workflow stage."""
        self.console.print()
        self.console.print(
            Panel(f"[bold white]{name}[/bold white]", border_style="cyan", padding=(0, 2))
        )

    def print_step_header(self, step: int, total: int, description: str) -> None:
        self.console.print(f"\n[bold cyan]▸ Method {step}/{total}[/bold cyan]  {description}")

    def print_step_done(self, description: str, duration_s: float) -> None:
        time_str = _format_duration(duration_s)
        self.console.print(f"  [green]✓[/green] {description} [dim]({time_str})[/dim]")

    def print_step_skip(self, description: str) -> None:
        self.console.print(f"  [yellow]⊘[/yellow] {description} [dim](skipped)[/dim]")

    def print_verification(self, result: VerificationResult) -> None:
        """One line per pipeline run."""
        if result.success:
            color = "green" if result.coverage_threshold_met else "yellow"
            self.console.print(f"  [{color}]●[/{color}] {result.summary()}")
        else:
            self.console.print(f"  [red]●[/red] {result.summary()}")

    def create_status(self, message: str) -> Status:
        """Create a Rich Status spinner for long-running operations."""
        return self.console.status(message)

    # ── Tables ─────────────────────────────────────────────────────

    def print_method_coverage(self, methods: list[MethodCoverageInfo], threshold: float) -> None:
        """Print the method work list with coverage and priority."""
        table = Table(title="Method Coverage", title_style="bold cyan")
        table.add_column("Method", style="bold")
        table.add_column("Priority", justify="center")
        table.add_column("Line", justify="right")
        table.add_column("Branch", justify="right")
        table.add_column("Action")

        for method in methods:
            line_color = _coverage_color(method.line_coverage)
            branch_color = _coverage_color(method.branch_coverage)
            action = "skip" if method.line_coverage >= threshold else "generate"
            table.add_row(
                method.signature[:_MAX_METHOD_NAME_LENGTH],
                method.priority.value,
                f"[{line_color}]{method.line_coverage:.1f}%[/{line_color}]",
                f"[{branch_color}]{method.branch_coverage:.1f}%[/{branch_color}]",
                action,
            )
        self.console.print(table)

    def print_run_summary(self, stats: IterationStats) -> None:
        """Per-method outcome table plus token totals."""
        table = Table(title="Generation Summary", title_style="bold cyan")
        table.add_column("Method", style="bold")
        table.add_column("Status", justify="center")
        table.add_column("Initial", justify="right")
        table.add_column("Final", justify="right")
        table.add_column("Tokens", justify="right")
        table.add_column("Time", justify="right")

        for method in stats.methods:
            icon, color = _STATUS_STYLES[method.status]
            final_color = _coverage_color(method.coverage)
            table.add_row(
                method.name[:_MAX_METHOD_NAME_LENGTH],
                f"[{color}]{icon} {method.status.value}[/{color}]",
                f"{method.initial_coverage:.1f}%",
                f"[{final_color}]{method.coverage:.1f}%[/{final_color}]",
                f"{method.total_tokens:,}",
                _format_duration(method.duration),
            )
        self.console.print(table)

        parts = [
            f"[green]✓ {stats.count(MethodStatus.SUCCESS)} succeeded[/green]",
            f"[yellow]⊘ {stats.count(MethodStatus.SKIPPED)} skipped[/yellow]",
            f"[yellow]◐ {stats.count(MethodStatus.PARTIAL)} partial[/yellow]",
            f"[red]✗ {stats.count(MethodStatus.FAILED)} failed[/red]",
        ]
        self.console.print(f"  {'  '.join(parts)}")
        self.console.print(
            f"  [dim]Tokens: {stats.total_tokens:,} "
            f"(prompt {stats.prompt_tokens:,}, completion {stats.completion_tokens:,})[/dim]"
        )
        trend = stats.token_trend()
        if trend:
            self.console.print(f"  [dim]{trend}[/dim]")

    def print_environment_checks(self, checks: list[EnvironmentCheck]) -> None:
        """One row per prerequisite, with a fix suggestion for failures."""
        table = Table(title="Environment", title_style="bold cyan")
        table.add_column("Check", style="bold")
        table.add_column("Status", justify="center")
        table.add_column("Details")

        for check in checks:
            status = "[green]✓ OK[/green]" if check.ok else "[red]✗ FAILED[/red]"
            details = escape(check.detail)
            if check.suggestion and not check.ok:
                details += f"\n[dim]{check.suggestion}[/dim]"
            table.add_row(check.name, status, details)
        self.console.print(table)


reporter = CLIReporter()
