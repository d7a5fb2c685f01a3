"""utgen command-line interface: top-level command group."""

from __future__ import annotations

import asyncio
import copy
import json
import logging
from dataclasses import asdict
from pathlib import Path
from typing import Any

import click
import yaml

from utgen import __version__
from utgen.analysis.java_source import scan_testable_methods
from utgen.config import UtgenConfig, load_config, validate_config
from utgen.coverage.parser import CoverageParser, JaCoCoCoverageSource
from utgen.llm.engine import LLMError
from utgen.llm.factory import create_engine
from utgen.orchestrator import Orchestrator
from utgen.reporters.terminal import console, reporter
from utgen.tools.factory import build_toolbox
from utgen.utils.environment import run_environment_checks
from utgen.utils.paths import resolve_target

logger = logging.getLogger(__name__)

_LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"

_SENSITIVE_KEYS = frozenset({"api_key", "password", "token"})
_MIN_MASKED_VALUE_LENGTH = 8


def _config_to_dict(config: UtgenConfig) -> dict[str, Any]:
    result = asdict(config)
    result.pop("raw", None)
    return result


def _mask_sensitive_values(config_dict: dict[str, Any]) -> dict[str, Any]:
    """Recursively mask API keys and similar values."""
    result = copy.deepcopy(config_dict)

    def _mask_dict(data: dict[str, Any]) -> None:
        for key, value in data.items():
            if key in _SENSITIVE_KEYS and isinstance(value, str) and value:
                if len(value) > _MIN_MASKED_VALUE_LENGTH:
                    data[key] = f"{value[:4]}...{value[-4:]}"
                else:
                    data[key] = "***"
            elif isinstance(value, dict):
                _mask_dict(value)

    _mask_dict(result)
    return result


def _load_or_abort(path: str | Path) -> UtgenConfig:
    try:
        return load_config(path)
    except (OSError, yaml.YAMLError) as e:
        reporter.print_error(f"Failed to load configuration: {e}")
        raise click.Abort from e


def _apply_overrides(
    config: UtgenConfig,
    *,
    traditional: bool,
    threshold: float | None,
    method_threshold: float | None,
    lsp: bool,
    skip_low_priority: bool,
) -> None:
    workflow = config.workflow
    if traditional:
        workflow.iterative_mode = False
    if threshold is not None:
        workflow.coverage_threshold = threshold
    if method_threshold is not None:
        workflow.method_coverage_threshold = method_threshold
    if lsp:
        workflow.use_lsp = True
    if skip_low_priority:
        workflow.skip_low_priority = True


def _print_errors(errors: list[str]) -> None:
    reporter.print_error(f"Found {len(errors)} configuration error(s):")
    console.print()
    for idx, error in enumerate(errors, start=1):
        console.print(f"  {idx}. [red]{error}[/red]")
    console.print()


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
@click.version_option(version=__version__, prog_name="utgen")
@click.pass_context
def cli(ctx: click.Context, *, verbose: bool) -> None:
    """utgen: coverage-driven unit test generation for Maven projects."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    logging.basicConfig(level=logging.DEBUG if verbose else logging.WARNING, format=_LOG_FORMAT)


@cli.command("run")
@click.argument("target", type=click.Path(exists=True, dir_okay=False, resolve_path=True))
@click.option(
    "--project-root",
    default=None,
    type=click.Path(exists=True, file_okay=False, resolve_path=True),
    help="Maven project root (defaults to the nearest directory with a pom.xml).",
)
@click.option(
    "--traditional",
    is_flag=True,
    help="Cover the whole class in one session instead of method by method.",
)
@click.option(
    "--threshold",
    type=click.FloatRange(0, 100),
    default=None,
    help="Class line coverage target in percent.",
)
@click.option(
    "--method-threshold",
    type=click.FloatRange(0, 100),
    default=None,
    help="Per-method line coverage target in percent.",
)
@click.option("--lsp", is_flag=True, help="Run the diagnostic check after the syntax check.")
@click.option("--skip-low-priority", is_flag=True, help="Skip methods already above target.")
def run(  # noqa: PLR0913
    target: str,
    project_root: str | None,
    *,
    traditional: bool,
    threshold: float | None,
    method_threshold: float | None,
    lsp: bool,
    skip_low_priority: bool,
) -> None:
    """Generate JUnit tests for TARGET, a Java source file.

    Example:
      utgen run src/main/java/com/example/Calculator.java
      utgen run Calculator.java --traditional --threshold 90
    """
    layout = resolve_target(Path(target), Path(project_root) if project_root else None)
    config = _load_or_abort(layout.project_root)
    _apply_overrides(
        config,
        traditional=traditional,
        threshold=threshold,
        method_threshold=method_threshold,
        lsp=lsp,
        skip_low_priority=skip_low_priority,
    )

    errors = validate_config(config)
    if errors:
        _print_errors(errors)
        raise click.Abort

    try:
        engine = create_engine(config.llm)
    except LLMError as e:
        reporter.print_error(str(e))
        raise click.Abort from e

    reporter.print_header(f"utgen {__version__}: {layout.class_name}")
    logger.info("Project root: %s, test file: %s", layout.project_root, layout.test_file)

    toolbox = build_toolbox(config, layout)
    orchestrator = Orchestrator(config, engine, layout, toolbox, reporter=reporter)
    result = asyncio.run(orchestrator.run())
    if not result.success:
        reporter.print_error(result.error_message or "Test generation failed")
        raise click.Abort


@cli.command("coverage")
@click.argument("target", type=click.Path(exists=True, dir_okay=False, resolve_path=True))
@click.option(
    "--project-root",
    default=None,
    type=click.Path(exists=True, file_okay=False, resolve_path=True),
    help="Maven project root (defaults to the nearest directory with a pom.xml).",
)
@click.option("--json-output", "as_json", is_flag=True, help="Output as JSON.")
def coverage(target: str, project_root: str | None, *, as_json: bool) -> None:
    """Show the per-method coverage and priorities for TARGET.

    Reads the existing JaCoCo report; no build is run. Without a report the
    methods are listed from the source with zero coverage.
    """
    layout = resolve_target(Path(target), Path(project_root) if project_root else None)
    config = _load_or_abort(layout.project_root)
    threshold = config.workflow.method_coverage_threshold

    source = JaCoCoCoverageSource(layout.project_root, CoverageParser(threshold))
    methods = asyncio.run(source.method_coverages(layout.class_name))
    if not methods:
        if not as_json:
            reporter.print_warning(f"No coverage report for {layout.class_name}")
        methods = scan_testable_methods(layout.source_file)

    if as_json:
        payload = [
            {
                "name": m.name,
                "signature": m.signature,
                "priority": m.priority.value,
                "line_coverage": m.line_coverage,
                "branch_coverage": m.branch_coverage,
            }
            for m in sorted(methods, key=lambda m: m.overall_coverage)
        ]
        click.echo(json.dumps(payload, indent=2))
        return

    reporter.print_method_coverage(
        sorted(methods, key=lambda m: m.overall_coverage), threshold
    )



@cli.command("check-env")
@click.option(
    "--path",
    default=".",
    type=click.Path(exists=True, file_okay=False, resolve_path=True),
    help="Project root directory.",
)
@click.option("--ping", is_flag=True, help="Also send a one-line request to the model.")
def check_env(path: str, *, ping: bool) -> None:
    """Check Maven, the LLM configuration and write permissions, then exit.

    Example:
      utgen check-env --path my-service --ping
    """
    root = Path(path)
    config = _load_or_abort(root)
    reporter.print_header(f"utgen {__version__}: environment check")
    reporter.print_info(
        f"LLM {config.llm.provider}/{config.llm.model or '(unset)'}, "
        f"temperature {config.llm.temperature}, "
        f"max method retries {config.workflow.max_method_retries}"
    )

    checks = asyncio.run(run_environment_checks(config, root, ping=ping))
    reporter.print_environment_checks(checks)
    if not all(check.ok for check in checks):
        reporter.print_error("Fix the issues above before running utgen.")
        raise click.Abort
    reporter.print_success("Environment is ready!")


@cli.group("config")
def config_group() -> None:
    """Inspect `.utgen.yml` configuration."""


@config_group.command("show")
@click.option(
    "--path",
    default=".",
    type=click.Path(exists=True, file_okay=False, resolve_path=True),
    help="Project root directory.",
)
@click.option("--json-output", "as_json", is_flag=True, help="Output as JSON instead of YAML.")
@click.option("--no-mask", is_flag=True, help="Show sensitive values unmasked.")
def config_show(path: str, *, as_json: bool, no_mask: bool) -> None:
    """Display the resolved configuration with API keys masked."""
    config_dict = _config_to_dict(_load_or_abort(path))
    if not no_mask:
        config_dict = _mask_sensitive_values(config_dict)

    if as_json:
        click.echo(json.dumps(config_dict, indent=2))
    else:
        console.print()
        console.print("[bold cyan]Configuration:[/bold cyan]")
        console.print()
        click.echo(yaml.safe_dump(config_dict, sort_keys=False, default_flow_style=False))


@config_group.command("validate")
@click.option(
    "--path",
    default=".",
    type=click.Path(exists=True, file_okay=False, resolve_path=True),
    help="Project root directory.",
)
def config_validate(path: str) -> None:
    """Check `.utgen.yml` for missing or invalid values."""
    errors = validate_config(_load_or_abort(path))
    if not errors:
        reporter.print_success("Configuration is valid!")
        return

    _print_errors(errors)
    console.print(
        "[dim]Fix these errors in .utgen.yml and run 'utgen config validate' again.[/dim]"
    )
    raise click.Abort
