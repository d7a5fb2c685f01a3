"""Environment checks behind ``utgen check-env``.

Each check reports whether one prerequisite of a run is in place:

- the Maven executable answers ``-version``,
- the ``llm`` configuration section validates (and, on request, the model
  answers a one-line prompt),
- the project root and its test source directory are writable.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from utgen.config import validate_config
from utgen.llm.engine import LLMError
from utgen.llm.factory import create_engine
from utgen.utils.subprocess_runner import SubprocessError, run_subprocess

if TYPE_CHECKING:
    from utgen.config import UtgenConfig

logger = logging.getLogger(__name__)

MAVEN_CHECK_TIMEOUT = 30.0

TEST_SOURCE_DIR = Path("src", "test", "java")

_CHECK_FILE_NAME = ".utgen-write-check"
_PING_PROMPT = "Reply with the single word OK."

_MAVEN_HINT = "Install Maven and put 'mvn' on PATH, or set project.maven_command."
_LLM_HINT = "Fix the llm section of .utgen.yml or set the UTGEN_LLM_* variables."
_WRITE_HINT = "utgen writes tests under src/test/java; grant write access to the project."


@dataclass
class EnvironmentCheck:
    """Outcome of one prerequisite check."""

    name: str
    ok: bool
    detail: str
    suggestion: str = ""


async def check_maven(maven_command: str, project_root: Path) -> EnvironmentCheck:
    """Run ``<maven_command> -version`` in *project_root*."""
    try:
        result = await run_subprocess(
            [maven_command, "-version"], cwd=project_root, timeout=MAVEN_CHECK_TIMEOUT
        )
    except SubprocessError as e:
        return EnvironmentCheck("Maven", ok=False, detail=str(e), suggestion=_MAVEN_HINT)

    if result.timed_out:
        detail = f"{maven_command} -version timed out after {MAVEN_CHECK_TIMEOUT:.0f}s"
        return EnvironmentCheck("Maven", ok=False, detail=detail, suggestion=_MAVEN_HINT)
    if not result.success:
        detail = f"{maven_command} -version exited with {result.returncode}"
        return EnvironmentCheck("Maven", ok=False, detail=detail, suggestion=_MAVEN_HINT)

    lines = result.stdout.strip().splitlines()
    return EnvironmentCheck("Maven", ok=True, detail=lines[0] if lines else "found")


async def check_llm(config: UtgenConfig, *, ping: bool = False) -> EnvironmentCheck:
    """Validate the ``llm`` section; with *ping*, also send one short request."""
    errors = [e for e in validate_config(config) if e.startswith("llm.")]
    if errors:
        return EnvironmentCheck("LLM", ok=False, detail="; ".join(errors), suggestion=_LLM_HINT)

    label = f"{config.llm.provider}/{config.llm.model}"
    if not ping:
        return EnvironmentCheck("LLM", ok=True, detail=f"{label} configured")

    try:
        engine = create_engine(config.llm)
        reply = await engine.generate_text(_PING_PROMPT)
    except LLMError as e:
        logger.warning("LLM ping failed: %s", e)
        return EnvironmentCheck("LLM", ok=False, detail=f"{label}: {e}", suggestion=_LLM_HINT)
    if not reply.strip():
        return EnvironmentCheck(
            "LLM", ok=False, detail=f"{label} returned an empty reply", suggestion=_LLM_HINT
        )
    return EnvironmentCheck("LLM", ok=True, detail=f"{label} reachable")


def _try_write(directory: Path) -> None:
    """Write and delete a marker file in *directory*.

    Missing directories are created for the attempt and removed afterwards.
    """
    created = [p for p in (directory, *directory.parents) if not p.exists()]
    directory.mkdir(parents=True, exist_ok=True)
    try:
        marker = directory / _CHECK_FILE_NAME
        marker.write_text("", encoding="utf-8")
        marker.unlink()
    finally:
        for path in created:
            path.rmdir()


def check_write_access(project_root: Path) -> EnvironmentCheck:
    """Check that files can be written to the root and the test source tree."""
    for directory in (project_root, project_root / TEST_SOURCE_DIR):
        try:
            _try_write(directory)
        except OSError as e:
            return EnvironmentCheck(
                "Permissions",
                ok=False,
                detail=f"Cannot write to {directory}: {e}",
                suggestion=_WRITE_HINT,
            )
    return EnvironmentCheck("Permissions", ok=True, detail=f"{TEST_SOURCE_DIR} is writable")


async def run_environment_checks(
    config: UtgenConfig, project_root: Path, *, ping: bool = False
) -> list[EnvironmentCheck]:
    """Run every check in a fixed order: Maven, LLM, permissions."""
    checks = [
        await check_maven(config.project.maven_command, project_root),
        await check_llm(config, ping=ping),
        check_write_access(project_root),
    ]
    for check in checks:
        logger.info("Environment check %s: ok=%s (%s)", check.name, check.ok, check.detail)
    return checks
