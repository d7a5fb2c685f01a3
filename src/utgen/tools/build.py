"""Maven build actions, gated by the compile guard."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from utgen.tools.registry import Capability, ToolParameter
from utgen.utils.subprocess_runner import DEFAULT_TIMEOUT, SubprocessError, run_subprocess

if TYPE_CHECKING:
    from pathlib import Path

    from utgen.tools.compile_guard import CompileGuard
    from utgen.tools.registry import ToolRegistry
    from utgen.utils.subprocess_runner import SubprocessResult

logger = logging.getLogger(__name__)

# Writes target/site/jacoco/jacoco.xml when the agent ran; skips quietly otherwise
JACOCO_REPORT_GOAL = "org.jacoco:jacoco-maven-plugin:report"


class MavenExecutor:
    """``compile_project``, ``execute_test`` and ``clean_and_test``.

    Each action asks the compile guard first; a refusal is returned as the
    tool result so the model sees the required action.
    """

    def __init__(
        self,
        project_root: Path,
        guard: CompileGuard,
        *,
        maven_command: str = "mvn",
        timeout: float = DEFAULT_TIMEOUT,
        coverage_goal: str = JACOCO_REPORT_GOAL,
    ) -> None:
        self.project_root = project_root
        self.guard = guard
        self.maven_command = maven_command
        self.timeout = timeout
        self.coverage_goal = coverage_goal

    def _blocked(self, action: str) -> str | None:
        check = self.guard.can_compile()
        if check.allowed:
            return None
        logger.warning("%s blocked by compile guard", action)
        return check.block_reason

    async def _run(self, *args: str) -> SubprocessResult | str:
        command = [self.maven_command, *args, "-B"]
        try:
            result = await run_subprocess(command, cwd=self.project_root, timeout=self.timeout)
        except SubprocessError as exc:
            return f"ERROR: {exc}"
        if result.timed_out:
            return f"ERROR: Maven execution timed out after {self.timeout:.0f}s"
        logger.info("Maven %s finished with exit code %d", " ".join(args), result.returncode)
        return result

    async def run_goals(self, *goals: str) -> SubprocessResult | str:
        """Run Maven goals without consulting the guard (pre-check builds)."""
        return await self._run(*goals)

    def goals_with_coverage(self, *goals: str) -> list[str]:
        return [*goals, self.coverage_goal] if self.coverage_goal else list(goals)

    async def compile_project(self) -> str:
        blocked = self._blocked("compile_project")
        if blocked:
            return blocked
        outcome = await self._run("test-compile")
        return outcome if isinstance(outcome, str) else outcome.format_for_tool()

    async def execute_test(self, test_class_name: str) -> str:
        blocked = self._blocked("execute_test")
        if blocked:
            return blocked
        outcome = await self._run(*self.goals_with_coverage("test", f"-Dtest={test_class_name}"))
        return outcome if isinstance(outcome, str) else outcome.format_for_tool()

    async def clean_and_test(self) -> str:
        blocked = self._blocked("clean_and_test")
        if blocked:
            return blocked
        outcome = await self._run(*self.goals_with_coverage("clean", "test"))
        return outcome if isinstance(outcome, str) else outcome.format_for_tool()

    def register(self, registry: ToolRegistry) -> None:
        registry.register(
            "compile_project",
            "Compile main and test sources (mvn test-compile). Requires passing syntax checks.",
            Capability.BUILD,
            self.compile_project,
        )
        registry.register(
            "execute_test",
            "Run one test class with Maven and refresh the coverage report.",
            Capability.BUILD,
            self.execute_test,
            [ToolParameter("test_class_name", "Fully qualified test class name")],
        )
        registry.register(
            "clean_and_test",
            "Run the full test suite from a clean build and refresh the coverage report.",
            Capability.BUILD,
            self.clean_and_test,
        )
