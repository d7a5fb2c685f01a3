"""Fixed verification sequence run after every model edit.

syntax check -> diagnostic check (optional) -> compile -> test -> coverage.
Each step invokes one tool through the registry and interprets its text
result; the first failing step short-circuits the run.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import TYPE_CHECKING, Any

from utgen.coverage.parser import CoverageParser, is_tool_error
from utgen.models.coverage import DEFAULT_THRESHOLD
from utgen.models.verification import VerificationResult, VerificationStep
from utgen.tools.registry import truncate

if TYPE_CHECKING:
    from utgen.tools.compile_guard import CompileGuard
    from utgen.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

_SYNTAX_FAIL = ("SYNTAX_ERROR", "LSP_ERRORS", "INVALID")
_SYNTAX_PASS = ("VALID", "LSP_OK", "No errors", "SYNTAX_OK")

_COMPILE_FAIL = ("BUILD FAILURE", "COMPILATION ERROR")

_TEST_FAIL = ("BUILD FAILURE", "FAILURE!")

_EXIT_CODE_RE = re.compile(r'"?exitCode"?\s*[=:]\s*(-?\d+)')
_TEST_COUNT_RE = re.compile(r"(Failures|Errors):\s*(\d+)")


def _nonzero_exit(result: str) -> bool:
    match = _EXIT_CODE_RE.search(result)
    return bool(match) and int(match.group(1)) != 0


def _failed_counts(result: str) -> dict[str, int]:
    counts: dict[str, int] = {}
    for kind, value in _TEST_COUNT_RE.findall(result):
        counts[kind] = counts.get(kind, 0) + int(value)
    return {kind: n for kind, n in counts.items() if n > 0}


class VerificationPipeline:
    """Runs the verification steps through tool dispatch."""

    def __init__(
        self,
        registry: ToolRegistry,
        *,
        parser: CoverageParser | None = None,
        threshold: float = DEFAULT_THRESHOLD,
        use_lsp: bool = False,
        guard: CompileGuard | None = None,
    ) -> None:
        self.registry = registry
        self.guard = guard
        self.parser = parser or CoverageParser(threshold)
        self.threshold = threshold
        self.use_lsp = use_lsp

    async def execute(
        self,
        test_file_path: str,
        test_class_name: str,
        target_class_name: str,
        method_name: str,
        module_path: str = ".",
    ) -> VerificationResult:
        logger.info("Verifying tests for %s.%s", target_class_name, method_name)

        result = await self.check_syntax_only(test_file_path)
        if not result.success:
            return self._log_failure(result)

        result = await self.compile_only()
        if not result.success:
            return self._log_failure(result)

        result = await self.test_only(test_class_name)
        if not result.success:
            return self._log_failure(result)

        result = await self._run_coverage(module_path, target_class_name, method_name)
        if not result.success:
            return self._log_failure(result)

        logger.info(
            "Verification passed for %s: coverage %.1f%% (threshold %.0f%%, met=%s)",
            method_name,
            result.coverage,
            self.threshold,
            result.coverage_threshold_met,
        )
        return result

    # ── Individual steps ─────────────────────────────────────────

    async def check_syntax_only(self, test_file_path: str) -> VerificationResult:
        """Syntax check plus, when enabled, the diagnostic check.

        Files the compile guard still holds as unchecked, such as helpers
        written next to the test, are syntax-checked after the test file.
        """
        result = await self._check_syntax(test_file_path)
        if result.success and self.use_lsp:
            result = await self._run_step(
                VerificationStep.LSP_CHECK, {"file_path": test_file_path}, _interpret_lsp
            )
        if result.success:
            result = await self._check_pending_files()
        return result

    async def _check_syntax(self, file_path: str) -> VerificationResult:
        return await self._run_step(
            VerificationStep.SYNTAX_CHECK, {"file_path": file_path}, _interpret_syntax
        )

    async def _check_pending_files(self) -> VerificationResult:
        if self.guard is None:
            return VerificationResult.passed()
        for path in self.guard.pending_files():
            if not Path(path).is_file():
                logger.info("Dropping deleted file from the compile guard: %s", path)
                self.guard.clear_status(path)
                continue
            result = await self._check_syntax(path)
            if not result.success:
                return result
        return VerificationResult.passed()

    async def compile_only(self) -> VerificationResult:
        return await self._run_step(VerificationStep.COMPILE, {}, _interpret_compile)

    async def test_only(self, test_class_name: str) -> VerificationResult:
        return await self._run_step(
            VerificationStep.TEST, {"test_class_name": test_class_name}, _interpret_test
        )

    async def _run_coverage(
        self, module_path: str, class_name: str, method_name: str
    ) -> VerificationResult:
        step = VerificationStep.COVERAGE
        args = {"module_path": module_path, "class_name": class_name, "method_name": method_name}
        try:
            output = await self.registry.invoke(step.tool_name, args)
        except Exception as exc:
            logger.exception("Coverage step raised")
            return VerificationResult.failure(step, str(exc))
        logger.debug("%s output: %s", step.tool_name, truncate(output))

        if is_tool_error(output):
            return VerificationResult.failure(step, "Coverage unavailable", output or "")
        coverage = self.parser.extract_line_coverage(output, method_name)
        if coverage is None:
            return VerificationResult.failure(step, "No coverage value in tool output", output)
        return VerificationResult.passed(coverage, threshold_met=coverage >= self.threshold)

    async def _run_step(
        self,
        step: VerificationStep,
        args: dict[str, Any],
        interpret: Any,
    ) -> VerificationResult:
        try:
            output = await self.registry.invoke(step.tool_name, args)
        except Exception as exc:
            logger.exception("%s raised", step.label)
            return VerificationResult.failure(step, str(exc))
        logger.debug("%s output: %s", step.tool_name, truncate(output))

        if output is None:
            return VerificationResult.failure(step, "Tool returned no result")
        if is_tool_error(output):
            return VerificationResult.failure(step, "Tool invocation error", output)
        return interpret(step, output)

    def _log_failure(self, result: VerificationResult) -> VerificationResult:
        logger.warning("Verification failed: %s", result.summary())
        return result


# ── Result interpretation ────────────────────────────────────────


def _interpret_syntax(step: VerificationStep, output: str) -> VerificationResult:
    if any(marker in output for marker in _SYNTAX_FAIL):
        return VerificationResult.failure(step, "Syntax errors", output)
    if any(marker in output for marker in _SYNTAX_PASS):
        return VerificationResult.passed()
    if "ERROR" in output:
        return VerificationResult.failure(step, "Syntax errors", output)
    return VerificationResult.passed()


def _interpret_lsp(step: VerificationStep, output: str) -> VerificationResult:
    if "LSP_ERRORS" in output:
        return VerificationResult.failure(step, "Diagnostics reported errors", output)
    if "LSP_OK" in output or "No errors" in output:
        return VerificationResult.passed()
    if "LSP_WARNINGS" in output:
        logger.warning("Diagnostic check passed with warnings: %s", truncate(output))
        return VerificationResult.passed()
    if "ERROR" in output:
        return VerificationResult.failure(step, "Diagnostics reported errors", output)
    return VerificationResult.passed()


def _interpret_compile(step: VerificationStep, output: str) -> VerificationResult:
    if "COMPILE_BLOCKED" in output:
        return VerificationResult.failure(
            step, "Compilation blocked: syntax check has not passed", output
        )
    if _nonzero_exit(output) or any(marker in output for marker in _COMPILE_FAIL):
        return VerificationResult.failure(step, "Compilation failed", output)
    return VerificationResult.passed()


def _interpret_test(step: VerificationStep, output: str) -> VerificationResult:
    if "COMPILE_BLOCKED" in output:
        return VerificationResult.failure(
            step, "Test run blocked: syntax check has not passed", output
        )
    failed = _failed_counts(output)
    if failed:
        detail = ", ".join(f"{kind.lower()}: {n}" for kind, n in sorted(failed.items()))
        return VerificationResult.failure(step, f"Tests failed ({detail})", output)
    if _nonzero_exit(output) or any(marker in output for marker in _TEST_FAIL):
        return VerificationResult.failure(step, "Tests failed", output)
    return VerificationResult.passed()
