"""Tests for the verification pipeline (pipeline/verification.py)."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import pytest

from tests.conftest import TEST_REL, write_file
from utgen.models.verification import VerificationResult, VerificationStep
from utgen.pipeline.verification import VerificationPipeline
from utgen.tools.compile_guard import CompileGuard, normalize_path
from utgen.tools.registry import Capability, ToolParameter, ToolRegistry
from utgen.tools.syntax import SyntaxTools

if TYPE_CHECKING:
    from pathlib import Path

_VALID_TEST = """\
package com.example;

class CalculatorTest {
    void addsNumbers() {
        new Calculator().add(1, 2);
    }
}
"""

_FIXTURES_REL = "src/test/java/com/example/Fixtures.java"
_BROKEN_FIXTURES = "class Fixtures {\n    void broken( {\n"

_OK_OUTPUTS = {
    "check_syntax": "SYNTAX_OK: No errors found in CalcTest.java",
    "check_syntax_with_lsp": "LSP_OK: No errors found in CalcTest.java",
    "compile_project": "exitCode=0\n[INFO] BUILD SUCCESS",
    "execute_test": "exitCode=0\nTests run: 3, Failures: 0, Errors: 0, Skipped: 0\nBUILD SUCCESS",
    "get_single_method_coverage": "com.example.Calc: ◐ add(int, int) Line: 85.0% Branch: 50.0%",
}

_PARAMS = {
    "check_syntax": ["file_path"],
    "check_syntax_with_lsp": ["file_path"],
    "compile_project": [],
    "execute_test": ["test_class_name"],
    "get_single_method_coverage": ["module_path", "class_name", "method_name"],
}


class _FakeTools:
    """Registers every verification tool with scripted outputs."""

    def __init__(self, **overrides: str) -> None:
        self.outputs = {**_OK_OUTPUTS, **overrides}
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.registry = ToolRegistry()
        for name, params in _PARAMS.items():
            self.registry.register(
                name,
                name,
                Capability.BUILD,
                self._handler(name),
                [ToolParameter(p, p) for p in params],
            )

    def _handler(self, name: str) -> Any:
        def _run(**kwargs: Any) -> str:
            self.calls.append((name, kwargs))
            output = self.outputs[name]
            if output == "RAISE":
                raise RuntimeError("tool crashed")
            return output

        return _run

    @property
    def called(self) -> list[str]:
        return [name for name, _ in self.calls]


async def _execute(tools: _FakeTools, **kwargs: Any) -> VerificationResult:
    pipeline = VerificationPipeline(tools.registry, threshold=80.0, **kwargs)
    return await pipeline.execute(
        "src/test/java/com/example/CalcTest.java", "CalcTest", "com.example.Calc", "add"
    )


class TestHappyPath:
    async def test_all_steps_pass(self) -> None:
        tools = _FakeTools()
        result = await _execute(tools)

        assert result.success
        assert result.failed_step is None
        assert result.coverage == 85.0
        assert result.coverage_threshold_met
        assert tools.called == [
            "check_syntax",
            "compile_project",
            "execute_test",
            "get_single_method_coverage",
        ]

    async def test_arguments(self) -> None:
        tools = _FakeTools()
        await _execute(tools)
        args = dict(tools.calls)
        assert args["check_syntax"] == {"file_path": "src/test/java/com/example/CalcTest.java"}
        assert args["execute_test"] == {"test_class_name": "CalcTest"}
        assert args["get_single_method_coverage"] == {
            "module_path": ".",
            "class_name": "com.example.Calc",
            "method_name": "add",
        }

    async def test_below_threshold_still_succeeds(self) -> None:
        tools = _FakeTools(
            get_single_method_coverage="com.example.Calc: ◐ add(int, int) Line: 40.0% Branch: 0.0%"
        )
        result = await _execute(tools)
        assert result.success
        assert result.coverage == 40.0
        assert not result.coverage_threshold_met

    async def test_lsp_step_runs_when_enabled(self) -> None:
        tools = _FakeTools()
        result = await _execute(tools, use_lsp=True)
        assert result.success
        assert tools.called[:2] == ["check_syntax", "check_syntax_with_lsp"]


class TestShortCircuit:
    @pytest.mark.parametrize(
        ("overrides", "step", "called"),
        [
            (
                {"check_syntax": "SYNTAX_ERROR: 1 problem(s)\n  - line 3: missing ';'"},
                VerificationStep.SYNTAX_CHECK,
                ["check_syntax"],
            ),
            (
                {"compile_project": "exitCode=1\n[ERROR] COMPILATION ERROR"},
                VerificationStep.COMPILE,
                ["check_syntax", "compile_project"],
            ),
            (
                {"execute_test": "exitCode=1\nTests run: 3, Failures: 1, Errors: 0"},
                VerificationStep.TEST,
                ["check_syntax", "compile_project", "execute_test"],
            ),
            (
                {"get_single_method_coverage": "ERROR: No JaCoCo report found under ."},
                VerificationStep.COVERAGE,
                ["check_syntax", "compile_project", "execute_test", "get_single_method_coverage"],
            ),
        ],
    )
    async def test_first_failure_stops_the_run(
        self, overrides: dict[str, str], step: VerificationStep, called: list[str]
    ) -> None:
        tools = _FakeTools(**overrides)
        result = await _execute(tools)

        assert not result.success
        assert result.failed_step is step
        assert tools.called == called
        assert result.error_details

    async def test_lsp_errors_stop_before_compile(self) -> None:
        tools = _FakeTools(check_syntax_with_lsp="LSP_ERRORS (1):\n  - Line 3: ';' expected")
        result = await _execute(tools, use_lsp=True)
        assert result.failed_step is VerificationStep.LSP_CHECK
        assert "compile_project" not in tools.called

    async def test_lsp_warnings_pass(self) -> None:
        tools = _FakeTools(check_syntax_with_lsp="LSP_WARNINGS (1):\n  - no @Test methods found")
        result = await _execute(tools, use_lsp=True)
        assert result.success

    async def test_tool_exception_becomes_failure(self) -> None:
        tools = _FakeTools(compile_project="RAISE")
        result = await _execute(tools)
        assert result.failed_step is VerificationStep.COMPILE
        assert "tool crashed" in result.error_details

    async def test_unregistered_tool_is_a_failure(self) -> None:
        result = await VerificationPipeline(ToolRegistry()).execute(
            "CalcTest.java", "CalcTest", "Calc", "add"
        )
        assert result.failed_step is VerificationStep.SYNTAX_CHECK
        assert "Unknown tool" in result.error_details


class TestInterpretation:
    async def test_compile_blocked(self) -> None:
        tools = _FakeTools(compile_project="COMPILE_BLOCKED: 1 file(s) have not passed")
        result = await _execute(tools)
        assert result.failed_step is VerificationStep.COMPILE
        assert "blocked" in result.error_message

    async def test_nonzero_exit_without_markers_fails_compile(self) -> None:
        tools = _FakeTools(compile_project="exitCode=2\nsomething went wrong")
        result = await _execute(tools)
        assert result.failed_step is VerificationStep.COMPILE

    async def test_failure_counts_are_summed_into_message(self) -> None:
        tools = _FakeTools(
            execute_test=(
                "Tests run: 2, Failures: 1, Errors: 0\n"
                "Tests run: 4, Failures: 1, Errors: 2\n"
                "Tests run: 6, Failures: 2, Errors: 2"
            )
        )
        result = await _execute(tools)
        assert result.failed_step is VerificationStep.TEST
        assert result.error_message == "Tests failed (errors: 4, failures: 4)"

    async def test_build_failure_marker_fails_tests(self) -> None:
        tools = _FakeTools(execute_test="[ERROR] BUILD FAILURE")
        result = await _execute(tools)
        assert result.failed_step is VerificationStep.TEST

    async def test_coverage_without_value(self) -> None:
        tools = _FakeTools(get_single_method_coverage="coverage unknown")
        result = await _execute(tools)
        assert result.failed_step is VerificationStep.COVERAGE
        assert result.error_message == "No coverage value in tool output"

    async def test_coverage_from_line_value(self) -> None:
        tools = _FakeTools(get_single_method_coverage="add: line=92.0% branch=50%")
        result = await _execute(tools)
        assert result.coverage == 92.0
        assert result.coverage_threshold_met


class TestSingleSteps:
    async def test_check_syntax_only(self) -> None:
        tools = _FakeTools()
        pipeline = VerificationPipeline(tools.registry)
        assert (await pipeline.check_syntax_only("CalcTest.java")).success
        assert tools.called == ["check_syntax"]

    async def test_compile_only(self) -> None:
        tools = _FakeTools(compile_project="[ERROR] BUILD FAILURE")
        result = await VerificationPipeline(tools.registry).compile_only()
        assert result.failed_step is VerificationStep.COMPILE

    async def test_test_only(self) -> None:
        tools = _FakeTools()
        assert (await VerificationPipeline(tools.registry).test_only("CalcTest")).success
        assert tools.calls == [("execute_test", {"test_class_name": "CalcTest"})]


def test_result_summary() -> None:
    assert VerificationResult.passed(85.0, threshold_met=True).summary() == (
        "verified, coverage 85.0% (met)"
    )
    failure = VerificationResult.failure(VerificationStep.COMPILE, "Compilation failed")
    assert failure.summary() == "Compile failed: Compilation failed"


class TestPendingFiles:
    """Other Java files written during a session must parse before the build runs."""

    @pytest.fixture()
    def guarded(self, maven_project: Path) -> tuple[_FakeTools, CompileGuard]:
        guard = CompileGuard()
        tools = _FakeTools()
        SyntaxTools(maven_project, guard).register(tools.registry)
        guard.mark_file_modified(write_file(maven_project, TEST_REL, _VALID_TEST))
        return tools, guard

    async def _execute(self, tools: _FakeTools, guard: CompileGuard) -> VerificationResult:
        pipeline = VerificationPipeline(tools.registry, threshold=80.0, guard=guard)
        return await pipeline.execute(TEST_REL, "CalculatorTest", "com.example.Calculator", "add")

    async def test_broken_helper_fails_the_syntax_step(
        self, maven_project: Path, guarded: tuple[_FakeTools, CompileGuard]
    ) -> None:
        tools, guard = guarded
        fixtures = write_file(maven_project, _FIXTURES_REL, _BROKEN_FIXTURES)
        guard.mark_file_modified(fixtures)

        result = await self._execute(tools, guard)

        assert result.failed_step is VerificationStep.SYNTAX_CHECK
        assert "Fixtures.java" in result.error_details
        assert "compile_project" not in tools.called
        assert guard.pending_files() == [normalize_path(fixtures)]

    async def test_repaired_helper_unblocks_the_build(
        self, maven_project: Path, guarded: tuple[_FakeTools, CompileGuard]
    ) -> None:
        tools, guard = guarded
        fixtures = write_file(maven_project, _FIXTURES_REL, "class Fixtures { int x = 1; }\n")
        guard.mark_file_modified(fixtures)

        result = await self._execute(tools, guard)

        assert result.success
        assert guard.pending_files() == []
        assert guard.can_compile().allowed

    async def test_deleted_helper_is_dropped(
        self, maven_project: Path, guarded: tuple[_FakeTools, CompileGuard]
    ) -> None:
        tools, guard = guarded
        guard.mark_file_modified(maven_project / _FIXTURES_REL)

        result = await self._execute(tools, guard)

        assert result.success
        assert guard.get_status(maven_project / _FIXTURES_REL) is None
