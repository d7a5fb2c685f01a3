"""Tests for run orchestration (orchestrator.py)."""

from __future__ import annotations

from typing import TYPE_CHECKING
from unittest.mock import AsyncMock, MagicMock

import pytest

from tests.conftest import SOURCE_REL, TEST_REL
from utgen.agents.method_queue import MethodQueue, MethodStatus
from utgen.agents.precheck import PreCheckResult
from utgen.config import LLMConfig, ProjectConfig, UtgenConfig, WorkflowConfig
from utgen.coverage.parser import CoverageParser
from utgen.llm.engine import GenerationRequest, LLMEngine, LLMError, LLMResponse, ToolCall
from utgen.models.coverage import MethodCoverageInfo
from utgen.models.verification import VerificationResult, VerificationStep
from utgen.orchestrator import (
    MAX_FALLBACK_FAILURES,
    Orchestrator,
    RunMode,
    is_iteration_complete,
)
from utgen.tools.compile_guard import CompileGuard
from utgen.tools.factory import Toolbox
from utgen.tools.filesystem import FileSystemTools
from utgen.tools.registry import Capability, ToolParameter, ToolRegistry
from utgen.tools.syntax import SyntaxTools
from utgen.utils.paths import resolve_target
from utgen.utils.subprocess_runner import SubprocessResult

if TYPE_CHECKING:
    from pathlib import Path


class _ScriptedEngine(LLMEngine):
    """Answers each request with the next scripted text (the last one repeats)."""

    def __init__(self, *replies: str) -> None:
        self.replies = list(replies)
        self.requests: list[GenerationRequest] = []

    @property
    def model_name(self) -> str:
        return "scripted"

    async def generate(self, request: GenerationRequest) -> LLMResponse:
        self.requests.append(request)
        text = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
        return LLMResponse(text=text, model="scripted", prompt_tokens=100, completion_tokens=20)

    @property
    def prompts(self) -> list[str]:
        return [r.messages[-1].content for r in self.requests]


_PASSED = VerificationResult.passed(90.0, threshold_met=True)
_BELOW = VerificationResult.passed(50.0, threshold_met=False)
_COMPILE_FAILED = VerificationResult.failure(
    VerificationStep.COMPILE, "Compilation failed", "[ERROR] cannot find symbol"
)
_SYNTAX_FAILED = VerificationResult.failure(
    VerificationStep.SYNTAX_CHECK,
    "Syntax errors",
    "SYNTAX_ERROR: 1 problem(s)\n  - line 4: ';' expected",
)
_NO_COVERAGE = VerificationResult.failure(
    VerificationStep.COVERAGE, "Coverage tool error", "ERROR: No JaCoCo report found"
)


def _method(name: str, line: float) -> MethodCoverageInfo:
    return MethodCoverageInfo.from_percentages(name, line, line, signature=f"{name}(int)")


@pytest.fixture()
def toolbox() -> Toolbox:
    coverage_source = AsyncMock()
    coverage_source.class_line_coverage.return_value = None
    maven = MagicMock()
    maven.run_goals = AsyncMock(
        return_value=SubprocessResult(returncode=0, stdout="", stderr="", success=True)
    )
    maven.goals_with_coverage.side_effect = lambda *goals: list(goals)
    return Toolbox(
        registry=ToolRegistry(),
        guard=CompileGuard(),
        maven=maven,
        parser=CoverageParser(),
        coverage_source=coverage_source,
        queue=MethodQueue(),
        diagnostics=MagicMock(),
    )


@pytest.fixture()
def config(maven_project: Path) -> UtgenConfig:
    return UtgenConfig(
        project=ProjectConfig(root=str(maven_project)),
        llm=LLMConfig(model="scripted"),
        workflow=WorkflowConfig(
            max_method_retries=3,
            max_verification_retries=2,
            max_fallback_iterations=5,
            feedback_enabled=False,
        ),
    )


@pytest.fixture()
def make_orchestrator(maven_project: Path, config: UtgenConfig, toolbox: Toolbox):
    def _make(engine: LLMEngine, *verifications: VerificationResult) -> Orchestrator:
        orchestrator = Orchestrator(
            config,
            engine,
            resolve_target(maven_project / SOURCE_REL),
            toolbox,
            reporter=MagicMock(),
        )
        orchestrator.pipeline = MagicMock()
        orchestrator.pipeline.execute = AsyncMock(side_effect=list(verifications))
        return orchestrator

    return _make


def _precheck(*methods: MethodCoverageInfo) -> PreCheckResult:
    return PreCheckResult(success=True, method_coverages=list(methods), from_report=True)


async def _process(orchestrator: Orchestrator, info: MethodCoverageInfo) -> MethodStatus:
    queue = orchestrator.toolbox.queue
    queue.build([info])
    entry = queue.next()
    assert entry is not None
    return await orchestrator.process_method(entry, _precheck(info))


# ── Per-method loop ──────────────────────────────────────────────


class TestProcessMethod:
    async def test_verified_on_first_attempt(self, make_orchestrator) -> None:
        engine = _ScriptedEngine("tests written")
        orchestrator = make_orchestrator(engine, _PASSED)

        status = await _process(orchestrator, _method("divide", 33.3))

        assert status is MethodStatus.SUCCESS
        assert len(engine.requests) == 1
        assert engine.prompts[0].startswith("## Generate tests")
        stats = orchestrator.stats.methods[0]
        assert stats.coverage == 90.0
        assert stats.iterations == 1
        assert stats.total_tokens == 120
        assert orchestrator.toolbox.queue.entries[0].status is MethodStatus.SUCCESS

    async def test_compile_failure_is_repaired(self, make_orchestrator) -> None:
        engine = _ScriptedEngine("tests written", "fixed")
        orchestrator = make_orchestrator(engine, _COMPILE_FAILED, _PASSED)

        status = await _process(orchestrator, _method("divide", 33.3))

        assert status is MethodStatus.SUCCESS
        assert engine.prompts[1].startswith("## Fix compilation errors")
        assert "[ERROR] cannot find symbol" in engine.prompts[1]
        assert orchestrator.stats.methods[0].iterations == 1

    async def test_syntax_failure_is_repaired(self, make_orchestrator) -> None:
        engine = _ScriptedEngine("tests written", "fixed")
        orchestrator = make_orchestrator(engine, _SYNTAX_FAILED, _PASSED)

        status = await _process(orchestrator, _method("divide", 33.3))

        assert status is MethodStatus.SUCCESS
        assert orchestrator.stats.methods[0].coverage == 90.0
        assert engine.prompts[1].startswith("## Fix syntax errors")
        assert "';' expected" in engine.prompts[1]
        assert orchestrator.pipeline.execute.await_count == 2

    async def test_pipeline_measures_the_method_signature(self, make_orchestrator) -> None:
        orchestrator = make_orchestrator(_ScriptedEngine("tests written"), _PASSED)

        await _process(orchestrator, _method("divide", 33.3))

        assert orchestrator.pipeline.execute.await_args.args[3] == "divide(int)"

    async def test_repair_attempts_exhausted(self, make_orchestrator) -> None:
        engine = _ScriptedEngine("tests written", "fixed")
        orchestrator = make_orchestrator(engine, *[_COMPILE_FAILED] * 3)

        status = await _process(orchestrator, _method("divide", 33.3))

        assert status is MethodStatus.FAILED
        assert len(engine.requests) == 3
        assert orchestrator.pipeline.execute.await_count == 3
        assert orchestrator.toolbox.queue.entries[0].notes == "repair attempts exhausted"

    async def test_failed_repair_session_stops(self, make_orchestrator) -> None:
        engine = _ScriptedEngine("tests written", "")
        orchestrator = make_orchestrator(engine, _COMPILE_FAILED, _PASSED)

        status = await _process(orchestrator, _method("divide", 33.3))

        assert status is MethodStatus.FAILED
        assert orchestrator.pipeline.execute.await_count == 1

    async def test_below_threshold_asks_for_more_tests(self, make_orchestrator) -> None:
        engine = _ScriptedEngine("tests written")
        orchestrator = make_orchestrator(engine, _BELOW, _BELOW, _BELOW)

        status = await _process(orchestrator, _method("divide", 33.3))

        assert status is MethodStatus.PARTIAL
        assert len(engine.requests) == 3
        assert engine.prompts[1].startswith("## Coverage below target")
        assert "Current line coverage: 50.0%" in engine.prompts[1]
        stats = orchestrator.stats.methods[0]
        assert stats.coverage == 50.0
        assert stats.iterations == 3

    async def test_coverage_tool_error_retries_from_zero(self, make_orchestrator) -> None:
        engine = _ScriptedEngine("tests written")
        orchestrator = make_orchestrator(engine, _NO_COVERAGE, _PASSED)

        status = await _process(orchestrator, _method("divide", 33.3))

        assert status is MethodStatus.SUCCESS
        assert len(engine.requests) == 2
        assert "Current line coverage: 0.0%" in engine.prompts[1]

    async def test_empty_generation_fails_immediately(self, make_orchestrator) -> None:
        engine = _ScriptedEngine("")
        orchestrator = make_orchestrator(engine, _PASSED)

        status = await _process(orchestrator, _method("divide", 33.3))

        assert status is MethodStatus.FAILED
        assert len(engine.requests) == 1
        orchestrator.pipeline.execute.assert_not_awaited()
        assert orchestrator.toolbox.queue.entries[0].notes == "generation failed"

    async def test_covered_method_is_skipped(self, make_orchestrator) -> None:
        engine = _ScriptedEngine("tests written")
        orchestrator = make_orchestrator(engine)

        status = await _process(orchestrator, _method("add", 100.0))

        assert status is MethodStatus.SKIPPED
        assert engine.requests == []
        assert orchestrator.stats.methods[0].skip_reason == "coverage already met"

    async def test_generation_sessions_only_see_generation_tools(
        self, make_orchestrator
    ) -> None:
        engine = _ScriptedEngine("tests written")
        orchestrator = make_orchestrator(engine, _PASSED)
        orchestrator.toolbox.registry.register(
            "compile_project", "Compile", Capability.BUILD, lambda: ""
        )

        await _process(orchestrator, _method("divide", 33.3))

        assert engine.requests[0].tools == []


# ── Modes ────────────────────────────────────────────────────────


class TestIterativeMode:
    async def test_processes_queue_in_coverage_order(self, make_orchestrator) -> None:
        engine = _ScriptedEngine("skeleton ready", "tests written")
        orchestrator = make_orchestrator(engine, _PASSED, _PASSED)
        precheck = _precheck(_method("add", 100.0), _method("divide", 33.3), _method("neg", 0.0))

        result = await orchestrator.run_iterative(precheck)

        assert result.success
        assert result.mode is RunMode.ITERATIVE
        assert [m.name for m in orchestrator.stats.methods] == ["neg", "divide", "add"]
        assert result.count(MethodStatus.SUCCESS) == 2
        assert result.count(MethodStatus.SKIPPED) == 1
        assert engine.prompts[0].startswith("## Target")
        assert "Do not write any test methods yet" in engine.prompts[0]

    @pytest.mark.parametrize("phase_switching", [True, False])
    async def test_init_session_cannot_drive_the_queue(
        self, make_orchestrator, config, phase_switching: bool
    ) -> None:
        config.workflow.phase_switching = phase_switching
        engine = _ScriptedEngine("skeleton ready", "tests written")
        orchestrator = make_orchestrator(engine, _PASSED)
        registry = orchestrator.toolbox.registry
        registry.register("get_next_method", "Next", Capability.METHOD_ITERATOR, lambda: "")
        registry.register("write_file", "Write", Capability.FILE_SYSTEM, lambda: "")

        await orchestrator.run_iterative(_precheck(_method("neg", 0.0)))

        init_tools = [tool["function"]["name"] for tool in engine.requests[0].tools]
        assert "write_file" in init_tools
        assert "get_next_method" not in init_tools
        assert [(m.name, m.status) for m in orchestrator.stats.methods] == [
            ("neg", MethodStatus.SUCCESS)
        ]

    async def test_init_failure_stops_the_run(self, make_orchestrator) -> None:
        engine = _ScriptedEngine("")
        orchestrator = make_orchestrator(engine)

        result = await orchestrator.run_iterative(_precheck(_method("divide", 33.3)))

        assert not result.success
        assert result.error_message == "Initialization failed: Model returned an empty response"
        assert len(engine.requests) == 1

    async def test_skip_low_priority_up_front(self, make_orchestrator, config) -> None:
        config.workflow.skip_low_priority = True
        engine = _ScriptedEngine("skeleton ready", "tests written")
        orchestrator = make_orchestrator(engine, _PASSED)

        await orchestrator.run_iterative(_precheck(_method("add", 100.0), _method("neg", 0.0)))

        assert [(m.name, m.status) for m in orchestrator.stats.methods] == [
            ("add", MethodStatus.SKIPPED),
            ("neg", MethodStatus.SUCCESS),
        ]
        assert len(engine.requests) == 2


class TestTraditionalMode:
    async def test_single_session(self, make_orchestrator, toolbox: Toolbox) -> None:
        toolbox.coverage_source.class_line_coverage.return_value = 85.0
        engine = _ScriptedEngine("All methods covered.")
        orchestrator = make_orchestrator(engine)

        result = await orchestrator.run_traditional(
            PreCheckResult(success=True, class_coverage=40.0)
        )

        assert result.success
        assert result.mode is RunMode.TRADITIONAL
        (stats,) = orchestrator.stats.methods
        assert stats.name == "Calculator"
        assert stats.initial_coverage == 40.0
        assert stats.coverage == 85.0
        assert stats.status is MethodStatus.SUCCESS
        assert engine.prompts[0].startswith("## Target")

    async def test_below_threshold_is_partial(self, make_orchestrator, toolbox: Toolbox) -> None:
        toolbox.coverage_source.class_line_coverage.return_value = 60.0
        orchestrator = make_orchestrator(_ScriptedEngine("done"))

        result = await orchestrator.run_traditional(PreCheckResult(success=True))

        assert result.success
        assert result.count(MethodStatus.PARTIAL) == 1

    async def test_failed_session(self, make_orchestrator) -> None:
        orchestrator = make_orchestrator(_ScriptedEngine(""))

        result = await orchestrator.run_traditional(
            PreCheckResult(success=True, class_coverage=40.0)
        )

        assert not result.success
        assert result.count(MethodStatus.FAILED) == 1
        assert orchestrator.stats.methods[0].coverage == 40.0


class TestFallbackMode:
    async def test_used_when_no_methods(self, make_orchestrator) -> None:
        engine = _ScriptedEngine("ITERATION_COMPLETE")
        orchestrator = make_orchestrator(engine)

        result = await orchestrator.run_iterative(PreCheckResult(success=True))

        assert result.mode is RunMode.FALLBACK
        assert len(engine.requests) == 1
        assert "init_method_iteration" in engine.prompts[0]
        assert orchestrator.stats.methods == []

    async def test_measured_coverage_ends_the_loop(
        self, make_orchestrator, toolbox: Toolbox
    ) -> None:
        toolbox.coverage_source.class_line_coverage.return_value = 92.0
        engine = _ScriptedEngine("Method: divide(int, int) coverage 40%")
        orchestrator = make_orchestrator(engine)

        await orchestrator.run_fallback(PreCheckResult(success=True))

        assert len(engine.requests) == 1
        assert orchestrator.stats.methods == []

    async def test_measured_coverage_overrides_completion_claim(
        self, make_orchestrator, toolbox: Toolbox
    ) -> None:
        toolbox.coverage_source.class_line_coverage.return_value = 50.0
        engine = _ScriptedEngine("ITERATION_COMPLETE")
        orchestrator = make_orchestrator(engine)

        await orchestrator.run_fallback(PreCheckResult(success=True))

        assert len(engine.requests) == 5
        assert [m.name for m in orchestrator.stats.methods] == [f"method_{i}" for i in range(1, 6)]

    async def test_stops_after_repeated_failures(self, make_orchestrator) -> None:
        engine = _ScriptedEngine("Tests failed for method divide(int, int), coverage 20%")
        orchestrator = make_orchestrator(engine)

        await orchestrator.run_fallback(PreCheckResult(success=True))

        assert len(engine.requests) == MAX_FALLBACK_FAILURES
        assert all(m.status is MethodStatus.FAILED for m in orchestrator.stats.methods)
        assert orchestrator.stats.methods[0].name == "divide"
        assert orchestrator.stats.methods[0].coverage == 20.0

    async def test_success_resets_failure_count(self, make_orchestrator) -> None:
        engine = _ScriptedEngine(
            "failed", "failed", "Method completed: neg(int) coverage 85%", "failed", "failed"
        )
        orchestrator = make_orchestrator(engine)

        await orchestrator.run_fallback(PreCheckResult(success=True))

        assert len(engine.requests) == 5
        assert [m.status for m in orchestrator.stats.methods].count(MethodStatus.SUCCESS) == 1

    async def test_labels_from_queue(self, make_orchestrator, toolbox: Toolbox) -> None:
        toolbox.queue.build([_method("neg", 0.0)])
        entry = toolbox.queue.next()
        assert entry is not None
        engine = _ScriptedEngine("Wrote tests", "ITERATION_COMPLETE")
        orchestrator = make_orchestrator(engine)

        await orchestrator.run_fallback(PreCheckResult(success=True))

        (stats,) = orchestrator.stats.methods
        assert stats.name == "neg"
        assert stats.priority == "P0"
        assert stats.status is MethodStatus.SUCCESS


# ── Full run ─────────────────────────────────────────────────────


class TestRun:
    async def test_precheck_failure(self, make_orchestrator, toolbox: Toolbox) -> None:
        toolbox.maven.run_goals.return_value = SubprocessResult(
            returncode=1, stdout="[ERROR] COMPILATION ERROR", stderr="", success=False
        )
        engine = _ScriptedEngine("unused")
        orchestrator = make_orchestrator(engine)

        result = await orchestrator.run()

        assert not result.success
        assert result.error_message.startswith("Compilation failed")
        assert engine.requests == []
        orchestrator.reporter.print_error.assert_called_once()
        toolbox.diagnostics.close.assert_called_once()

    async def test_iterative_run_writes_report(self, make_orchestrator, toolbox: Toolbox) -> None:
        toolbox.coverage_source.method_coverages.return_value = [_method("divide", 33.3)]
        toolbox.coverage_source.describe.return_value = "◐ divide(int) Line: 33.3% Branch: 33.3%"
        toolbox.coverage_source.class_line_coverage.return_value = 62.5
        engine = _ScriptedEngine("skeleton ready", "tests written")
        orchestrator = make_orchestrator(engine, _PASSED)

        result = await orchestrator.run()

        assert result.success
        assert result.precheck is not None
        assert result.precheck.class_coverage == 62.5
        assert result.report_path is not None
        assert result.report_path.parent.name == "result"
        assert "`divide`" in result.report_path.read_text(encoding="utf-8")
        toolbox.diagnostics.close.assert_called_once()

    async def test_model_error_fails_the_method_and_keeps_the_report(
        self, make_orchestrator, toolbox: Toolbox
    ) -> None:
        class _OverflowEngine(_ScriptedEngine):
            async def generate(self, request: GenerationRequest) -> LLMResponse:
                if self.requests:
                    self.requests.append(request)
                    raise LLMError("ContextWindowExceededError: prompt is too long")
                return await super().generate(request)

        toolbox.coverage_source.method_coverages.return_value = [
            _method("neg", 0.0),
            _method("divide", 33.3),
        ]
        toolbox.coverage_source.describe.return_value = "✗ neg(int) Line: 0.0% Branch: 0.0%"
        engine = _OverflowEngine("skeleton ready")
        orchestrator = make_orchestrator(engine)

        result = await orchestrator.run()

        assert result.success
        assert [(m.name, m.status) for m in orchestrator.stats.methods] == [
            ("neg", MethodStatus.FAILED),
            ("divide", MethodStatus.FAILED),
        ]
        orchestrator.pipeline.execute.assert_not_awaited()
        assert result.report_path is not None
        assert "`neg`" in result.report_path.read_text(encoding="utf-8")

    async def test_traditional_run(
        self, make_orchestrator, toolbox: Toolbox, config: UtgenConfig
    ) -> None:
        config.workflow.iterative_mode = False
        toolbox.coverage_source.method_coverages.return_value = None
        toolbox.coverage_source.class_line_coverage.return_value = 81.0
        orchestrator = make_orchestrator(_ScriptedEngine("done"))

        result = await orchestrator.run()

        assert result.mode is RunMode.TRADITIONAL
        assert result.count(MethodStatus.SUCCESS) == 1


@pytest.mark.parametrize(
    ("content", "expected"),
    [
        ("ITERATION_COMPLETE", True),
        ("Iteration complete, 4 methods processed", True),
        ("All methods tested.", True),
        ("Iterative generation completed successfully", True),
        ("Method divide completed", False),
        ("", False),
    ],
)
def test_is_iteration_complete(content: str, expected: bool) -> None:
    assert is_iteration_complete(content) is expected


# ── Real verification pipeline ───────────────────────────────────

_FIXTURES_REL = "src/test/java/com/example/Fixtures.java"

_BROKEN_TEST = """\
package com.example;

class CalculatorTest {
    void dividesNumbers( {
"""

_FIXED_TEST = """\
package com.example;

class CalculatorTest {
    void dividesNumbers() {
        new Calculator().divide(4, 2);
    }
}
"""


def _write(call_id: str, path: str, content: str) -> ToolCall:
    return ToolCall(call_id, "write_file", {"path": path, "content": content})


class _ToolCallingEngine(LLMEngine):
    """Replays scripted turns; a turn is reply text or a list of tool calls."""

    def __init__(self, *turns: str | list[ToolCall]) -> None:
        self.turns = list(turns)
        self.requests: list[GenerationRequest] = []

    @property
    def model_name(self) -> str:
        return "scripted"

    async def generate(self, request: GenerationRequest) -> LLMResponse:
        self.requests.append(request)
        turn = self.turns.pop(0)
        if isinstance(turn, str):
            return LLMResponse(text=turn, model="scripted")
        return LLMResponse(text="", model="scripted", tool_calls=turn)

    @property
    def session_prompts(self) -> list[str]:
        return [r.messages[1].content for r in self.requests if len(r.messages) == 2]


class TestVerificationThroughTools:
    """Sessions write files through the registry; the pipeline checks them with tree-sitter."""

    @pytest.fixture()
    def builds(self, maven_project: Path, toolbox: Toolbox) -> list[str]:
        guard = toolbox.guard
        registry = toolbox.registry
        FileSystemTools(maven_project, guard).register(registry)
        SyntaxTools(maven_project, guard).register(registry)
        builds: list[str] = []

        def compile_project() -> str:
            check = guard.can_compile()
            if not check.allowed:
                return check.block_reason
            builds.append("compile")
            return "exitCode=0\n[INFO] BUILD SUCCESS"

        def execute_test(test_class_name: str) -> str:
            builds.append(test_class_name)
            return "exitCode=0\nTests run: 1, Failures: 0, Errors: 0, Skipped: 0"

        def get_single_method_coverage(module_path: str, class_name: str, method_name: str) -> str:
            return f"{class_name}: ◐ divide(int) Line: 90.0% Branch: 50.0%"

        registry.register("compile_project", "Compile", Capability.BUILD, compile_project)
        registry.register(
            "execute_test",
            "Run tests",
            Capability.BUILD,
            execute_test,
            [ToolParameter("test_class_name", "Test class")],
        )
        registry.register(
            "get_single_method_coverage",
            "Method coverage",
            Capability.COVERAGE,
            get_single_method_coverage,
            [
                ToolParameter("module_path", "Module"),
                ToolParameter("class_name", "Class"),
                ToolParameter("method_name", "Method"),
            ],
        )
        return builds

    async def test_stray_helper_is_repaired_before_the_build(
        self,
        maven_project: Path,
        config: UtgenConfig,
        toolbox: Toolbox,
        builds: list[str],
    ) -> None:
        engine = _ToolCallingEngine(
            [
                _write("1", TEST_REL, _BROKEN_TEST),
                _write("2", _FIXTURES_REL, "class Fixtures {\n    int seed( {\n"),
            ],
            "tests written",
            [_write("3", TEST_REL, _FIXED_TEST)],
            "fixed",
            [_write("4", _FIXTURES_REL, "class Fixtures {\n    int seed() { return 4; }\n}\n")],
            "fixed",
        )
        orchestrator = Orchestrator(
            config,
            engine,
            resolve_target(maven_project / SOURCE_REL),
            toolbox,
            reporter=MagicMock(),
        )

        status = await _process(orchestrator, _method("divide", 33.3))

        assert status is MethodStatus.SUCCESS
        assert orchestrator.stats.methods[0].coverage == 90.0
        assert engine.turns == []
        generate, fix_test, fix_helper = engine.session_prompts
        assert generate.startswith("## Generate tests")
        assert fix_test.startswith("## Fix syntax errors")
        assert "CalculatorTest.java" in fix_test
        assert fix_helper.startswith("## Fix syntax errors")
        assert "Fixtures.java" in fix_helper
        assert builds == ["compile", "com.example.CalculatorTest"]
        assert toolbox.guard.pending_files() == []
