"""Run orchestration: pre-check, generation sessions and the run summary.

A run moves through PRECHECK, then TRADITIONAL (one whole-class session) or
ITERATIVE (one method at a time, verified by the pipeline after every
generation), and ends with a SUMMARY that writes the Markdown report.
ITERATIVE hands over to a model-driven FALLBACK loop when not even the
static scan found a method to work on.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from utgen.agents.feedback import CoverageFeedbackEngine
from utgen.agents.method_queue import MethodStatus
from utgen.agents.phases import PhaseManager, WorkflowPhase
from utgen.agents.precheck import PreCheckExecutor, PreCheckResult
from utgen.agents.stats import IterationStats
from utgen.llm.prompts import (
    build_fallback_prompt,
    build_feedback_hints,
    build_init_prompt,
    build_traditional_prompt,
    load_system_prompt,
)
from utgen.llm.session import AgentSession
from utgen.models.verification import VerificationStep
from utgen.pipeline.fix_prompts import (
    build_fix_prompt,
    build_generate_prompt,
    build_more_tests_prompt,
)
from utgen.pipeline.verification import VerificationPipeline
from utgen.reporters.terminal import reporter as default_reporter
from utgen.tools.registry import Capability

if TYPE_CHECKING:
    from pathlib import Path

    from utgen.agents.method_queue import MethodEntry
    from utgen.agents.stats import MethodStats
    from utgen.config import UtgenConfig
    from utgen.llm.engine import LLMEngine
    from utgen.llm.session import SessionResult
    from utgen.models.coverage import MethodCoverageInfo
    from utgen.models.verification import VerificationResult
    from utgen.reporters.terminal import CLIReporter
    from utgen.tools.factory import Toolbox
    from utgen.utils.paths import TargetLayout

logger = logging.getLogger(__name__)

TRADITIONAL_MAX_MESSAGES = 20
TRADITIONAL_TIMEOUT = 600.0
INIT_MAX_MESSAGES = 8
METHOD_MAX_MESSAGES = 10
METHOD_TIMEOUT = 300.0

MAX_FALLBACK_FAILURES = 3

SKIP_REASON = "coverage already met"

_COMPLETION_PHRASES = (
    "iteration_complete",
    "iteration complete",
    "all methods completed",
    "all methods tested",
)
_FALLBACK_METHOD_RE = re.compile(
    r"(?:FOCUS ON|Method completed|method)[:\s]+`?(\w+)\s*\(", re.IGNORECASE
)
_FALLBACK_COVERAGE_RE = re.compile(r"coverage[^\d\n]{0,20}([\d.]+)\s*%", re.IGNORECASE)


class RunMode(Enum):
    TRADITIONAL = "traditional"
    ITERATIVE = "iterative"
    FALLBACK = "fallback"


@dataclass
class RunResult:
    """Outcome of :meth:`Orchestrator.run`."""

    success: bool
    """False when the run stopped before or during its first model session."""

    mode: RunMode | None = None
    error_message: str = ""
    precheck: PreCheckResult | None = None
    stats: IterationStats | None = None
    report_path: Path | None = None

    def count(self, status: MethodStatus) -> int:
        return self.stats.count(status) if self.stats is not None else 0


def is_iteration_complete(content: str) -> bool:
    """Return True when a fallback session says every method is done."""
    lowered = content.lower()
    if any(phrase in lowered for phrase in _COMPLETION_PHRASES):
        return True
    return "completed" in lowered and "successfully" in lowered and "iterative" in lowered


def _fallback_failed(result: SessionResult) -> bool:
    return not result.success or "failed" in result.content.lower()


class Orchestrator:
    """Drives one target file from pre-check to report."""

    def __init__(
        self,
        config: UtgenConfig,
        engine: LLMEngine,
        layout: TargetLayout,
        toolbox: Toolbox,
        *,
        reporter: CLIReporter | None = None,
    ) -> None:
        self.config = config
        self.workflow = config.workflow
        self.engine = engine
        self.layout = layout
        self.toolbox = toolbox
        self.reporter = reporter or default_reporter
        self.phases = PhaseManager(enabled=self.workflow.phase_switching)
        self.pipeline = VerificationPipeline(
            toolbox.registry,
            parser=toolbox.parser,
            threshold=self.workflow.method_coverage_threshold,
            use_lsp=self.workflow.use_lsp,
            guard=toolbox.guard,
        )
        self.feedback = (
            CoverageFeedbackEngine(toolbox.coverage_source)
            if self.workflow.feedback_enabled
            else None
        )
        self.system_prompt = load_system_prompt(config.prompts, layout.project_root)
        self.stats = IterationStats(target_file=layout.relative(layout.source_file))

    @property
    def test_file(self) -> str:
        return self.layout.relative(self.layout.test_file)

    @property
    def source_file(self) -> str:
        return self.layout.relative(self.layout.source_file)

    async def run(self) -> RunResult:
        """Pre-check the target, generate tests and write the report."""
        try:
            precheck = await self.precheck()
            if not precheck.success:
                self.reporter.print_error(precheck.error_message)
                return RunResult(
                    success=False, error_message=precheck.error_message, precheck=precheck
                )

            if self.workflow.iterative_mode:
                result = await self.run_iterative(precheck)
            else:
                result = await self.run_traditional(precheck)
            result.report_path = self.summarize()
            return result
        finally:
            self.toolbox.close()

    # ── PRECHECK ─────────────────────────────────────────────────

    async def precheck(self) -> PreCheckResult:
        self.reporter.print_pipeline_header(f"Pre-check: {self.layout.class_name}")
        executor = PreCheckExecutor(
            self.toolbox.maven,
            self.toolbox.coverage_source,
            feedback=self.feedback,
            coverage_threshold=self.workflow.coverage_threshold,
            reporter=self.reporter,
        )
        with self.reporter.create_status("Building project and reading coverage..."):
            result = await executor.execute(self.layout)
        if result.success and self.feedback is not None:
            self.stats.feedback_summary = self.feedback.iteration_summary()
        return result

    # ── TRADITIONAL ──────────────────────────────────────────────

    async def run_traditional(self, precheck: PreCheckResult) -> RunResult:
        """Hand the whole class to a single session."""
        self.reporter.print_pipeline_header("Traditional generation")
        initial = precheck.class_coverage or 0.0
        method_stats = self.stats.start_method(self.layout.simple_name, "-", initial)

        capabilities = self.phases.switch_to_phase(WorkflowPhase.FULL)
        session = self._session(
            capabilities, max_messages=TRADITIONAL_MAX_MESSAGES, timeout=TRADITIONAL_TIMEOUT
        )
        result = await session.run(build_traditional_prompt(self.layout, precheck))
        self._record(result, method_stats)
        method_stats.iterations = 1

        coverage = await self.toolbox.coverage_source.class_line_coverage(
            self.layout.class_name
        )
        final = coverage if coverage is not None else initial
        if not result.success:
            method_stats.complete(MethodStatus.FAILED, final)
            self.reporter.print_error(f"Generation session failed: {result.error_message}")
            return RunResult(
                success=False,
                mode=RunMode.TRADITIONAL,
                error_message=result.error_message,
                precheck=precheck,
                stats=self.stats,
            )

        status = (
            MethodStatus.SUCCESS
            if final >= self.workflow.coverage_threshold
            else MethodStatus.PARTIAL
        )
        method_stats.complete(status, final)
        self.reporter.print_success(f"Class line coverage: {final:.1f}%")
        return RunResult(
            success=True, mode=RunMode.TRADITIONAL, precheck=precheck, stats=self.stats
        )

    # ── ITERATIVE ────────────────────────────────────────────────

    async def run_iterative(self, precheck: PreCheckResult) -> RunResult:
        """Create the test skeleton, then work through the method queue."""
        methods = precheck.methods_sorted_by_coverage()
        if not methods:
            logger.warning(
                "No method list for %s; using model-driven iteration", self.layout.class_name
            )
            return await self.run_fallback(precheck)

        self.reporter.print_pipeline_header("Iterative generation")
        self.reporter.print_method_coverage(methods, self.workflow.method_coverage_threshold)

        queue = self.toolbox.queue
        queue.build(methods)
        if self.workflow.skip_low_priority:
            queue.skip_low_priority(SKIP_REASON)
            for entry in queue.entries:
                if entry.status is MethodStatus.SKIPPED:
                    self.stats.start_method(
                        entry.name, entry.priority.value, entry.info.line_coverage
                    ).mark_skipped(SKIP_REASON)

        # The queue belongs to this loop; INIT only creates the skeleton
        init_capabilities = self.phases.switch_to_phase(WorkflowPhase.INIT) - {
            Capability.METHOD_ITERATOR
        }
        init = self._session(init_capabilities, max_messages=INIT_MAX_MESSAGES)
        result = await init.run(build_init_prompt(self.layout, precheck))
        self._record(result)
        if not result.success:
            message = f"Initialization failed: {result.error_message}"
            self.reporter.print_error(message)
            return RunResult(
                success=False,
                mode=RunMode.ITERATIVE,
                error_message=message,
                precheck=precheck,
                stats=self.stats,
            )

        total = len(queue)
        while (entry := queue.next()) is not None:
            position = queue.entries.index(entry) + 1
            self.reporter.print_step_header(position, total, entry.info.signature)
            await self.process_method(entry, precheck)

        return RunResult(
            success=True, mode=RunMode.ITERATIVE, precheck=precheck, stats=self.stats
        )

    async def process_method(self, entry: MethodEntry, precheck: PreCheckResult) -> MethodStatus:
        """Generate, verify and repair tests for one queued method."""
        info = entry.info
        threshold = self.workflow.method_coverage_threshold
        method_stats = self.stats.start_method(info.name, info.priority.value, info.line_coverage)

        if info.line_coverage >= threshold:
            method_stats.mark_skipped(SKIP_REASON)
            self.toolbox.queue.complete(MethodStatus.SKIPPED, info.line_coverage, SKIP_REASON)
            self.reporter.print_step_skip(f"{info.name}: {info.line_coverage:.1f}%")
            return MethodStatus.SKIPPED

        coverage = info.line_coverage
        for attempt in range(self.workflow.max_method_retries):
            logger.info(
                "Method %s attempt %d/%d (coverage %.1f%%)",
                info.name,
                attempt + 1,
                self.workflow.max_method_retries,
                coverage,
            )
            prompt = self._generation_prompt(info, attempt, coverage, precheck)
            generated = await self._ask(WorkflowPhase.GENERATION, prompt, method_stats)
            if not generated.success:
                logger.warning("Generation failed for %s: %s", info.name, generated.error_message)
                return self._finish(
                    method_stats, MethodStatus.FAILED, coverage, "generation failed"
                )

            verification = await self._verify_and_repair(info.signature, method_stats)
            method_stats.iterations += 1
            if verification is None:
                return self._finish(
                    method_stats, MethodStatus.FAILED, coverage, "repair attempts exhausted"
                )
            if verification.failed_step is VerificationStep.COVERAGE:
                coverage = 0.0
                continue

            coverage = verification.coverage
            if verification.coverage_threshold_met:
                return self._finish(method_stats, MethodStatus.SUCCESS, coverage)
            logger.info(
                "Coverage for %s is %.1f%%, below %.0f%%", info.name, coverage, threshold
            )

        return self._finish(
            method_stats, MethodStatus.PARTIAL, coverage, "retries exhausted below threshold"
        )

    def _generation_prompt(
        self, info: MethodCoverageInfo, attempt: int, coverage: float, precheck: PreCheckResult
    ) -> str:
        if attempt == 0:
            prompt = build_generate_prompt(
                self.source_file, info.signature, self.test_file, coverage
            )
            hints = build_feedback_hints(precheck.feedback_result, info.name)
            return f"{prompt}\n\n{hints}" if hints else prompt
        return build_more_tests_prompt(
            self.source_file,
            info.signature,
            self.test_file,
            coverage,
            self.workflow.method_coverage_threshold,
        )

    async def _verify_and_repair(
        self, method_signature: str, method_stats: MethodStats
    ) -> VerificationResult | None:
        """Verify, repairing each failed step; None when the tests stay broken.

        Coverage is looked up by *method_signature* so overloads stay apart. A
        coverage failure is returned as-is so the caller can ask for more tests.
        """
        retries = self.workflow.max_verification_retries
        for repair in range(retries + 1):
            self.phases.switch_to_phase(WorkflowPhase.VERIFICATION)
            result = await self.pipeline.execute(
                self.test_file,
                self.layout.test_class_name,
                self.layout.class_name,
                method_signature,
            )
            self.reporter.print_verification(result)
            if result.success or result.failed_step is VerificationStep.COVERAGE:
                return result
            if repair == retries or result.failed_step is None:
                break

            prompt = build_fix_prompt(
                result.failed_step,
                self.test_file,
                self.layout.test_class_name,
                result.error_details or result.error_message,
            )
            if prompt is None:
                break
            logger.info(
                "Repairing %s failure for %s (%d/%d)",
                result.failed_step.label,
                method_signature,
                repair + 1,
                retries,
            )
            fixed = await self._ask(WorkflowPhase.REPAIR, prompt, method_stats)
            if not fixed.success:
                logger.warning(
                    "Repair session failed for %s: %s", method_signature, fixed.error_message
                )
                return None
        return None

    def _finish(
        self, method_stats: MethodStats, status: MethodStatus, coverage: float, notes: str = ""
    ) -> MethodStatus:
        method_stats.complete(status, coverage)
        self.toolbox.queue.complete(status, coverage, notes)
        if status is MethodStatus.SUCCESS:
            self.reporter.print_step_done(
                f"{method_stats.name}: {coverage:.1f}%", method_stats.duration
            )
        elif status is MethodStatus.PARTIAL:
            self.reporter.print_warning(f"{method_stats.name}: {coverage:.1f}% ({notes})")
        else:
            self.reporter.print_error(f"{method_stats.name}: {notes}")
        return status

    # ── FALLBACK ─────────────────────────────────────────────────

    async def run_fallback(self, precheck: PreCheckResult) -> RunResult:
        """Let fresh sessions walk the method iterator tools themselves."""
        self.reporter.print_pipeline_header("Model-driven iteration")
        threshold = self.workflow.coverage_threshold
        capabilities = self.phases.switch_to_phase(WorkflowPhase.FULL)
        failures = 0

        for iteration in range(1, self.workflow.max_fallback_iterations + 1):
            method_stats = self.stats.start_method(f"method_{iteration}", "P1")
            session = self._session(
                capabilities, max_messages=METHOD_MAX_MESSAGES, timeout=METHOD_TIMEOUT
            )
            result = await session.run(build_fallback_prompt(self.layout, iteration))
            self._record(result, method_stats)
            method_stats.iterations = 1

            measured = await self.toolbox.coverage_source.class_line_coverage(
                self.layout.class_name
            )
            if measured is not None:
                complete = measured >= threshold
                if complete != is_iteration_complete(result.content):
                    logger.info(
                        "Measured class coverage %.1f%% overrides the model's completion claim",
                        measured,
                    )
            else:
                complete = is_iteration_complete(result.content)
            if complete:
                self.stats.remove_method(method_stats)
                logger.info("Model-driven iteration complete after %d session(s)", iteration)
                break

            self._label_fallback_method(method_stats, result.content)
            coverage = self._fallback_coverage(result.content)
            if _fallback_failed(result):
                failures += 1
                logger.warning(
                    "Fallback iteration %d failed (%d/%d): %s",
                    iteration,
                    failures,
                    MAX_FALLBACK_FAILURES,
                    result.error_message or "reported failure",
                )
                method_stats.complete(MethodStatus.FAILED, coverage)
                if failures >= MAX_FALLBACK_FAILURES:
                    self.reporter.print_error("Too many failed iterations; stopping")
                    break
                continue

            failures = 0
            method_stats.complete(MethodStatus.SUCCESS, coverage)
            self.reporter.print_step_done(
                f"{method_stats.name}: {coverage:.1f}%", method_stats.duration
            )
        else:
            logger.warning(
                "Stopped after %d fallback iterations", self.workflow.max_fallback_iterations
            )

        return RunResult(success=True, mode=RunMode.FALLBACK, precheck=precheck, stats=self.stats)

    def _label_fallback_method(self, method_stats: MethodStats, content: str) -> None:
        current = self.toolbox.queue.current
        if current is not None:
            method_stats.name = current.name
            method_stats.priority = current.priority.value
            method_stats.initial_coverage = current.info.line_coverage
            return
        match = _FALLBACK_METHOD_RE.search(content)
        if match:
            method_stats.name = match.group(1)

    def _fallback_coverage(self, content: str) -> float:
        current = self.toolbox.queue.current
        if current is not None and current.status.is_terminal:
            return current.coverage_achieved
        match = _FALLBACK_COVERAGE_RE.search(content)
        if match:
            try:
                return float(match.group(1))
            except ValueError:
                return 0.0
        return 0.0

    # ── SUMMARY ──────────────────────────────────────────────────

    def summarize(self) -> Path | None:
        """Print the outcome table and write the Markdown report."""
        self.reporter.print_pipeline_header("Summary")
        self.reporter.print_run_summary(self.stats)
        path = self.stats.save_report(self.layout.project_root, self.config.report.output_dir)
        if path is not None:
            self.reporter.print_success(f"Report written to {path}")
        else:
            self.reporter.print_warning("Report could not be written")
        return path

    # ── Sessions ─────────────────────────────────────────────────

    def _session(
        self,
        capabilities: frozenset[Capability],
        *,
        max_messages: int = METHOD_MAX_MESSAGES,
        timeout: float = METHOD_TIMEOUT,
    ) -> AgentSession:
        return AgentSession(
            self.engine,
            self.toolbox.registry,
            self.system_prompt,
            capabilities,
            max_messages=max_messages,
            timeout=timeout,
            temperature=self.config.llm.temperature,
            max_tokens=self.config.llm.max_tokens,
        )

    async def _ask(
        self, phase: WorkflowPhase, prompt: str, method_stats: MethodStats
    ) -> SessionResult:
        """Run *prompt* in a fresh session limited to *phase*'s tools."""
        session = self._session(self.phases.switch_to_phase(phase))
        result = await session.run(prompt)
        self._record(result, method_stats)
        return result

    def _record(self, result: SessionResult, method_stats: MethodStats | None = None) -> None:
        self.stats.record_tokens(result.prompt_tokens, result.completion_tokens, method_stats)
