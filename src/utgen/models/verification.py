"""Verification step identifiers and the immutable result of a pipeline run."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class VerificationStep(Enum):
    """One stage of the verification pipeline, bound to the tool it invokes."""

    SYNTAX_CHECK = ("check_syntax", "Syntax check")
    LSP_CHECK = ("check_syntax_with_lsp", "Diagnostic check")
    COMPILE = ("compile_project", "Compile")
    TEST = ("execute_test", "Test execution")
    COVERAGE = ("get_single_method_coverage", "Coverage")

    def __init__(self, tool_name: str, label: str) -> None:
        self.tool_name = tool_name
        self.label = label


@dataclass(frozen=True)
class VerificationResult:
    """Outcome of one verification pipeline invocation."""

    success: bool
    """True when every executed step passed."""

    failed_step: VerificationStep | None = None
    """The step that failed, or None on success."""

    error_message: str = ""
    """Short description of the failure."""

    error_details: str = ""
    """Raw tool output for the failed step."""

    coverage: float = 0.0
    """Freshly measured line coverage of the target method."""

    coverage_threshold_met: bool = False
    """True when ``coverage`` reached the configured threshold."""

    @classmethod
    def passed(cls, coverage: float = 0.0, *, threshold_met: bool = False) -> VerificationResult:
        return cls(success=True, coverage=coverage, coverage_threshold_met=threshold_met)

    @classmethod
    def failure(
        cls, step: VerificationStep, message: str, details: str = ""
    ) -> VerificationResult:
        return cls(
            success=False,
            failed_step=step,
            error_message=message,
            error_details=details,
        )

    def summary(self) -> str:
        """One-line description for logs and reports."""
        if self.success:
            state = "met" if self.coverage_threshold_met else "below threshold"
            return f"verified, coverage {self.coverage:.1f}% ({state})"
        step = self.failed_step.label if self.failed_step else "unknown step"
        return f"{step} failed: {self.error_message}"
