"""Per-method coverage records and the priority rules derived from them."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

DEFAULT_THRESHOLD = 80.0

_FULL = 100.0

_GENERIC_ARGS_RE = re.compile(r"<[^<>]*>")


class Priority(Enum):
    """Testing priority for a method, derived from its line coverage."""

    P0 = "P0"
    """No line covered at all."""

    P1 = "P1"
    """Partially covered, below the threshold."""

    P2 = "P2"
    """Already at or above the threshold."""


class CoverageStatus(Enum):
    """Rendered coverage state of a method (one glyph per state)."""

    FULL = "✓"
    PARTIAL = "◐"
    NONE = "✗"

    @classmethod
    def from_glyph(cls, glyph: str) -> CoverageStatus:
        """Return the status for a rendered glyph."""
        return cls(glyph)

    @classmethod
    def for_percentages(cls, line: float, branch: float) -> CoverageStatus:
        """Pick the glyph for a method's line and branch percentages."""
        if line >= _FULL and branch >= _FULL:
            return cls.FULL
        if line > 0:
            return cls.PARTIAL
        return cls.NONE


def counter_percentage(missed: int, covered: int) -> float:
    """Return ``covered / (covered + missed)`` as a percentage.

    A counter with nothing to cover is reported as fully covered (100.0),
    which keeps methods without coverable lines at the back of the queue.
    """
    total = missed + covered
    if total <= 0:
        return _FULL
    return (covered / total) * 100.0


def classify_priority(line_coverage: float, threshold: float = DEFAULT_THRESHOLD) -> Priority:
    """Classify a method by its line coverage against *threshold*."""
    if line_coverage <= 0:
        return Priority.P0
    if line_coverage < threshold:
        return Priority.P1
    return Priority.P2


@dataclass(frozen=True)
class MethodCoverageInfo:
    """Coverage snapshot for a single method, taken once per run."""

    name: str
    """Method name (``"constructor"`` for ``<init>``)."""

    priority: Priority
    """Testing priority derived from line coverage."""

    line_coverage: float = 0.0
    """Line coverage percentage (0-100)."""

    branch_coverage: float = 0.0
    """Branch coverage percentage (0-100)."""

    signature: str = ""
    """Rendered signature, e.g. ``calc(int, int)``; empty when unknown."""

    @property
    def overall_coverage(self) -> float:
        """Mean of line and branch coverage."""
        return (self.line_coverage + self.branch_coverage) / 2

    @property
    def status(self) -> CoverageStatus:
        """Rendered coverage state for this method."""
        return CoverageStatus.for_percentages(self.line_coverage, self.branch_coverage)

    @classmethod
    def from_percentages(
        cls,
        name: str,
        line_coverage: float,
        branch_coverage: float,
        *,
        threshold: float = DEFAULT_THRESHOLD,
        signature: str = "",
    ) -> MethodCoverageInfo:
        """Build a record, deriving priority from *line_coverage*.

        Both the structured report path and the rendered-text path go through
        here so that they produce identical records.
        """
        line = round(max(0.0, min(_FULL, line_coverage)), 1)
        branch = round(max(0.0, min(_FULL, branch_coverage)), 1)
        return cls(
            name=name,
            priority=classify_priority(line, threshold),
            line_coverage=line,
            branch_coverage=branch,
            signature=signature or f"{name}()",
        )

    @classmethod
    def uncovered(cls, name: str, *, signature: str = "") -> MethodCoverageInfo:
        """Record for a method discovered without any coverage data."""
        return cls(name=name, priority=Priority.P0, signature=signature or f"{name}()")

    def render(self) -> str:
        """Render as a summary line understood by the text coverage path."""
        return (
            f"{self.status.value} {self.signature} "
            f"Line: {self.line_coverage:.1f}% Branch: {self.branch_coverage:.1f}%"
        )


def normalize_signature(signature: str) -> str:
    """Comparable form of a rendered signature.

    Whitespace, generic arguments and package qualifiers are dropped and
    varargs become arrays, so the source signature ``sum(List<Integer>...)``
    and the report signature ``sum(List[])`` compare equal.
    """
    text = "".join(signature.split()).replace("...", "[]")
    while (stripped := _GENERIC_ARGS_RE.sub("", text)) != text:
        text = stripped
    name, _, params = text.partition("(")
    types = [p.rsplit(".", maxsplit=1)[-1] for p in params.rstrip(")").split(",") if p]
    return f"{name}({','.join(types)})"


def select_methods(methods: list[MethodCoverageInfo], method: str) -> list[MethodCoverageInfo]:
    """Records matching *method*, given as a bare name or as a signature.

    A bare name selects every overload. A signature selects its overload, and
    falls back to the name when only one method carries it.
    """
    name = method.split("(", maxsplit=1)[0].strip()
    named = [m for m in methods if m.name == name]
    if "(" not in method or len(named) <= 1:
        return named
    wanted = normalize_signature(method)
    return [m for m in named if normalize_signature(m.signature) == wanted]
