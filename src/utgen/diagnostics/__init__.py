"""Asynchronous diagnostics and the stabilization protocol used to read them."""

from utgen.diagnostics.source import (
    Diagnostic,
    DiagnosticCache,
    DiagnosticSeverity,
    DiagnosticSource,
    TreeSitterDiagnosticSource,
)
from utgen.diagnostics.stabilizer import DiagnosticReport, DiagnosticStabilizer, StabilizerTimings

__all__ = [
    "Diagnostic",
    "DiagnosticCache",
    "DiagnosticReport",
    "DiagnosticSeverity",
    "DiagnosticSource",
    "DiagnosticStabilizer",
    "StabilizerTimings",
    "TreeSitterDiagnosticSource",
]
