"""Data models for utgen."""

from utgen.models.coverage import (
    CoverageStatus,
    MethodCoverageInfo,
    Priority,
    classify_priority,
    counter_percentage,
)
from utgen.models.verification import VerificationResult, VerificationStep

__all__ = [
    "CoverageStatus",
    "MethodCoverageInfo",
    "Priority",
    "VerificationResult",
    "VerificationStep",
    "classify_priority",
    "counter_percentage",
]
