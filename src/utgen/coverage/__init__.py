"""Coverage report reading and per-method prioritization."""

from utgen.coverage.jacoco import JaCoCoReport, find_report, parse_jacoco_xml
from utgen.coverage.parser import (
    CoverageParser,
    CoverageSource,
    JaCoCoCoverageSource,
    ToolCoverageSource,
    is_tool_error,
)

__all__ = [
    "CoverageParser",
    "CoverageSource",
    "JaCoCoCoverageSource",
    "JaCoCoReport",
    "ToolCoverageSource",
    "find_report",
    "is_tool_error",
    "parse_jacoco_xml",
]
