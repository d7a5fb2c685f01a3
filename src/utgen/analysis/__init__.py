"""Source inspection helpers."""

from utgen.analysis.java_source import (
    JavaSource,
    SyntaxIssue,
    find_syntax_errors,
    parse_java,
    parse_java_file,
    scan_testable_methods,
)

__all__ = [
    "JavaSource",
    "SyntaxIssue",
    "find_syntax_errors",
    "parse_java",
    "parse_java_file",
    "scan_testable_methods",
]
