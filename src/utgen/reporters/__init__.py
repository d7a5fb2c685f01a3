"""Reporters for utgen output."""

from utgen.reporters.terminal import CLIReporter, reporter

__all__ = ["CLIReporter", "reporter"]
