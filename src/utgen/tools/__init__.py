"""Tools exposed to model sessions, grouped by capability."""

from utgen.tools.compile_guard import CompileGuard
from utgen.tools.registry import ALL_CAPABILITIES, Capability, ToolRegistry

__all__ = ["ALL_CAPABILITIES", "Capability", "CompileGuard", "ToolRegistry"]
