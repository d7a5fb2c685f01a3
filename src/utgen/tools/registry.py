"""Tool dispatch: named actions the model (and the pipeline) may invoke."""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Iterable

logger = logging.getLogger(__name__)

_LOG_PREVIEW = 200


class Capability(Enum):
    """Tool groups that can be granted to a model session."""

    FILE_SYSTEM = "file_system"
    CODE_ANALYZER = "code_analyzer"
    METHOD_ITERATOR = "method_iterator"
    COVERAGE = "coverage"
    BUILD = "build"
    SYNTAX_CHECKER = "syntax_checker"
    LSP_CHECKER = "lsp_checker"
    TEST_REPORT = "test_report"


ALL_CAPABILITIES: frozenset[Capability] = frozenset(Capability)


@dataclass
class ToolParameter:
    """One argument of a tool, described as JSON schema."""

    name: str
    description: str
    type: str = "string"
    required: bool = True


@dataclass
class ToolSpec:
    """A registered tool."""

    name: str
    description: str
    capability: Capability
    handler: Callable[..., Awaitable[str] | str]
    parameters: list[ToolParameter] = field(default_factory=list)

    def to_schema(self) -> dict[str, Any]:
        """OpenAI-style function schema (accepted by LiteLLM for every provider)."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": {
                    "type": "object",
                    "properties": {
                        p.name: {"type": p.type, "description": p.description}
                        for p in self.parameters
                    },
                    "required": [p.name for p in self.parameters if p.required],
                },
            },
        }


def truncate(text: str | None, limit: int = _LOG_PREVIEW) -> str:
    if text is None:
        return "<none>"
    return text if len(text) <= limit else text[:limit] + "..."


class ToolRegistry:
    """Holds every tool; sessions see the subset matching their capabilities.

    ``invoke`` never raises: failures come back as strings starting with
    ``ERROR`` so they can be handed to the model verbatim.
    """

    def __init__(self) -> None:
        self._tools: dict[str, ToolSpec] = {}

    def register(
        self,
        name: str,
        description: str,
        capability: Capability,
        handler: Callable[..., Awaitable[str] | str],
        parameters: Iterable[ToolParameter] = (),
    ) -> None:
        if name in self._tools:
            logger.debug("Replacing tool registration: %s", name)
        self._tools[name] = ToolSpec(
            name=name,
            description=description,
            capability=capability,
            handler=handler,
            parameters=list(parameters),
        )

    def get(self, name: str) -> ToolSpec | None:
        return self._tools.get(name)

    @property
    def names(self) -> list[str]:
        return sorted(self._tools)

    def tools_for(self, capabilities: Iterable[Capability]) -> list[ToolSpec]:
        allowed = set(capabilities)
        return [spec for spec in self._tools.values() if spec.capability in allowed]

    def schemas(self, capabilities: Iterable[Capability]) -> list[dict[str, Any]]:
        return [spec.to_schema() for spec in self.tools_for(capabilities)]

    async def invoke(
        self,
        name: str,
        args: dict[str, Any] | None = None,
        *,
        capabilities: Iterable[Capability] | None = None,
    ) -> str:
        """Run tool *name* with *args* and return its string result."""
        spec = self._tools.get(name)
        if spec is None:
            return f"ERROR: Unknown tool '{name}'"
        if capabilities is not None and spec.capability not in set(capabilities):
            return f"ERROR: Tool '{name}' is not available in the current phase"

        args = dict(args or {})
        for param in spec.parameters:
            if param.required and param.name not in args:
                return f"ERROR: Missing required parameter '{param.name}' for tool '{name}'"
        known = {p.name for p in spec.parameters}
        unknown = [k for k in args if k not in known]
        for key in unknown:
            args.pop(key)
        if unknown:
            logger.debug("Dropped unknown arguments for %s: %s", name, unknown)

        logger.debug("Tool input - %s: %s", name, truncate(repr(args)))
        try:
            result = spec.handler(**args)
            if inspect.isawaitable(result):
                result = await result
        except Exception as exc:
            logger.warning("Tool %s failed: %s", name, exc)
            return f"ERROR: {name} failed: {exc}"

        text = "" if result is None else str(result)
        logger.debug("Tool output - %s: %s", name, truncate(text))
        return text
