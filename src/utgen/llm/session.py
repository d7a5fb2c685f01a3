"""Tool-calling conversation loop bound to one capability set."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

from utgen.llm.engine import GenerationRequest, LLMError, LLMMessage
from utgen.tools.registry import truncate

if TYPE_CHECKING:
    from collections.abc import Iterable

    from utgen.llm.engine import LLMEngine, LLMResponse
    from utgen.tools.registry import Capability, ToolRegistry

logger = logging.getLogger(__name__)

DEFAULT_MAX_ITERATIONS = 30
DEFAULT_TIMEOUT = 600.0

_MAX_TOOL_RESULT_CHARS = 12_000


@dataclass
class SessionResult:
    """Outcome of one :meth:`AgentSession.run` call."""

    success: bool
    """True when the model produced a final, non-empty answer."""

    error_message: str = ""
    """Why the run failed."""

    content: str = ""
    """The model's last text content."""

    prompt_tokens: int = 0
    completion_tokens: int = 0

    iterations: int = 0
    """Model calls made during this run."""

    tool_calls: int = 0
    """Tool invocations made during this run."""


class AgentSession:
    """Conversation with a model that may call the tools its capabilities allow.

    Each :meth:`run` appends a user message and loops model call → tool calls
    → tool results until the model answers without calling a tool. The
    conversation persists across runs and is trimmed to ``max_messages``
    (the system prompt and first user message are always kept).
    """

    def __init__(  # noqa: PLR0913
        self,
        engine: LLMEngine,
        registry: ToolRegistry,
        system_prompt: str,
        capabilities: Iterable[Capability],
        *,
        max_messages: int = 20,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
        timeout: float = DEFAULT_TIMEOUT,
        temperature: float = 0.2,
        max_tokens: int = 4096,
    ) -> None:
        self.engine = engine
        self.registry = registry
        self.capabilities = frozenset(capabilities)
        self.max_messages = max_messages
        self.max_iterations = max_iterations
        self.timeout = timeout
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.messages: list[LLMMessage] = [LLMMessage(role="system", content=system_prompt)]

    async def run(self, prompt: str) -> SessionResult:
        self.messages.append(LLMMessage(role="user", content=prompt))
        self._trim()
        result = SessionResult(success=False)
        started = time.monotonic()
        try:
            await asyncio.wait_for(self._loop(result), timeout=self.timeout)
        except TimeoutError:
            logger.warning("Model session timed out after %.0fs", self.timeout)
            result.success = False
            result.error_message = f"Session timed out after {self.timeout:.0f}s"
        except LLMError as exc:
            logger.warning("Model session failed: %s", exc)
            result.success = False
            result.error_message = str(exc)

        logger.info(
            "Session finished in %.1fs: %d iteration(s), %d tool call(s), success=%s",
            time.monotonic() - started,
            result.iterations,
            result.tool_calls,
            result.success,
        )
        return result

    async def _loop(self, result: SessionResult) -> None:
        tools = self.registry.schemas(self.capabilities)
        while result.iterations < self.max_iterations:
            result.iterations += 1
            response = await self.engine.generate(
                GenerationRequest(
                    messages=list(self.messages),
                    temperature=self.temperature,
                    max_tokens=self.max_tokens,
                    tools=tools,
                )
            )
            result.prompt_tokens += response.prompt_tokens
            result.completion_tokens += response.completion_tokens
            result.content = response.text
            self.messages.append(
                LLMMessage(
                    role="assistant", content=response.text, tool_calls=response.tool_calls
                )
            )

            if not response.tool_calls:
                if response.text.strip():
                    result.success = True
                else:
                    result.error_message = "Model returned an empty response"
                return

            await self._execute_tools(response, result)
            self._trim()

        result.error_message = f"Max iterations reached: {self.max_iterations}"

    async def _execute_tools(self, response: LLMResponse, result: SessionResult) -> None:
        for call in response.tool_calls:
            result.tool_calls += 1
            logger.info("Executing tool: %s", call.name)
            output = await self.registry.invoke(
                call.name, call.arguments, capabilities=self.capabilities
            )
            if len(output) > _MAX_TOOL_RESULT_CHARS:
                output = output[:_MAX_TOOL_RESULT_CHARS] + "\n[truncated]"
            logger.debug("Tool result - %s: %s", call.name, truncate(output))
            self.messages.append(LLMMessage(role="tool", content=output, tool_call_id=call.id))

    def _trim(self) -> None:
        """Drop the oldest turns after the first user message.

        Tool results are dropped together with the assistant message that
        requested them, and the latest assistant turn is never dropped.
        """
        first_user = next(
            (i for i, m in enumerate(self.messages) if m.role == "user"), len(self.messages)
        )
        last_assistant = max(
            (i for i, m in enumerate(self.messages) if m.role == "assistant"), default=-1
        )
        start = first_user + 1
        while len(self.messages) > self.max_messages and start < last_assistant:
            removed = self.messages.pop(start)
            last_assistant -= 1
            while start < last_assistant and self.messages[start].role == "tool":
                self.messages.pop(start)
                last_assistant -= 1
            logger.debug("Trimmed %s message from session history", removed.role)
