"""LLMEngine: abstract interface for tool-calling model generation."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


@dataclass
class ToolCall:
    """A function call requested by the model."""

    id: str
    """Provider-assigned call identifier, echoed back in the tool message."""

    name: str
    """Tool name."""

    arguments: dict[str, Any] = field(default_factory=dict)
    """Decoded JSON arguments (empty when the model sent invalid JSON)."""

    raw_arguments: str = ""
    """Arguments exactly as the model sent them."""


@dataclass
class LLMResponse:
    """Result from an LLM generation call."""

    text: str
    """The generated text content."""

    model: str
    """Model identifier that produced the response."""

    prompt_tokens: int = 0
    """Number of tokens in the prompt."""

    completion_tokens: int = 0
    """Number of tokens in the completion."""

    tool_calls: list[ToolCall] = field(default_factory=list)
    """Tool calls requested by the model; empty for a final answer."""

    @property
    def total_tokens(self) -> int:
        """Total tokens consumed (prompt + completion)."""
        return self.prompt_tokens + self.completion_tokens


@dataclass
class LLMMessage:
    """A single message in a conversation."""

    role: str
    """One of ``'system'``, ``'user'``, ``'assistant'`` or ``'tool'``."""

    content: str
    """Text content of the message."""

    tool_calls: list[ToolCall] = field(default_factory=list)
    """Calls made by an assistant message."""

    tool_call_id: str = ""
    """For ``'tool'`` messages: the call this message answers."""


@dataclass
class GenerationRequest:
    """Parameters for an LLM generation call."""

    messages: list[LLMMessage]
    """Conversation messages to send to the model."""

    model: str | None = None
    """Override the default model for this request."""

    temperature: float = 0.2
    """Sampling temperature (lower = more deterministic)."""

    max_tokens: int = 4096
    """Maximum tokens to generate."""

    tools: list[dict[str, Any]] = field(default_factory=list)
    """Function schemas the model may call."""

    extra: dict[str, object] = field(default_factory=dict)
    """Provider-specific extra parameters."""


class LLMEngine(ABC):
    """Abstract interface for LLM generation."""

    @abstractmethod
    async def generate(self, request: GenerationRequest) -> LLMResponse:
        """Send a generation request and return the response.

        Raises:
            LLMError: On any LLM-related failure (network, auth, rate limit, etc.).
        """

    async def generate_text(self, prompt: str, *, context: str = "") -> str:
        """Convenience method: send a simple prompt and return the text."""
        messages: list[LLMMessage] = []
        if context:
            messages.append(LLMMessage(role="system", content=context))
        messages.append(LLMMessage(role="user", content=prompt))
        response = await self.generate(GenerationRequest(messages=messages))
        return response.text

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Return the default model identifier for this engine."""


class LLMError(Exception):
    """Base exception for LLM-related errors."""


class LLMAuthError(LLMError):
    """Raised when authentication fails (invalid or missing API key)."""


class LLMRateLimitError(LLMError):
    """Raised when the provider rate limit is hit."""


class LLMConnectionError(LLMError):
    """Raised when the provider cannot be reached."""
