"""LiteLLM adapter: chat completions with tool calling for agent sessions.

Requests are spaced to honour ``llm.requests_per_minute``. Rate limits,
dropped connections and 5xx responses are retried up to ``llm.max_retries``
times with doubling delays; everything else surfaces as an ``LLMError``.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import Any

import litellm
from litellm.exceptions import (
    APIConnectionError,
    APIError,
    AuthenticationError,
    BadRequestError,
    InternalServerError,
    RateLimitError,
    ServiceUnavailableError,
    Timeout,
)

from utgen.llm.engine import (
    GenerationRequest,
    LLMAuthError,
    LLMConnectionError,
    LLMEngine,
    LLMError,
    LLMMessage,
    LLMRateLimitError,
    LLMResponse,
    ToolCall,
)

logger = logging.getLogger(__name__)

litellm.suppress_debug_info = True

DEFAULT_RETRY_DELAY = 1.0
MAX_RETRY_DELAY = 30.0

_SERVER_ERROR = 500
_TRANSIENT_HINTS = ("timeout", "timed out", "overloaded")

def _message_to_dict(message: LLMMessage) -> dict[str, Any]:
    """Convert a message to the OpenAI chat format LiteLLM expects."""
    payload: dict[str, Any] = {"role": message.role, "content": message.content}
    if message.tool_calls:
        payload["tool_calls"] = [
            {
                "id": call.id,
                "type": "function",
                "function": {
                    "name": call.name,
                    "arguments": call.raw_arguments or json.dumps(call.arguments),
                },
            }
            for call in message.tool_calls
        ]
    if message.role == "tool":
        payload["tool_call_id"] = message.tool_call_id
    return payload


def _decode_arguments(raw: str | None) -> dict[str, Any]:
    if not raw:
        return {}
    try:
        decoded = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("Model sent invalid JSON tool arguments: %s", raw[:200])
        return {}
    return decoded if isinstance(decoded, dict) else {}


def _is_transient(exc: Exception) -> bool:
    if isinstance(exc, BadRequestError):
        return False
    if isinstance(
        exc,
        (RateLimitError, APIConnectionError, Timeout, InternalServerError, ServiceUnavailableError),
    ):
        return True
    status = getattr(exc, "status_code", None)
    if isinstance(status, int) and status >= _SERVER_ERROR:
        return True
    message = str(exc).lower()
    return any(hint in message for hint in _TRANSIENT_HINTS)


def _as_llm_error(exc: Exception) -> LLMError:
    if isinstance(exc, AuthenticationError):
        return LLMAuthError(str(exc))
    if isinstance(exc, RateLimitError):
        return LLMRateLimitError(str(exc))
    if isinstance(exc, APIConnectionError):
        return LLMConnectionError(str(exc))
    return LLMError(str(exc))


class BuiltinLLM(LLMEngine):
    """LiteLLM-backed engine supporting OpenAI, Anthropic, Ollama, and more.

    Any provider LiteLLM supports can be configured through a single
    ``model`` string (e.g. ``"gpt-4o"``, ``"ollama/qwen2.5-coder"``).
    """

    def __init__(  # noqa: PLR0913
        self,
        model: str,
        *,
        provider: str | None = None,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        max_retries: int = 3,
        requests_per_minute: int = 60,
        retry_delay: float = DEFAULT_RETRY_DELAY,
    ) -> None:
        self._model = model
        self._provider = provider
        self._api_key = api_key
        self._base_url = base_url
        self._timeout = timeout
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self._interval = 60.0 / requests_per_minute if requests_per_minute > 0 else 0.0
        self._next_slot = 0.0
        self._slot_lock = asyncio.Lock()

    @property
    def model_name(self) -> str:
        return self._model

    async def generate(self, request: GenerationRequest) -> LLMResponse:
        model = request.model or self._model
        kwargs: dict[str, Any] = {
            "model": model,
            "messages": [_message_to_dict(m) for m in request.messages],
            "temperature": request.temperature,
            "max_tokens": request.max_tokens,
        }
        if request.tools:
            kwargs["tools"] = request.tools
            kwargs["tool_choice"] = "auto"
        if self._api_key:
            kwargs["api_key"] = self._api_key
        if self._base_url:
            kwargs["api_base"] = self._base_url
        if self._timeout:
            kwargs["timeout"] = self._timeout
        kwargs.update(request.extra)

        raw = await self._complete(kwargs)
        return self._parse_response(raw, model)

    # ── Pacing and retries ───────────────────────────────────────

    def backoff_delay(self, attempt: int) -> float:
        """Delay before retry *attempt* (0-based): doubling, capped."""
        return min(self.retry_delay * 2**attempt, MAX_RETRY_DELAY)

    async def _wait_for_slot(self) -> None:
        """Keep consecutive requests at least ``60 / requests_per_minute`` seconds apart."""
        async with self._slot_lock:
            now = time.monotonic()
            if self._next_slot > now:
                await asyncio.sleep(self._next_slot - now)
            self._next_slot = max(now, self._next_slot) + self._interval

    async def _complete(self, kwargs: dict[str, Any]) -> Any:
        attempt = 0
        while True:
            await self._wait_for_slot()
            try:
                return await litellm.acompletion(**kwargs)
            except (
                AuthenticationError,
                RateLimitError,
                APIConnectionError,
                APIError,
                Timeout,
                InternalServerError,
                ServiceUnavailableError,
                BadRequestError,
            ) as exc:
                if attempt >= self.max_retries or not _is_transient(exc):
                    raise _as_llm_error(exc) from exc
                delay = self.backoff_delay(attempt)
                attempt += 1
                logger.warning(
                    "%s from %s (attempt %d/%d), retrying in %.1fs",
                    type(exc).__name__,
                    kwargs["model"],
                    attempt,
                    self.max_retries + 1,
                    delay,
                )
                await asyncio.sleep(delay)
            except Exception as exc:
                raise LLMError(f"{type(exc).__name__}: {exc}") from exc

    @staticmethod
    def _parse_response(raw: Any, model: str) -> LLMResponse:
        """Extract an ``LLMResponse`` from a LiteLLM completion result."""
        choice = raw.choices[0]
        usage = raw.usage
        calls = [
            ToolCall(
                id=call.id,
                name=call.function.name,
                arguments=_decode_arguments(call.function.arguments),
                raw_arguments=call.function.arguments or "",
            )
            for call in (getattr(choice.message, "tool_calls", None) or [])
        ]

        return LLMResponse(
            text=choice.message.content or "",
            model=raw.model or model,
            prompt_tokens=usage.prompt_tokens if usage else 0,
            completion_tokens=usage.completion_tokens if usage else 0,
            tool_calls=calls,
        )
