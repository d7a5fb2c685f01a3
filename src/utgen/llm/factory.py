"""Factory for creating an ``LLMEngine`` from configuration."""

from __future__ import annotations

from typing import TYPE_CHECKING

from utgen.llm.builtin import BuiltinLLM
from utgen.llm.engine import LLMEngine, LLMError

if TYPE_CHECKING:
    from utgen.config import LLMConfig

_OLLAMA_PREFIX = "ollama/"


def create_engine(config: LLMConfig) -> LLMEngine:
    """Instantiate a LiteLLM-backed engine from an ``LLMConfig``.

    Raises:
        LLMError: If no model is configured.
    """
    model = config.model
    if not model:
        raise LLMError(
            "No LLM model configured. Set 'llm.model' in .utgen.yml or UTGEN_LLM_MODEL."
        )
    if config.provider == "ollama" and not model.startswith(_OLLAMA_PREFIX):
        model = _OLLAMA_PREFIX + model

    return BuiltinLLM(
        model,
        provider=config.provider or None,
        api_key=config.api_key or None,
        base_url=config.base_url or None,
        timeout=config.timeout,
        max_retries=config.max_retries,
        requests_per_minute=config.requests_per_minute,
    )
