"""LLM integration layer for utgen."""

from utgen.llm.builtin import BuiltinLLM
from utgen.llm.engine import LLMEngine, LLMError, LLMResponse
from utgen.llm.factory import create_engine
from utgen.llm.session import AgentSession, SessionResult

__all__ = [
    "AgentSession",
    "BuiltinLLM",
    "LLMEngine",
    "LLMError",
    "LLMResponse",
    "SessionResult",
    "create_engine",
]
