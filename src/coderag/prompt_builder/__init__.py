"""Answer generation: prompt assembly and LLM clients."""

from .builder import build_answer_prompt, count_tokens
from .llm_client import (
    ChatCompletionsClient,
    GenerativeModel,
    LLMConfig,
    LLMResponse,
    OllamaClient,
    make_llm_client,
)

__all__ = [
    "build_answer_prompt",
    "count_tokens",
    "ChatCompletionsClient",
    "GenerativeModel",
    "LLMConfig",
    "LLMResponse",
    "OllamaClient",
    "make_llm_client",
]
