"""
LLM module with personal-data grounded generation.
"""

from lifelog_rag.llm.models import (
    BaseLLM,
    CompletionClient,
    OpenRouterLLM,
    GeminiLLM,
    PERSONAL_DATA_SYSTEM_PROMPT,
    build_system_prompt,
)
from lifelog_rag.llm.fallback import (
    LLMFallbackChain,
    get_llm,
)

__all__ = [
    "BaseLLM",
    "CompletionClient",
    "OpenRouterLLM",
    "GeminiLLM",
    "PERSONAL_DATA_SYSTEM_PROMPT",
    "build_system_prompt",
    "LLMFallbackChain",
    "get_llm",
]
