"""
LLM fallback chain with multiple providers.

The query engine calls this once per request; fallback between providers
happens here.
"""

import logging
from typing import List, Optional

from lifelog_rag.errors import CompletionFailure
from lifelog_rag.llm.models import BaseLLM, GeminiLLM, OpenRouterLLM
from lifelog_rag.config import settings
from lifelog_rag.models import Message

logger = logging.getLogger(__name__)


class LLMFallbackChain:
    """Completion client that tries each configured provider in order."""

    def __init__(self, providers: Optional[List[BaseLLM]] = None):
        self.providers: List[BaseLLM] = providers if providers is not None else self._default_providers()
        if not self.providers:
            logger.warning("⚠️ No LLM providers configured! Completions will fail.")

    @staticmethod
    def _default_providers() -> List[BaseLLM]:
        """Initialize available providers in priority order."""
        providers: List[BaseLLM] = []

        # Primary: Gemini
        if settings.GEMINI_API_KEY:
            providers.append(GeminiLLM())
            logger.info("✅ Gemini LLM initialized")

        # Secondary: OpenRouter
        if settings.OPENROUTER_API_KEY:
            providers.append(OpenRouterLLM())
            logger.info("✅ OpenRouter LLM initialized")

        return providers

    async def complete(self, messages: List[Message], context: str) -> str:
        """
        Generate a response, falling through providers on failure.

        Raises:
            CompletionFailure: no provider configured, or every provider
                failed; carries the last provider's upstream status.
        """
        if not self.providers:
            raise CompletionFailure("No LLM providers configured")

        last_error: Optional[CompletionFailure] = None

        for provider in self.providers:
            try:
                return await provider.complete(messages, context)
            except CompletionFailure as e:
                last_error = e
                logger.warning(f"⚠️ Provider {provider.name} failed: {e.message}")

        logger.error(f"❌ All LLM providers failed. Last error: {last_error.message}")
        raise CompletionFailure(
            f"All LLM providers failed: {last_error.message}",
            upstream_status=last_error.upstream_status,
            cause=last_error,
        )

    async def aclose(self):
        """Close every provider's client."""
        for provider in self.providers:
            await provider.aclose()


def get_llm() -> LLMFallbackChain:
    """Build a fallback chain from the configured providers."""
    return LLMFallbackChain()
