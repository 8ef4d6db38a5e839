"""
LLM provider abstraction with personal-data grounded prompting.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Protocol

import httpx

from lifelog_rag.config import settings
from lifelog_rag.errors import CompletionFailure
from lifelog_rag.models import Message

logger = logging.getLogger(__name__)


PERSONAL_DATA_SYSTEM_PROMPT = """You are a personal assistant that answers questions about the user's own life using their personal data (health metrics, places visited, voice notes, photos and diary entries).

RULES:
1. Answer using the "USER'S PERSONAL DATA" section below
2. If the data does not contain the answer, say so and ask the user for more information
3. NEVER invent events, numbers, places or dates
4. Items marked "📸 Photo:" are descriptions of photos, not the user's own words
5. For counting questions, count the matching items and state the number
6. Be concise, warm and conversational"""


class CompletionClient(Protocol):
    """Generates a reply from a conversation and a grounding context."""

    async def complete(self, messages: List[Message], context: str) -> str: ...


def build_system_prompt(context: str, system_prompt: str = None) -> str:
    """Attach the grounding context to the system instructions."""
    system = system_prompt or PERSONAL_DATA_SYSTEM_PROMPT
    return f"""{system}

---
USER'S PERSONAL DATA:
{context}
---"""


class BaseLLM(ABC):
    """Abstract base class for LLM providers."""

    name = "llm"

    @abstractmethod
    async def complete(self, messages: List[Message], context: str) -> str:
        """Generate a response for the conversation grounded in context."""

    @property
    def is_configured(self) -> bool:
        return True

    async def aclose(self):
        """Release network resources held by the provider."""


class OpenRouterLLM(BaseLLM):
    """OpenRouter chat-completions implementation."""

    name = "openrouter"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        url: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.OPENROUTER_API_KEY
        self.model = model or settings.OPENROUTER_MODEL
        self.url = url or settings.OPENROUTER_URL
        self.client = client or httpx.AsyncClient(timeout=settings.COMPLETION_TIMEOUT_SECONDS)

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def aclose(self):
        await self.client.aclose()

    def _build_payload(self, messages: List[Message], context: str) -> Dict[str, Any]:
        chat = [{"role": "system", "content": build_system_prompt(context)}]
        chat.extend({"role": m.role, "content": m.content} for m in messages)
        return {
            "model": self.model,
            "messages": chat,
            "temperature": settings.LLM_TEMPERATURE,
            "max_tokens": settings.LLM_MAX_TOKENS,
        }

    async def complete(self, messages: List[Message], context: str) -> str:
        if not self.api_key:
            raise CompletionFailure("OpenRouter API key not configured")

        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "X-Title": "Lifelog RAG",
        }

        try:
            response = await self.client.post(self.url, headers=headers, json=self._build_payload(messages, context))
            response.raise_for_status()
            data = response.json()
            content = data["choices"][0]["message"]["content"]
        except httpx.HTTPStatusError as e:
            raise CompletionFailure(
                f"OpenRouter returned {e.response.status_code}: {e.response.text[:200]}",
                upstream_status=e.response.status_code,
                cause=e,
            ) from e
        except httpx.HTTPError as e:
            raise CompletionFailure(f"OpenRouter transport error: {e}", cause=e) from e
        except (KeyError, IndexError, TypeError, ValueError) as e:
            raise CompletionFailure(f"OpenRouter returned an unexpected payload: {e}", cause=e) from e

        if not content:
            raise CompletionFailure("OpenRouter returned an empty completion")
        return content


class GeminiLLM(BaseLLM):
    """Google Gemini implementation."""

    name = "gemini"

    def __init__(self, api_key: Optional[str] = None, model_name: Optional[str] = None):
        import google.generativeai as genai

        self._genai = genai
        self.api_key = api_key if api_key is not None else settings.GEMINI_API_KEY
        self.model_name = model_name or settings.GEMINI_MODEL
        if self.api_key:
            genai.configure(api_key=self.api_key)

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    @staticmethod
    def _to_contents(messages: List[Message]) -> List[Dict[str, Any]]:
        # Gemini names the assistant role "model"
        return [
            {"role": "model" if m.role == "assistant" else "user", "parts": [m.content]}
            for m in messages
        ]

    async def complete(self, messages: List[Message], context: str) -> str:
        if not self.api_key:
            raise CompletionFailure("Gemini API key not configured")

        model = self._genai.GenerativeModel(
            self.model_name,
            system_instruction=build_system_prompt(context),
        )

        try:
            response = await model.generate_content_async(
                self._to_contents(messages),
                generation_config={
                    "temperature": settings.LLM_TEMPERATURE,
                    "max_output_tokens": settings.LLM_MAX_TOKENS,
                },
            )
            content = response.text
        except Exception as e:
            status = getattr(e, "code", None)
            raise CompletionFailure(
                f"Gemini error: {e}",
                upstream_status=status if isinstance(status, int) else None,
                cause=e,
            ) from e

        if not content:
            raise CompletionFailure("Gemini returned an empty completion")
        return content
