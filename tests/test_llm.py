"""Tests for completion providers and the fallback chain."""

import json
from typing import List

import httpx
import pytest

from lifelog_rag.errors import CompletionFailure
from lifelog_rag.llm import BaseLLM, LLMFallbackChain, OpenRouterLLM, build_system_prompt
from lifelog_rag.models import Message

MESSAGES = [
    Message(role="user", content="did I run on Monday?"),
    Message(role="assistant", content="Yes."),
    Message(role="user", content="how far?"),
]


class StubProvider(BaseLLM):
    def __init__(self, name: str, reply: str = None, error: CompletionFailure = None):
        self.name = name
        self.reply = reply
        self.error = error
        self.calls = 0

    async def complete(self, messages: List[Message], context: str) -> str:
        self.calls += 1
        if self.error:
            raise self.error
        return self.reply


def openrouter_with(handler) -> OpenRouterLLM:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return OpenRouterLLM(api_key="test-key", model="test/model", url="https://llm.test/chat", client=client)


# -- prompt --------------------------------------------------------------------


def test_system_prompt_embeds_context() -> None:
    prompt = build_system_prompt("[1] (90.0% relevant) ran 5km")
    assert "USER'S PERSONAL DATA:" in prompt
    assert prompt.index("NEVER invent") < prompt.index("[1] (90.0% relevant) ran 5km")


# -- OpenRouter ------------------------------------------------------------------


async def test_openrouter_sends_system_context_then_history() -> None:
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"choices": [{"message": {"content": "About 5km."}}]})

    reply = await openrouter_with(handler).complete(MESSAGES, "ran 5km")

    assert reply == "About 5km."
    assert seen["auth"] == "Bearer test-key"
    chat = seen["body"]["messages"]
    assert seen["body"]["model"] == "test/model"
    assert chat[0]["role"] == "system"
    assert "ran 5km" in chat[0]["content"]
    assert [(m["role"], m["content"]) for m in chat[1:]] == [
        ("user", "did I run on Monday?"),
        ("assistant", "Yes."),
        ("user", "how far?"),
    ]


async def test_openrouter_http_error_keeps_status() -> None:
    llm = openrouter_with(lambda request: httpx.Response(429, text="rate limited"))

    with pytest.raises(CompletionFailure) as exc_info:
        await llm.complete(MESSAGES, "ctx")

    assert exc_info.value.upstream_status == 429
    assert "rate limited" in exc_info.value.message


async def test_openrouter_malformed_payload() -> None:
    llm = openrouter_with(lambda request: httpx.Response(200, json={"unexpected": True}))
    with pytest.raises(CompletionFailure):
        await llm.complete(MESSAGES, "ctx")


async def test_openrouter_empty_content() -> None:
    llm = openrouter_with(lambda request: httpx.Response(200, json={"choices": [{"message": {"content": ""}}]}))
    with pytest.raises(CompletionFailure, match="empty"):
        await llm.complete(MESSAGES, "ctx")


async def test_openrouter_transport_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(CompletionFailure) as exc_info:
        await openrouter_with(handler).complete(MESSAGES, "ctx")
    assert exc_info.value.upstream_status is None


async def test_openrouter_without_key() -> None:
    llm = OpenRouterLLM(api_key="", client=httpx.AsyncClient())
    assert not llm.is_configured
    with pytest.raises(CompletionFailure, match="not configured"):
        await llm.complete(MESSAGES, "ctx")


# -- fallback chain --------------------------------------------------------------


async def test_fallback_uses_first_healthy_provider() -> None:
    primary = StubProvider("primary", error=CompletionFailure("down", upstream_status=503))
    secondary = StubProvider("secondary", reply="from secondary")
    chain = LLMFallbackChain(providers=[primary, secondary])

    assert await chain.complete(MESSAGES, "ctx") == "from secondary"
    assert primary.calls == 1
    assert secondary.calls == 1


async def test_fallback_stops_at_first_success() -> None:
    primary = StubProvider("primary", reply="from primary")
    secondary = StubProvider("secondary", reply="from secondary")

    assert await LLMFallbackChain(providers=[primary, secondary]).complete(MESSAGES, "ctx") == "from primary"
    assert secondary.calls == 0


async def test_fallback_all_failed_reports_last_status() -> None:
    chain = LLMFallbackChain(providers=[
        StubProvider("a", error=CompletionFailure("down", upstream_status=503)),
        StubProvider("b", error=CompletionFailure("bad request", upstream_status=400)),
    ])

    with pytest.raises(CompletionFailure) as exc_info:
        await chain.complete(MESSAGES, "ctx")

    assert exc_info.value.upstream_status == 400
    assert "bad request" in exc_info.value.message


async def test_fallback_without_providers() -> None:
    with pytest.raises(CompletionFailure, match="No LLM providers"):
        await LLMFallbackChain(providers=[]).complete(MESSAGES, "ctx")


# -- shutdown --------------------------------------------------------------------


async def test_openrouter_aclose_closes_client() -> None:
    client = httpx.AsyncClient()
    llm = OpenRouterLLM(api_key="test-key", client=client)

    await llm.aclose()

    assert client.is_closed


async def test_fallback_aclose_closes_every_provider() -> None:
    clients = [httpx.AsyncClient(), httpx.AsyncClient()]
    chain = LLMFallbackChain(providers=[
        OpenRouterLLM(api_key="a", client=clients[0]),
        StubProvider("stub", reply="ok"),
        OpenRouterLLM(api_key="b", client=clients[1]),
    ])

    await chain.aclose()

    assert all(c.is_closed for c in clients)
