from __future__ import annotations

import asyncio

import httpx
import orjson
import pytest

from riskmind.config.settings import LLMConfig
from riskmind.connectors.llm import ChatCompletionClient
from riskmind.errors import NarrativeUnavailableError


def _client(handler, **config) -> ChatCompletionClient:
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="https://llm.test/v1")
    settings = LLMConfig(provider="groq", retry_backoff_sec=0.0, **config)
    return ChatCompletionClient(settings, "secret", http=http)


def test_complete_sends_chat_request_and_returns_content() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"choices": [{"message": {"content": " Exit now. "}}]})

    client = _client(handler)
    text = asyncio.run(client.complete("Why exit?", system="advisor"))

    assert text == "Exit now."
    request = seen[0]
    assert request.url.path == "/v1/chat/completions"
    assert request.headers["Authorization"] == "Bearer secret"
    body = orjson.loads(request.content)
    assert body["model"] == "llama-3.3-70b-versatile"
    assert body["messages"] == [
        {"role": "system", "content": "advisor"},
        {"role": "user", "content": "Why exit?"},
    ]


def test_complete_retries_then_raises() -> None:
    calls = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        return httpx.Response(503, json={"error": "overloaded"})

    client = _client(handler, retry_attempts=2)
    with pytest.raises(NarrativeUnavailableError):
        asyncio.run(client.complete("prompt"))
    assert calls == 3


def test_empty_choices_are_unavailable() -> None:
    client = _client(lambda request: httpx.Response(200, json={"choices": []}), retry_attempts=0)
    with pytest.raises(NarrativeUnavailableError):
        asyncio.run(client.complete("prompt"))


def test_local_provider_never_calls_backend() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("backend must not be called")

    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    client = ChatCompletionClient(LLMConfig(provider="local"), "", http=http)
    assert client.available is False
    with pytest.raises(NarrativeUnavailableError):
        asyncio.run(client.complete("prompt"))
    assert asyncio.run(client.health_check()) is False
