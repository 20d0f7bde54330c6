"""LLM connector for narrative and review text."""

from __future__ import annotations

import asyncio
from typing import Any

import httpx
import structlog

from riskmind.config.settings import LLMConfig
from riskmind.errors import NarrativeUnavailableError


class ChatCompletionClient:
    """Generate text through an OpenAI-compatible chat completions endpoint.

    Groq and OpenAI expose the same ``/chat/completions`` contract, so one
    client serves both providers. With provider ``local`` (or no API key) every
    call raises ``NarrativeUnavailableError`` and callers fall back to their
    templated text.
    """

    def __init__(
        self,
        config: LLMConfig,
        api_key: str,
        http: httpx.AsyncClient | None = None,
    ) -> None:
        self.config = config
        self.api_key = api_key
        self.http = http or httpx.AsyncClient(
            base_url=config.base_url, timeout=float(config.request_timeout_sec)
        )
        self._log = structlog.get_logger(__name__)

    @property
    def available(self) -> bool:
        return self.config.provider != "local" and bool(self.api_key)

    async def close(self) -> None:
        await self.http.aclose()

    async def complete(self, prompt: str, system: str | None = None) -> str:
        if not self.available:
            raise NarrativeUnavailableError(f"LLM provider '{self.config.provider}' unavailable")
        retries = max(0, self.config.retry_attempts)
        backoff = self.config.retry_backoff_sec
        last_error: Exception | None = None
        for attempt in range(retries + 1):
            try:
                return await asyncio.wait_for(
                    self._request(prompt, system),
                    timeout=self.config.request_timeout_sec,
                )
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                last_error = exc
                self._log.warning(
                    "llm_completion_failed",
                    provider=self.config.provider,
                    attempt=attempt + 1,
                    error=str(exc),
                )
                if attempt < retries:
                    await asyncio.sleep(backoff * (2**attempt))
        raise NarrativeUnavailableError(f"LLM completion failed: {last_error}")

    async def health_check(self) -> bool:
        try:
            await self.complete("ping")
        except NarrativeUnavailableError:
            return False
        return True

    async def _request(self, prompt: str, system: str | None) -> str:
        messages: list[dict[str, str]] = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})
        response = await self.http.post(
            "/chat/completions",
            headers={"Authorization": f"Bearer {self.api_key}"},
            json={
                "model": self.config.model,
                "messages": messages,
                "temperature": self.config.temperature,
                "max_tokens": self.config.max_tokens,
                "top_p": self.config.top_p,
            },
        )
        response.raise_for_status()
        return self._parse_response(response.json())

    @staticmethod
    def _parse_response(data: dict[str, Any]) -> str:
        choices = data.get("choices") or []
        if not choices:
            raise NarrativeUnavailableError("LLM response contained no choices")
        content = (choices[0].get("message") or {}).get("content") or ""
        if not content.strip():
            raise NarrativeUnavailableError("LLM response was empty")
        return content.strip()
