# src/llm/adapters/anthropic_adapter.py — v3
"""Anthropic Claude adapter implementing BaseLLMClient.

Uses the official anthropic SDK. Streaming goes through
``messages.stream``; JSON-only answers are requested with an assistant
prefill of ``{``.
"""

from __future__ import annotations

import logging
import time
from typing import Any, AsyncIterator

from deeptime.llm.base_client import BaseLLMClient
from deeptime.llm.errors import InvalidCredentialError, normalize_provider_error
from deeptime.llm.models import LLMResponse, Message

logger = logging.getLogger(__name__)


class AnthropicAdapter(BaseLLMClient):
    """Adapter for Anthropic Claude models."""

    def __init__(
        self,
        model: str = "claude-sonnet-4-20250514",
        api_key: str = "",
        **kwargs: Any,
    ) -> None:
        if not api_key:
            raise InvalidCredentialError("Anthropic API key is not provided.")
        self._api_key = api_key
        self._model = model
        self.__client = None  # Lazy initialization

    @property
    def _client(self):
        """Lazy-init Anthropic client (only on first API call)."""
        if self.__client is None:
            try:
                import anthropic
            except ImportError as e:
                raise ImportError(
                    "anthropic package required: pip install anthropic"
                ) from e
            self.__client = anthropic.AsyncAnthropic(api_key=self._api_key)
        return self.__client

    async def complete(
        self,
        messages: list[Message],
        system: str | None = None,
        max_tokens: int = 8192,
        temperature: float = 0.2,
        json_output: bool = False,
    ) -> LLMResponse:
        """Text completion via Anthropic Messages API."""
        kwargs = self._build_kwargs(messages, system, max_tokens, temperature)
        if json_output:
            kwargs["messages"].append({"role": "assistant", "content": "{"})

        start = time.monotonic()
        try:
            response = await self._client.messages.create(**kwargs)
        except Exception as e:
            normalized = normalize_provider_error(e)
            if normalized is e:
                raise
            raise normalized from e
        latency_ms = int((time.monotonic() - start) * 1000)

        text = "".join(
            block.text for block in response.content if getattr(block, "type", "") == "text"
        )
        if json_output:
            text = "{" + text

        return LLMResponse(
            content=text,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
            model=response.model,
            provider="anthropic",
            latency_ms=latency_ms,
            raw_response=response,
        )

    async def stream(
        self,
        messages: list[Message],
        system: str | None = None,
        max_tokens: int = 8192,
        temperature: float = 0.2,
    ) -> AsyncIterator[str]:
        kwargs = self._build_kwargs(messages, system, max_tokens, temperature)
        try:
            async with self._client.messages.stream(**kwargs) as stream:
                async for text in stream.text_stream:
                    yield text
        except Exception as e:
            normalized = normalize_provider_error(e)
            if normalized is e:
                raise
            raise normalized from e

    @property
    def provider_name(self) -> str:
        return "anthropic"

    def _build_kwargs(
        self,
        messages: list[Message],
        system: str | None,
        max_tokens: int,
        temperature: float,
    ) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "model": self._model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": [
                {"role": m.role, "content": m.content}
                for m in messages
                if m.role != "system"
            ],
        }
        if system:
            kwargs["system"] = system
        return kwargs
