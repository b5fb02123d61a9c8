# src/llm/adapters/google_adapter.py — v2
"""Google Gemini adapter implementing BaseLLMClient.

Uses google-generativeai SDK. Provider exceptions are translated into the
LLMError hierarchy (ResourceExhausted → RateLimitError, rejected key →
InvalidCredentialError).
"""

from __future__ import annotations

import time
from typing import Any, AsyncIterator

from deeptime.llm.base_client import BaseLLMClient
from deeptime.llm.errors import InvalidCredentialError, normalize_provider_error
from deeptime.llm.models import LLMResponse, Message


class GoogleAdapter(BaseLLMClient):
    """Google Gemini adapter."""

    def __init__(self, model: str = "gemini-2.5-flash", api_key: str = "", **kwargs: Any):
        if not api_key:
            raise InvalidCredentialError("Gemini API key is not provided.")
        self._model = model
        self._api_key = api_key

    def _generative_model(self, system: str | None) -> Any:
        import google.generativeai as genai

        genai.configure(api_key=self._api_key)
        return genai.GenerativeModel(self._model, system_instruction=system)

    async def complete(
        self,
        messages: list[Message],
        system: str | None = None,
        max_tokens: int = 8192,
        temperature: float = 0.2,
        json_output: bool = False,
    ) -> LLMResponse:
        model = self._generative_model(system)
        gen_config: dict[str, Any] = {
            "max_output_tokens": max_tokens,
            "temperature": temperature,
        }
        if json_output:
            gen_config["response_mime_type"] = "application/json"

        t0 = time.monotonic()
        try:
            resp = await model.generate_content_async(
                _to_contents(messages), generation_config=gen_config,
            )
        except Exception as e:
            normalized = normalize_provider_error(e)
            if normalized is e:
                raise
            raise normalized from e
        latency = int((time.monotonic() - t0) * 1000)

        usage = getattr(resp, "usage_metadata", None)
        return LLMResponse(
            content=resp.text or "",
            input_tokens=getattr(usage, "prompt_token_count", 0) if usage else 0,
            output_tokens=getattr(usage, "candidates_token_count", 0) if usage else 0,
            model=self._model,
            provider="google",
            latency_ms=latency,
            raw_response=resp,
        )

    async def stream(
        self,
        messages: list[Message],
        system: str | None = None,
        max_tokens: int = 8192,
        temperature: float = 0.2,
    ) -> AsyncIterator[str]:
        model = self._generative_model(system)
        try:
            resp = await model.generate_content_async(
                _to_contents(messages),
                generation_config={
                    "max_output_tokens": max_tokens,
                    "temperature": temperature,
                },
                stream=True,
            )
            async for chunk in resp:
                text = getattr(chunk, "text", "")
                if text:
                    yield text
        except Exception as e:
            normalized = normalize_provider_error(e)
            if normalized is e:
                raise
            raise normalized from e

    @property
    def provider_name(self) -> str:
        return "google"


def _to_contents(messages: list[Message]) -> list[dict[str, Any]]:
    """Convert messages to Gemini format."""
    contents = []
    for m in messages:
        role = "model" if m.role == "assistant" else "user"
        contents.append({"role": role, "parts": [{"text": m.content}]})
    return contents
