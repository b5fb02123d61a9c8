# src/llm/base_client.py — v2
"""Abstract LLM client interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import AsyncIterator

from deeptime.llm.models import LLMResponse, Message


class BaseLLMClient(ABC):
    """Unified interface for all LLM providers.

    One client is bound to one API key; the worker builds a client per
    credential handed out by the rotator.
    """

    @abstractmethod
    async def complete(
        self,
        messages: list[Message],
        system: str | None = None,
        max_tokens: int = 8192,
        temperature: float = 0.2,
        json_output: bool = False,
    ) -> LLMResponse:
        """Text completion. ``json_output`` requests a JSON-only answer."""

    @abstractmethod
    def stream(
        self,
        messages: list[Message],
        system: str | None = None,
        max_tokens: int = 8192,
        temperature: float = 0.2,
    ) -> AsyncIterator[str]:
        """Streamed completion, yielding text deltas as they arrive."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Provider identifier (google, anthropic)."""
