# tests/conftest.py — v2
"""Shared test fixtures for all unit and integration tests.

Provides a scripted LLM client, a sample schema, sample extraction
results and a logging reset. No network access — all LLM I/O is faked.
"""

from __future__ import annotations

import logging
from typing import AsyncIterator

import pytest

from deeptime.core.models import Entity, ExtractionResult, SchemaSuggestion, Triple
from deeptime.llm.base_client import BaseLLMClient
from deeptime.llm.models import LLMResponse, Message
from deeptime.logging.context import clear_context


class FakeLLMClient(BaseLLMClient):
    """Scripted client: pops one completion or one stream per call.

    Args:
        completions: Contents returned by successive ``complete`` calls.
        streams: Chunk lists yielded by successive ``stream`` calls.
        error: Raised by every call instead of answering.
    """

    def __init__(
        self,
        completions: list[str] | None = None,
        streams: list[list[str]] | None = None,
        error: Exception | None = None,
    ) -> None:
        self.completions = list(completions or [])
        self.streams = list(streams or [])
        self.error = error
        self.prompts: list[str] = []
        self.json_flags: list[bool] = []

    async def complete(
        self,
        messages: list[Message],
        system: str | None = None,
        max_tokens: int = 8192,
        temperature: float = 0.2,
        json_output: bool = False,
    ) -> LLMResponse:
        self.prompts.append(messages[-1].content)
        self.json_flags.append(json_output)
        if self.error is not None:
            raise self.error
        return LLMResponse(content=self.completions.pop(0), model="fake", provider="fake")

    async def stream(
        self,
        messages: list[Message],
        system: str | None = None,
        max_tokens: int = 8192,
        temperature: float = 0.2,
    ) -> AsyncIterator[str]:
        self.prompts.append(messages[-1].content)
        if self.error is not None:
            raise self.error
        for chunk in self.streams.pop(0):
            yield chunk

    @property
    def provider_name(self) -> str:
        return "fake"


# === FIXTURES: Logging ===


@pytest.fixture(autouse=True)
def _reset_logging():
    """Undo setup_logging() so caplog keeps seeing package records."""
    yield
    root = logging.getLogger("deeptime")
    root.handlers.clear()
    root.propagate = True
    root.setLevel(logging.NOTSET)
    clear_context()


# === FIXTURES: Sample data ===


@pytest.fixture
def sample_schema() -> dict:
    """Small two-axis schema with two predicate categories."""
    return {
        "observableAxis": {
            "Lithology": {"concepts": ["Sandstone", "Mudstone"]},
            "Fossil": {"concepts": ["Foraminifera"]},
        },
        "interpretiveAxis": {
            "Environment": {"concepts": [{"Marine": ["Shelf", "Slope"]}]},
        },
        "predicates": {
            "predicateCategories": {
                "Spatial": ["overlies", "contains"],
                "Temporal": ["predates"],
            },
        },
    }


@pytest.fixture
def sample_result() -> ExtractionResult:
    return ExtractionResult(
        entities=[
            Entity(name="Lingshui Formation", type="Formation"),
            Entity(name="sandstone", type="Lithology"),
        ],
        triples=[
            Triple(
                subject="Lingshui Formation",
                predicate="contains",
                object="sandstone",
                evidence_text="The Lingshui Formation contains sandstone.",
            ),
        ],
        suggestions=[
            SchemaSuggestion(type="entity", name="Turbidite", justification="frequent"),
        ],
    )


@pytest.fixture
def fake_client_factory():
    """Build a FakeLLMClient; extra kwargs are forwarded."""
    return FakeLLMClient
