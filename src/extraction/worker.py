# src/extraction/worker.py — v1
"""Per-document extraction worker run by the TaskScheduler.

Staged mode (three streamed calls):
  1. entities + newEntitySuggestion objects
  2. triples over the extracted entity list
  3. predicate suggestions
Turbo mode: one JSON call returning {"entities": [...], "triples": [...]}.

An optional structure stage runs first and narrows the text to the
selected chunks. The cancellation token is checked before every network
call and between stream chunks; provider errors surface as LLMError
subclasses so the DegradationController can classify them.
"""

from __future__ import annotations

import json
import logging
import re
from typing import TYPE_CHECKING, Any, AsyncIterator, Callable

from pydantic import ValidationError

from deeptime.core.models import (
    DocumentChunk,
    Entity,
    ExtractionMode,
    ExtractionResult,
    SchemaSuggestion,
    Triple,
)
from deeptime.extraction import prompts
from deeptime.llm.base_client import BaseLLMClient
from deeptime.llm.client_factory import create_llm_client
from deeptime.llm.errors import LLMError, MalformedResponseError, normalize_provider_error
from deeptime.llm.models import Message
from deeptime.logging.context import set_stage
from deeptime.orchestrator.batch import task_text
from deeptime.orchestrator.cancellation import CancellationToken, OperationCancelled
from deeptime.streaming.object_extractor import StreamRecord, extract_stream

if TYPE_CHECKING:
    from deeptime.config.settings import Settings
    from deeptime.orchestrator.models import Task

logger = logging.getLogger(__name__)

ClientFactory = Callable[[str], BaseLLMClient]

_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)

# Chunk kinds fed to entity/triple extraction after the structure stage
_EXTRACTED_KINDS = frozenset({"body", "caption", "table", "methods"})


class ExtractionWorker:
    """Callable ``(task, credential, token) -> ExtractionResult``.

    Args:
        client_factory: Builds a client bound to one credential.
        schema: Active schema snapshot (dict) shared by every task.
        mode: "staged" or "turbo".
        structure_enabled: Run the structure stage before extraction.
        structure_max_chars: Text prefix sent to the structure stage.
        temperature: Sampling temperature for every call.
        max_tokens: Output budget for every call.
    """

    def __init__(
        self,
        client_factory: ClientFactory,
        schema: Any = None,
        mode: ExtractionMode = "staged",
        structure_enabled: bool = False,
        structure_max_chars: int = 30_000,
        temperature: float = 0.2,
        max_tokens: int = 8192,
    ) -> None:
        self._client_factory = client_factory
        self.schema = schema
        self.mode = mode
        self.structure_enabled = structure_enabled
        self.structure_max_chars = structure_max_chars
        self.temperature = temperature
        self.max_tokens = max_tokens

    @classmethod
    def from_settings(cls, settings: Settings, schema: Any = None) -> ExtractionWorker:
        def factory(credential: str) -> BaseLLMClient:
            return create_llm_client(
                settings.llm_provider, model=settings.llm_model, api_key=credential,
            )

        return cls(
            client_factory=factory,
            schema=schema,
            mode=settings.extraction_mode,
            structure_enabled=settings.structure_enabled,
            structure_max_chars=settings.structure_max_chars,
            temperature=settings.llm_temperature,
            max_tokens=settings.llm_max_tokens,
        )

    async def __call__(
        self, task: Task, credential: str, token: CancellationToken,
    ) -> ExtractionResult:
        client = self._client_factory(credential)
        text = task_text(task)
        chunks: list[DocumentChunk] = []

        try:
            if self.structure_enabled:
                set_stage("structure")
                chunks = await self._structure(client, text, token)
                selected = [c.content for c in chunks if c.selected and c.content]
                if selected:
                    text = "\n\n".join(selected)

            if self.mode == "turbo":
                set_stage("turbo")
                result = await self._turbo(client, text, token)
            else:
                result = await self._staged(client, text, token)
        except (LLMError, OperationCancelled):
            raise
        except Exception as e:
            normalized = normalize_provider_error(e)
            if normalized is e:
                raise
            raise normalized from e
        finally:
            set_stage(None)

        for triple in result.triples:
            triple.source = task.name
        result.chunks = chunks
        logger.info(
            "Extracted %d entities, %d triples, %d suggestions from %s",
            len(result.entities), len(result.triples), len(result.suggestions), task.name,
        )
        return result

    # --- Stages ---

    async def _structure(
        self, client: BaseLLMClient, text: str, token: CancellationToken,
    ) -> list[DocumentChunk]:
        source = text[: self.structure_max_chars]
        data = await self._complete_json(client, prompts.structure_prompt(source), token)
        raw_chunks = data.get("chunks") if isinstance(data, dict) else None
        if not isinstance(raw_chunks, list):
            raise MalformedResponseError("Structure response has no 'chunks' list")

        chunks: list[DocumentChunk] = []
        for raw in raw_chunks:
            try:
                chunk = DocumentChunk.model_validate(raw)
            except ValidationError as e:
                logger.warning("Dropping invalid structure chunk: %s", e)
                continue
            start = max(0, min(chunk.start, len(source)))
            end = max(start, min(chunk.end, len(source)))
            chunk.start, chunk.end = start, end
            chunk.content = source[start:end]
            chunk.selected = chunk.kind in _EXTRACTED_KINDS
            chunks.append(chunk)
        logger.debug("Structure stage produced %d chunks", len(chunks))
        return chunks

    async def _turbo(
        self, client: BaseLLMClient, text: str, token: CancellationToken,
    ) -> ExtractionResult:
        data = await self._complete_json(client, prompts.turbo_prompt(text, self.schema), token)
        if (
            not isinstance(data, dict)
            or not isinstance(data.get("entities"), list)
            or not isinstance(data.get("triples"), list)
        ):
            raise MalformedResponseError("Invalid JSON structure received from model.")

        entities = [e for e in (_as_entity(item) for item in data["entities"]) if e]
        triples: list[Triple] = []
        for item in data["triples"]:
            try:
                triples.append(Triple.model_validate(item))
            except ValidationError as e:
                logger.warning("Dropping invalid triple: %s", e)
        return ExtractionResult(entities=entities, triples=triples)

    async def _staged(
        self, client: BaseLLMClient, text: str, token: CancellationToken,
    ) -> ExtractionResult:
        entities: list[Entity] = []
        suggestions: list[SchemaSuggestion] = []
        triples: list[Triple] = []

        set_stage("entities")
        async for record in self._stream(
            client, prompts.entity_prompt(text, self.schema), token,
            accept=("entity", "suggestion"),
        ):
            if record.kind == "entity":
                entities.append(record.value)
            else:
                suggestions.append(record.value)

        names = _unique_names(entities)
        if not names:
            logger.info("No entities found; skipping relationship stages")
            return ExtractionResult(entities=entities, suggestions=suggestions)

        set_stage("triples")
        async for record in self._stream(
            client, prompts.relationship_prompt(text, self.schema, names), token,
            accept=("triple",),
        ):
            triples.append(record.value)

        set_stage("predicates")
        async for record in self._stream(
            client, prompts.predicate_suggestion_prompt(text, self.schema, names), token,
            accept=("suggestion",),
        ):
            suggestions.append(record.value)

        return ExtractionResult(entities=entities, triples=triples, suggestions=suggestions)

    # --- LLM calls ---

    async def _complete_json(
        self, client: BaseLLMClient, prompt: str, token: CancellationToken,
    ) -> Any:
        token.raise_if_cancelled()
        response = await client.complete(
            [Message(role="user", content=prompt)],
            max_tokens=self.max_tokens,
            temperature=self.temperature,
            json_output=True,
        )
        token.raise_if_cancelled()
        return parse_json_response(response.content)

    async def _stream(
        self,
        client: BaseLLMClient,
        prompt: str,
        token: CancellationToken,
        accept: tuple[str, ...],
    ) -> AsyncIterator[StreamRecord]:
        token.raise_if_cancelled()
        chunks = client.stream(
            [Message(role="user", content=prompt)],
            max_tokens=self.max_tokens,
            temperature=self.temperature,
        )
        async for record in extract_stream(chunks, token=token, accept=accept):
            yield record
        token.raise_if_cancelled()


def parse_json_response(content: str) -> Any:
    """Decode a JSON completion, tolerating a surrounding markdown fence.

    Raises:
        MalformedResponseError: If the content is not valid JSON.
    """
    cleaned = _FENCE.sub("", content.strip())
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise MalformedResponseError(f"Model returned invalid JSON: {e}") from e


def _as_entity(item: Any) -> Entity | None:
    if isinstance(item, str):
        return Entity(name=item.strip()) if item.strip() else None
    if isinstance(item, dict):
        name = item.get("entity") or item.get("name")
        if isinstance(name, str) and name.strip():
            return Entity(name=name.strip(), type=str(item.get("type") or ""))
    return None


def _unique_names(entities: list[Entity]) -> list[str]:
    seen: set[str] = set()
    names: list[str] = []
    for entity in entities:
        if entity.name not in seen:
            seen.add(entity.name)
            names.append(entity.name)
    return names
