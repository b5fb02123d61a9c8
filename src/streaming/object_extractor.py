# src/streaming/object_extractor.py — v1
"""Incremental extraction of complete JSON objects from a streamed response.

The model is asked to emit a sequence of standalone JSON objects (no
enclosing array, no separators). As text chunks arrive, the extractor
scans the append-only buffer with a small state machine (string flag,
escape flag, brace depth) and yields each object as soon as its closing
brace is seen. Scanner state is kept across ``feed`` calls, so every
character is examined exactly once.

Recognized shapes:
  {"entity": "Lingshui Formation", "type": "GeologicUnit"}
  {"newEntitySuggestion": {"name": ..., "categorySuggestion": ..., "justification": ...}}
  {"suggestion": {"type": "predicate", "name": ..., "justification": ..., "exampleTriple": {...}}}
  {"subject": ..., "predicate": ..., "object": ..., "evidenceText": ...}
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, AsyncIterable, AsyncIterator, Iterable, Literal, Union

from pydantic import ValidationError

from deeptime.core.models import Entity, SchemaSuggestion, Triple

if TYPE_CHECKING:
    from deeptime.orchestrator.cancellation import CancellationToken

logger = logging.getLogger(__name__)

RecordKind = Literal["entity", "triple", "suggestion"]
ALL_KINDS: frozenset[str] = frozenset({"entity", "triple", "suggestion"})


@dataclass(frozen=True)
class StreamRecord:
    """One fully formed domain object decoded from the stream."""

    kind: RecordKind
    value: Union[Entity, Triple, SchemaSuggestion]


class StreamObjectExtractor:
    """Decode top-level JSON objects out of a growing text buffer.

    Args:
        accept: Record kinds to return. Objects of other kinds are
            decoded but dropped. Defaults to all kinds.
    """

    def __init__(self, accept: Iterable[str] | None = None) -> None:
        self._accept = frozenset(accept) if accept is not None else ALL_KINDS
        unknown = self._accept - ALL_KINDS
        if unknown:
            raise ValueError(f"Unknown record kinds: {sorted(unknown)}")
        self.reset()

    def reset(self) -> None:
        """Discard the buffer, scanner state and counters."""
        self._clear_state()
        self.objects_seen = 0
        self.malformed = 0

    @property
    def pending_text(self) -> str:
        """Unconsumed text: the partial object still being written, if any."""
        return self._buffer

    def feed(self, chunk: str) -> list[StreamRecord]:
        """Append a chunk and return every record completed by it, in order."""
        if not chunk:
            return []
        self._buffer += chunk
        buf = self._buffer
        records: list[StreamRecord] = []

        pos = self._pos
        while pos < len(buf):
            ch = buf[pos]
            if self._start < 0:
                if ch == "{":
                    self._start = pos
                    self._depth = 1
            elif self._in_string:
                if self._escaped:
                    self._escaped = False
                elif ch == "\\":
                    self._escaped = True
                elif ch == '"':
                    self._in_string = False
            elif ch == '"':
                self._in_string = True
            elif ch == "{":
                self._depth += 1
            elif ch == "}":
                self._depth -= 1
                if self._depth == 0:
                    record = self._decode(buf[self._start : pos + 1])
                    if record is not None:
                        records.append(record)
                    self._start = -1
            pos += 1

        # Compact: keep only the object still in progress
        if self._start < 0:
            self._buffer = ""
            self._pos = 0
        else:
            self._buffer = buf[self._start :]
            self._pos = pos - self._start
            self._start = 0
        return records

    def close(self) -> None:
        """Signal end of stream; an unterminated object is logged and dropped."""
        if self._start >= 0:
            logger.warning(
                "Stream ended inside an unterminated object (%d chars dropped)",
                len(self._buffer),
            )
        self._clear_state()

    def _clear_state(self) -> None:
        self._buffer = ""
        self._pos = 0
        self._start = -1
        self._depth = 0
        self._in_string = False
        self._escaped = False

    def _decode(self, span: str) -> StreamRecord | None:
        self.objects_seen += 1
        try:
            item = json.loads(span)
        except json.JSONDecodeError:
            self.malformed += 1
            logger.warning("Could not parse object from stream: %.200s", span)
            return None

        try:
            record = classify_object(item)
        except ValidationError as e:
            self.malformed += 1
            logger.warning("Discarding invalid stream object: %s", e.errors()[0]["msg"])
            return None

        if record is None:
            logger.debug("Ignoring unrecognized stream object: %.200s", span)
            return None
        if record.kind not in self._accept:
            return None
        return record


def classify_object(item: object) -> StreamRecord | None:
    """Map a decoded JSON value onto one of the expected record shapes.

    Raises:
        ValidationError: If the object has a known shape but invalid fields.
    """
    if not isinstance(item, dict):
        return None

    entity = item.get("entity")
    if isinstance(entity, str) and entity.strip():
        return StreamRecord(
            kind="entity",
            value=Entity(name=entity.strip(), type=str(item.get("type") or "")),
        )

    new_entity = item.get("newEntitySuggestion")
    if isinstance(new_entity, dict):
        return StreamRecord(
            kind="suggestion",
            value=SchemaSuggestion.model_validate({**new_entity, "type": "entity"}),
        )

    suggestion = item.get("suggestion")
    if isinstance(suggestion, dict) and suggestion.get("type") == "predicate":
        return StreamRecord(
            kind="suggestion", value=SchemaSuggestion.model_validate(suggestion),
        )

    if (
        item.get("subject")
        and item.get("predicate")
        and item.get("object")
        and "evidenceText" in item
    ):
        return StreamRecord(kind="triple", value=Triple.model_validate(item))

    return None


async def extract_stream(
    chunks: AsyncIterable[str],
    token: CancellationToken | None = None,
    accept: Iterable[str] | None = None,
) -> AsyncIterator[StreamRecord]:
    """Drive a StreamObjectExtractor over an async text stream.

    The token is checked before consuming each chunk; once cancelled the
    stream is abandoned and nothing further is yielded.
    """
    extractor = StreamObjectExtractor(accept=accept)
    async for chunk in chunks:
        if token is not None and token.is_cancelled:
            logger.debug("Stream abandoned after cancellation")
            return
        for record in extractor.feed(chunk):
            yield record
    extractor.close()
