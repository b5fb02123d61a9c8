# src/core/models.py — v2
"""Shared Pydantic domain models used across modules.

No module redefines these types — all imports come from core.models.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

ExtractionMode = Literal["staged", "turbo"]


# === EXTRACTED KNOWLEDGE ===


class Entity(BaseModel):
    """A named instance of a schema concept found in a document."""

    name: str
    type: str = ""


class Triple(BaseModel):
    """Subject-predicate-object assertion backed by a verbatim quote."""

    model_config = ConfigDict(populate_by_name=True)

    subject: str
    predicate: str
    object: str
    evidence_text: str = Field(default="", alias="evidenceText")
    source: str = ""


class ExampleTriple(BaseModel):
    """Illustrative subject/object pair attached to a predicate suggestion."""

    subject: str
    object: str


class SchemaSuggestion(BaseModel):
    """Proposed addition to the schema: a new concept or a new predicate."""

    model_config = ConfigDict(populate_by_name=True)

    type: Literal["entity", "predicate"]
    name: str
    justification: str = ""
    category_suggestion: str | None = Field(default=None, alias="categorySuggestion")
    example_triple: ExampleTriple | None = Field(default=None, alias="exampleTriple")


class ExtractionResult(BaseModel):
    """Everything extracted from one document; the cached unit of work."""

    entities: list[Entity] = Field(default_factory=list)
    triples: list[Triple] = Field(default_factory=list)
    suggestions: list[SchemaSuggestion] = Field(default_factory=list)
    chunks: list[DocumentChunk] = Field(default_factory=list)


# === DOCUMENT STRUCTURE ===


class DocumentChunk(BaseModel):
    """LLM-proposed section of a document, sliced from the raw text."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    section_path: list[str] = Field(default_factory=list, alias="sectionPath")
    kind: Literal["body", "caption", "table", "methods", "references"] = "body"
    start: int
    end: int
    reason: str = ""
    content: str = ""
    selected: bool = True


class DocumentPayload(BaseModel):
    """Opaque input handed over by the document pipeline for one file."""

    text: str
    metadata: dict[str, Any] = Field(default_factory=dict)


ExtractionResult.model_rebuild()
