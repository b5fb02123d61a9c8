# src/extraction/prompts.py — v1
"""Prompt builders for each extraction stage.

Deliberately minimal: prompts state the task and the exact output shape
the stream decoder recognizes. Schemas are plain dicts with
``observableAxis`` / ``interpretiveAxis`` concept trees and
``predicates.predicateCategories``; anything else is dumped as JSON.
"""

from __future__ import annotations

import json
from typing import Any

_STREAM_RULES = (
    "Output a stream of complete JSON objects, one after another. "
    "Do not wrap them in a markdown block or a top-level array. "
    "Escape every double quote inside string values."
)


def _document(text: str) -> str:
    return f"--- DOCUMENT START ---\n{text}\n--- DOCUMENT END ---"


def _concepts(value: Any, level: int = 0) -> str:
    if isinstance(value, list):
        parts = []
        for item in value:
            if isinstance(item, dict) and item:
                key = next(iter(item))
                parts.append(f"{key}: ({_concepts(item[key], level + 1)})")
            elif isinstance(item, str):
                parts.append(item)
        return ", ".join(parts)
    if isinstance(value, dict):
        indent = "  " * level
        return "".join(
            f"\n{indent}- {key}: {_concepts(sub, level + 1)}" for key, sub in value.items()
        )
    return ""


def _axis(axis: dict[str, Any]) -> str:
    lines = []
    for category, data in axis.items():
        concepts = data.get("concepts") if isinstance(data, dict) else data
        lines.append(f"  - {category}: {_concepts(concepts)}")
    return "\n".join(lines)


def schema_summary(schema: Any) -> str:
    """Render the concept axes of a schema for inclusion in a prompt."""
    if not isinstance(schema, dict):
        return json.dumps(schema, ensure_ascii=False, default=str)
    observable = schema.get("observableAxis") or {}
    interpretive = schema.get("interpretiveAxis") or {}
    if not observable and not interpretive:
        return json.dumps(schema, ensure_ascii=False, default=str)
    return (
        "Observable axis (direct observations):\n"
        f"{_axis(observable)}\n"
        "Interpretive axis (conclusions and inferences):\n"
        f"{_axis(interpretive)}"
    )


def predicate_categories(schema: Any) -> dict[str, list[str]]:
    if not isinstance(schema, dict):
        return {}
    return (schema.get("predicates") or {}).get("predicateCategories") or {}


def concept_categories(schema: Any) -> list[str]:
    if not isinstance(schema, dict):
        return []
    return [
        *(schema.get("observableAxis") or {}).keys(),
        *(schema.get("interpretiveAxis") or {}).keys(),
    ]


def predicate_summary(schema: Any) -> str:
    return "\n".join(
        f"  - {category}: {', '.join(preds)}"
        for category, preds in predicate_categories(schema).items()
    )


def structure_prompt(text: str) -> str:
    return (
        "Split the scientific document below into logical chunks. Return one JSON "
        'object {"outline": [{"title", "level", "start", "end"}], '
        '"chunks": [{"id", "sectionPath", "kind", "start", "end", "reason"}]} '
        "where start/end are character offsets into the text and kind is one of "
        "body, caption, table, methods, references.\n\n"
        f"{_document(text)}"
    )


def entity_prompt(text: str, schema: Any) -> str:
    categories = ", ".join(concept_categories(schema))
    return (
        "Extract every specific instance (noun or noun phrase) of the schema "
        "concepts below, and suggest important abstract concepts missing from "
        "the schema.\n\n"
        f"Schema:\n{schema_summary(schema)}\n\n"
        f"{_STREAM_RULES}\n"
        'For an instance: {"entity": "Lingshui Formation", "type": "<concept>"}\n'
        'For a suggestion: {"newEntitySuggestion": {"name": "...", '
        f'"categorySuggestion": "<one of: {categories}>", "justification": "..."}}}}\n\n'
        f"{_document(text)}"
    )


def relationship_prompt(text: str, schema: Any, entities: list[str]) -> str:
    entity_list = ", ".join(json.dumps(e, ensure_ascii=False) for e in entities)
    return (
        "Extract subject-predicate-object triples. Subjects and objects MUST come "
        "from the entity list; predicates MUST come from the predicate schema. "
        "evidenceText must quote the document verbatim.\n\n"
        f"Entity list: [{entity_list}]\n\n"
        f"Predicate schema:\n{predicate_summary(schema)}\n\n"
        f"{_STREAM_RULES}\n"
        'Each object: {"subject": "...", "predicate": "...", "object": "...", '
        '"evidenceText": "..."}\n\n'
        f"{_document(text)}"
    )


def predicate_suggestion_prompt(text: str, schema: Any, entities: list[str]) -> str:
    existing = ", ".join(p for preds in predicate_categories(schema).values() for p in preds)
    entity_list = ", ".join(json.dumps(e, ensure_ascii=False) for e in entities)
    return (
        "Suggest new general-purpose predicates for relationships between the "
        "entities below that the existing predicates do not capture.\n\n"
        f"Existing predicates (do not suggest): [{existing}]\n"
        f"Entity list: [{entity_list}]\n\n"
        f"{_STREAM_RULES}\n"
        'Each object: {"suggestion": {"type": "predicate", "name": "...", '
        '"justification": "...", "exampleTriple": {"subject": "...", "object": "..."}}}\n\n'
        f"{_document(text)}"
    )


def turbo_prompt(text: str, schema: Any) -> str:
    return (
        "In a single pass, identify every specific instance of the schema "
        "concepts, then extract all triples between them using only the "
        "schema predicates.\n\n"
        f"Schema:\n{schema_summary(schema)}\n\n"
        f"Predicate schema:\n{predicate_summary(schema)}\n\n"
        'Return ONE JSON object: {"entities": ["..."], "triples": [{"subject": "...", '
        '"predicate": "...", "object": "...", "evidenceText": "..."}]}. '
        "No markdown.\n\n"
        f"{_document(text)}"
    )
