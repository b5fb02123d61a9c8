# src/extraction/aggregator.py — v1
"""Merge per-document results into one batch-level view.

Entities are grouped case-insensitively on (name, type); each group is
reported once under the most frequent spelling of its name. Triples are
tagged with the document they came from. ``build_triple_graph`` exposes
the merged triples as a NetworkX MultiDiGraph and ``export_graphml``
writes it out for graph tools.
"""

from __future__ import annotations

import logging
from collections import Counter
from pathlib import Path
from typing import Mapping

import networkx as nx
from pydantic import BaseModel, ConfigDict, Field

from deeptime.core.models import Entity, ExtractionResult, SchemaSuggestion, Triple

logger = logging.getLogger(__name__)


class ProcessingStats(BaseModel):
    """Counts reported after a batch."""

    model_config = ConfigDict(populate_by_name=True)

    files_processed: int = Field(default=0, alias="filesProcessed")
    entities_found: int = Field(default=0, alias="entitiesFound")
    triples_extracted: int = Field(default=0, alias="triplesExtracted")
    total_duration_seconds: float = Field(default=0.0, alias="totalDurationSeconds")
    entity_type_counts: dict[str, int] = Field(default_factory=dict, alias="entityTypeCounts")
    predicate_type_counts: dict[str, int] = Field(
        default_factory=dict, alias="predicateTypeCounts",
    )


class AggregatedResults(BaseModel):
    entities: list[Entity] = Field(default_factory=list)
    triples: list[Triple] = Field(default_factory=list)
    suggestions: list[SchemaSuggestion] = Field(default_factory=list)
    stats: ProcessingStats = Field(default_factory=ProcessingStats)


def merge_entities(entities: list[Entity]) -> list[Entity]:
    """Deduplicate entities, keeping the most common casing of each name.

    Ties go to the spelling seen first. Output is sorted by name.
    """
    groups: dict[tuple[str, str], list[Entity]] = {}
    for entity in entities:
        key = (entity.name.strip().lower(), entity.type.strip().lower())
        groups.setdefault(key, []).append(entity)

    merged: list[Entity] = []
    for group in groups.values():
        canonical, _ = Counter(e.name.strip() for e in group).most_common(1)[0]
        merged.append(group[0].model_copy(update={"name": canonical}))
    merged.sort(key=lambda e: e.name.lower())
    return merged


def aggregate_results(
    results: Mapping[str, ExtractionResult],
    duration_seconds: float = 0.0,
) -> AggregatedResults:
    """Combine results keyed by document name.

    Args:
        results: Document name → ExtractionResult, in submission order.
        duration_seconds: Wall time of the batch, copied into the stats.
    """
    all_entities: list[Entity] = []
    triples: list[Triple] = []
    suggestions: list[SchemaSuggestion] = []

    for name, result in results.items():
        all_entities.extend(result.entities)
        suggestions.extend(result.suggestions)
        triples.extend(t.model_copy(update={"source": name}) for t in result.triples)

    entities = merge_entities(all_entities)
    stats = ProcessingStats(
        files_processed=len(results),
        entities_found=len(entities),
        triples_extracted=len(triples),
        total_duration_seconds=duration_seconds,
        entity_type_counts=dict(Counter(e.type for e in entities)),
        predicate_type_counts=dict(Counter(t.predicate for t in triples)),
    )
    logger.info(
        "Aggregated %d documents: %d entities (from %d), %d triples",
        len(results), len(entities), len(all_entities), len(triples),
    )
    return AggregatedResults(
        entities=entities, triples=triples, suggestions=suggestions, stats=stats,
    )


def build_triple_graph(triples: list[Triple], entities: list[Entity] | None = None) -> nx.MultiDiGraph:
    """Build a directed multigraph: one node per entity, one edge per triple.

    Node keys are lowercased names so differently-cased mentions share a
    node; the ``name`` attribute keeps the first spelling seen.
    """
    graph = nx.MultiDiGraph()
    for entity in entities or []:
        graph.add_node(entity.name.strip().lower(), name=entity.name, type=entity.type)

    for t in triples:
        for name in (t.subject, t.object):
            key = name.strip().lower()
            if not graph.has_node(key):
                graph.add_node(key, name=name.strip(), type="")
        graph.add_edge(
            t.subject.strip().lower(),
            t.object.strip().lower(),
            predicate=t.predicate,
            evidence=t.evidence_text,
            source=t.source,
        )

    logger.debug(
        "Built triple graph: %d nodes, %d edges",
        graph.number_of_nodes(), graph.number_of_edges(),
    )
    return graph


def export_graphml(graph: nx.MultiDiGraph, output_path: str | Path) -> Path:
    """Write the triple graph as GraphML, creating parent directories."""
    path = Path(output_path)
    path.parent.mkdir(parents=True, exist_ok=True)

    # GraphML only accepts scalar attribute values
    g = graph.copy()
    for _, data in g.nodes(data=True):
        for k, v in list(data.items()):
            if not isinstance(v, (str, int, float, bool)):
                data[k] = "" if v is None else str(v)
    for _, _, data in g.edges(data=True):
        for k, v in list(data.items()):
            if not isinstance(v, (str, int, float, bool)):
                data[k] = "" if v is None else str(v)

    nx.write_graphml(g, str(path))
    logger.info("Wrote triple graph to %s", path)
    return path
