# src/cache/fingerprint.py — v3
"""Content fingerprinting for the extraction result cache.

A fingerprint identifies one unit of extraction work: the selected document
text, the active schema, the model and the execution mode. Layout mirrors
the historical cache key ``<text>-<schema>-<model>-<mode>`` so entries stay
human-inspectable in any backend.

Digests are truncated SHA-256 and are used as lookup keys only; a collision
serves the other document's cached result without raising.
"""

from __future__ import annotations

import hashlib
import json
import re
from typing import Any

_DIGEST_CHARS = 16
_TRAILING_WS = re.compile(r"[ \t]+$", re.MULTILINE)


def compute_fingerprint(
    text: str,
    schema: Any,
    model_name: str,
    mode: str,
) -> str:
    """Compute the cache key for one extraction task.

    Args:
        text: Selected document text, as sent to the model.
        schema: Active schema snapshot (any JSON-serializable structure).
        model_name: Model identifier (e.g. gemini-2.5-flash).
        mode: Execution mode flag (staged or turbo).

    Returns:
        Fingerprint string, identical for structurally identical schemas
        regardless of key insertion order.
    """
    text_hash = _digest(normalize_text(text))
    schema_hash = _digest(canonical_schema(schema))
    return f"{text_hash}-{schema_hash}-{model_name}-{mode}"


def canonical_schema(schema: Any) -> str:
    """Serialize a schema with stable key ordering and compact separators."""
    if hasattr(schema, "model_dump"):
        schema = schema.model_dump(mode="json")
    return json.dumps(
        schema, sort_keys=True, separators=(",", ":"), ensure_ascii=False,
    )


def normalize_text(text: str) -> str:
    """Normalize line endings and strip trailing whitespace."""
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = _TRAILING_WS.sub("", text)
    return text.strip()


def _digest(value: str) -> str:
    return hashlib.sha256(value.encode("utf-8")).hexdigest()[:_DIGEST_CHARS]
