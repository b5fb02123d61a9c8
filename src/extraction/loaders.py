# src/extraction/loaders.py — v1
"""Document loaders: turn an input file into a DocumentPayload.

Only text formats are supported; PDF parsing happens upstream of the
orchestrator.
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from pathlib import Path

from deeptime.core.models import DocumentPayload

_IMAGE_REF = re.compile(r"!\[([^\]]*)\]\(([^)]+)\)")


class UnsupportedFormatError(ValueError):
    """Raised when no loader is available for a format."""


class BaseLoader(ABC):
    """Unified interface for document loaders."""

    @property
    @abstractmethod
    def supported_extensions(self) -> list[str]:
        """File extensions this loader handles (e.g., ['.txt'])."""

    @abstractmethod
    def load(self, content: bytes | str | Path) -> DocumentPayload:
        """Read a document into text plus metadata."""

    @staticmethod
    def _read_content(content: bytes | str | Path) -> str:
        if isinstance(content, Path):
            return content.read_text(encoding="utf-8")
        if isinstance(content, bytes):
            return content.decode("utf-8", errors="replace")
        return content


class TxtLoader(BaseLoader):
    """Plain text passthrough."""

    @property
    def supported_extensions(self) -> list[str]:
        return [".txt"]

    def load(self, content: bytes | str | Path) -> DocumentPayload:
        text = self._read_content(content)
        return DocumentPayload(text=text, metadata={"format": "txt"})


class MdLoader(BaseLoader):
    """Markdown: text kept as-is, image references recorded in metadata."""

    @property
    def supported_extensions(self) -> list[str]:
        return [".md", ".markdown"]

    def load(self, content: bytes | str | Path) -> DocumentPayload:
        text = self._read_content(content)
        images = [m.group(2) for m in _IMAGE_REF.finditer(text)]
        return DocumentPayload(text=text, metadata={"format": "md", "images": images})


_LOADER_REGISTRY: dict[str, type[BaseLoader]] = {}


def _register_defaults() -> None:
    for cls in (TxtLoader, MdLoader):
        for ext in cls().supported_extensions:
            _LOADER_REGISTRY[ext] = cls


_register_defaults()


def create_loader(extension: str) -> BaseLoader:
    """Create a loader for a file extension (with or without the dot).

    Raises:
        UnsupportedFormatError: If no loader is registered.
    """
    ext = extension.lower()
    if not ext.startswith("."):
        ext = f".{ext}"
    cls = _LOADER_REGISTRY.get(ext)
    if cls is None:
        raise UnsupportedFormatError(
            f"No loader for format {ext!r}. "
            f"Supported: {', '.join(supported_extensions())}"
        )
    return cls()


def supported_extensions() -> list[str]:
    return sorted(_LOADER_REGISTRY)


def load_document(path: str | Path) -> DocumentPayload:
    """Load a file from disk, picking the loader by extension."""
    path = Path(path)
    payload = create_loader(path.suffix).load(path)
    payload.metadata.setdefault("path", str(path))
    return payload
