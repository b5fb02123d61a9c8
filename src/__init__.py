# src/__init__.py — v1
"""deeptime — orchestrated LLM knowledge-graph extraction over document batches."""

from deeptime.version import __version__

__all__ = ["__version__"]
