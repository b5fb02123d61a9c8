# src/extraction/__init__.py — v1
"""Worker function, prompts and result aggregation."""
