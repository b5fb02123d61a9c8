# src/streaming/__init__.py — v1
"""Incremental JSON object decoding for streamed responses."""
