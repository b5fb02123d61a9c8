# src/llm/__init__.py — v1
"""LLM client abstraction, adapters and error classification."""
