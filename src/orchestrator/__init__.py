# src/orchestrator/__init__.py — v1
"""Batch scheduling, degradation and cancellation."""
