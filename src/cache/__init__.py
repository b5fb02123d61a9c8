# src/cache/__init__.py — v1
"""Fingerprinting and result cache backends."""
