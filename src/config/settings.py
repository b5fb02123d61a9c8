# src/config/settings.py — v2
"""Typed configuration loaded from .env via pydantic-settings.

Single source of truth for deployment-specific settings. All variables
use the DEEPTIME_ prefix (e.g. DEEPTIME_API_KEYS=key1,key2).
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(Exception):
    """Raised when configuration is internally inconsistent."""


class Settings(BaseSettings):
    """Application settings loaded from environment / .env file."""

    model_config = SettingsConfigDict(
        env_prefix="DEEPTIME_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # === LLM ===
    llm_provider: Literal["google", "gemini", "anthropic", "claude"] = "google"
    llm_model: str = "gemini-2.5-flash"
    llm_temperature: float = 0.2
    llm_max_tokens: int = 8192

    # Comma-separated, interchangeable keys for the provider above
    api_keys: str = ""

    # === Orchestration ===
    concurrency_limit: int = 3
    extraction_mode: Literal["staged", "turbo"] = "staged"
    structure_enabled: bool = False
    structure_max_chars: int = 30_000

    # === Cache ===
    cache_enabled: bool = True
    cache_backend: Literal["memory", "json", "sqlite", "redis"] = "json"
    cache_root: Path = Path("~/.deeptime/cache")
    cache_redis_url: str = ""
    cache_max_age_days: int = 0

    # === Logging ===
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "text"] = "text"
    log_file: Path | None = None
    log_rotation: str = "10MB"
    log_retention: int = 5

    # --- Validators ---

    @field_validator("llm_temperature")
    @classmethod
    def validate_temperature(cls, v: float) -> float:
        if not 0.0 <= v <= 2.0:
            raise ValueError("llm_temperature must be within [0, 2]")
        return v

    @model_validator(mode="after")
    def validate_config_consistency(self) -> Settings:
        """Validate cross-field consistency rules."""
        errors: list[str] = []

        if self.concurrency_limit < 1:
            errors.append("CONCURRENCY_LIMIT must be a positive integer")

        if self.cache_enabled and self.cache_backend == "redis" and not self.cache_redis_url:
            errors.append("CACHE_BACKEND=redis requires CACHE_REDIS_URL")

        if self.cache_max_age_days < 0:
            errors.append("CACHE_MAX_AGE_DAYS must be >= 0")

        if errors:
            raise ConfigurationError("; ".join(errors))

        return self

    # --- Helpers ---

    @property
    def api_keys_list(self) -> list[str]:
        """Parse comma-separated API keys, dropping blanks and duplicates."""
        keys: list[str] = []
        for key in self.api_keys.split(","):
            key = key.strip()
            if key and key not in keys:
                keys.append(key)
        return keys


def load_settings(**overrides: object) -> Settings:
    """Load settings from .env with optional overrides.

    Args:
        **overrides: Field-level overrides (for testing or CLI flags).

    Returns:
        Validated Settings instance.

    Raises:
        ConfigurationError: If configuration is internally inconsistent.
    """
    return Settings(**overrides)  # type: ignore[arg-type]
