# src/llm/client_factory.py — v3
"""Factory: instantiate an LLM client from provider name and API key.

The extraction worker calls this once per task with the credential the
rotator handed out, so each client is bound to exactly one key.
"""

from __future__ import annotations

import importlib
import logging

from deeptime.llm.base_client import BaseLLMClient
from deeptime.llm.errors import UnsupportedProviderError

logger = logging.getLogger(__name__)

# Registry of provider name → adapter class path (lazy import).
_PROVIDER_REGISTRY: dict[str, str] = {
    "google": "deeptime.llm.adapters.google_adapter.GoogleAdapter",
    "anthropic": "deeptime.llm.adapters.anthropic_adapter.AnthropicAdapter",
}

# UI-facing aliases for registered providers
_ALIASES: dict[str, str] = {"gemini": "google", "claude": "anthropic"}


def create_llm_client(
    provider: str,
    model: str,
    api_key: str,
    **kwargs: object,
) -> BaseLLMClient:
    """Instantiate the correct adapter from provider name.

    Args:
        provider: Provider identifier (google/gemini, anthropic/claude).
        model: Model name (e.g. gemini-2.5-flash).
        api_key: Credential for this client.
        **kwargs: Additional provider-specific arguments.

    Returns:
        Configured BaseLLMClient instance.

    Raises:
        UnsupportedProviderError: If provider is not registered.
    """
    name = _ALIASES.get(provider, provider)
    if name not in _PROVIDER_REGISTRY:
        raise UnsupportedProviderError(
            f"Unsupported LLM provider: {provider!r}. "
            f"Available: {', '.join(sorted(_PROVIDER_REGISTRY))}"
        )

    adapter_cls = _import_class(_PROVIDER_REGISTRY[name])
    logger.debug("Creating LLM client: provider=%s, model=%s", name, model)
    return adapter_cls(model=model, api_key=api_key, **kwargs)


def register_provider(name: str, class_path: str) -> None:
    """Register a custom provider adapter.

    Args:
        name: Provider identifier.
        class_path: Fully qualified class path implementing BaseLLMClient.
    """
    _PROVIDER_REGISTRY[name] = class_path
    logger.info("Registered LLM provider: %s → %s", name, class_path)


def available_providers() -> list[str]:
    return sorted(_PROVIDER_REGISTRY)


def _import_class(class_path: str) -> type:
    """Dynamically import a class from its fully qualified path."""
    module_path, class_name = class_path.rsplit(".", 1)
    module = importlib.import_module(module_path)
    return getattr(module, class_name)
