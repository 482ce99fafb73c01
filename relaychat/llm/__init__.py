"""LLM provider adapters."""

from __future__ import annotations

from relaychat.config import settings
from relaychat.llm.provider import LLMProvider


def get_provider(selector: str) -> LLMProvider:
    """Build the provider for a chat model selector.

    Raises ValueError when the selector or its provider is not configured.
    """
    entry = settings.get_chat_model_config(selector)
    if entry is None:
        raise ValueError(f"Unknown chat model selector: {selector}")
    provider_name = entry.get("provider")
    provider_type = settings.get_provider_config(provider_name).get("type", "openai")
    if provider_type == "openai":
        from relaychat.llm.openai_provider import OpenAIProvider

        return OpenAIProvider(selector)
    raise ValueError(f"Unsupported provider type: {provider_type}")


__all__ = ["LLMProvider", "get_provider"]
