"""Startup validation for chat model configuration."""

from __future__ import annotations

import os

from relaychat.config.constants import DEFAULT_MODEL_SELECTOR


def validate_or_raise(chat_models: dict[str, dict], api_key: str | None) -> None:
    """Validate that the default chat model and an OpenAI key are configured.

    Model names are not checked against a catalog; any model the provider
    accepts may be configured.
    """
    if DEFAULT_MODEL_SELECTOR not in chat_models:
        raise ValueError(
            f"chat_models.{DEFAULT_MODEL_SELECTOR} is required. "
            "Configure it in .relaychat/config.json"
        )

    key = api_key or os.getenv("OPENAI_API_KEY")
    if not key:
        raise ValueError(
            "OPENAI_API_KEY is required for OpenAI models. Configure it in "
            ".relaychat/config.json (providers.openai.api_key) or the environment"
        )
