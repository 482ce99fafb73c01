"""OpenAI provider implementation for chat models."""

from __future__ import annotations

from typing import Any

from langchain_core.language_models import BaseChatModel
from langchain_core.tools import BaseTool
from langchain_openai import ChatOpenAI

from relaychat.config import settings
from relaychat.llm.provider import LLMProvider
from relaychat.utils.logger import agent_logger

DEFAULT_CHAT_TEMPERATURE = 0.7
DEFAULT_REASONING_EFFORT = "low"


class OpenAIProvider(LLMProvider):
    """Chat model resolved from a `chat_models` selector.

    Structure: chat_models.<selector>.provider -> providers.<name>
    """

    def __init__(self, selector: str, temperature: float | None = None):
        model_entry = settings.get_chat_model_config(selector)
        if model_entry is None:
            raise ValueError(
                f"Chat model '{selector}' not found in configuration. "
                f"Check chat_models.{selector} in your config."
            )

        provider_name = model_entry.get("provider")
        if not provider_name:
            raise ValueError(
                f"Chat model '{selector}' has no provider specified. "
                f"Set chat_models.{selector}.provider in your config."
            )
        provider_def = settings.get_provider_config(provider_name)
        if not provider_def:
            raise ValueError(
                f"Provider '{provider_name}' not found in configuration. "
                f"Check providers.{provider_name} in your config."
            )

        self.selector = selector
        self.model: str = model_entry["model"]
        self.reasoning = bool(model_entry.get("reasoning", False))
        self.api_key = provider_def.get("api_key") or settings.openai_api_key
        self.base_url = provider_def.get("base_url") or settings.openai_base_url
        options = provider_def.get("options") or {}
        self.provider_options = options if isinstance(options, dict) else {}
        self.temperature = (
            temperature if temperature is not None else DEFAULT_CHAT_TEMPERATURE
        )

        kwargs: dict[str, Any] = {"model": self.model, "streaming": True}
        if self.reasoning:
            # Reasoning models reject temperature
            kwargs["reasoning_effort"] = DEFAULT_REASONING_EFFORT
        else:
            kwargs["temperature"] = self.temperature
            kwargs["stream_usage"] = True
        if self.provider_options:
            kwargs["model_kwargs"] = dict(self.provider_options)
        if self.base_url:
            kwargs["base_url"] = self.base_url
        if self.api_key:
            kwargs["api_key"] = self.api_key

        agent_logger.info(
            "Initializing LLM provider",
            selector=selector,
            model=self.model,
            reasoning=self.reasoning,
            base_url=self.base_url,
            provider=provider_name,
        )
        self.llm = ChatOpenAI(**kwargs)

    def get_model_name(self) -> str:
        return self.model

    def get_chat_model(self) -> BaseChatModel:
        return self.llm

    def bind_tools(self, tools: list[BaseTool]) -> Any:
        return self.llm.bind_tools(tools)

    @property
    def supports_tools(self) -> bool:
        return not self.reasoning
