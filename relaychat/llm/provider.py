"""LLM Provider abstraction for flexible model integration."""

from abc import ABC, abstractmethod
from typing import Any

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import BaseMessage
from langchain_core.tools import BaseTool


class LLMProvider(ABC):
    """Abstract base class for LLM providers."""

    @abstractmethod
    def get_model_name(self) -> str:
        """Get the model name."""

    @abstractmethod
    def get_chat_model(self) -> BaseChatModel:
        """Return the underlying LangChain chat model."""

    @abstractmethod
    def bind_tools(self, tools: list[BaseTool]) -> Any:
        """Bind tools to the LLM for function calling."""

    @property
    def supports_tools(self) -> bool:
        return True

    async def agenerate(self, messages: list[BaseMessage], **kwargs) -> str:
        """Non-streaming completion returning the text content."""
        response = await self.get_chat_model().ainvoke(messages, **kwargs)
        content = getattr(response, "content", "")
        if isinstance(content, str):
            return content
        return "".join(
            block.get("text", "") if isinstance(block, dict) else str(block)
            for block in content
        )

    def get_stream_kwargs(self) -> dict[str, Any]:
        """Extra kwargs for astream() calls."""
        return {}
