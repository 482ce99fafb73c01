from __future__ import annotations

from abc import ABC
from typing import Any
from uuid import UUID

from langchain_core.callbacks.base import BaseCallbackHandler
from langchain_core.callbacks.manager import BaseCallbackManager
from langchain_core.runnables import RunnableConfig
from langchain_core.tools import BaseTool as LCBaseTool

from .context import ToolContext


class BaseTool(LCBaseTool, ABC):
    """Base class for server-side tools.

    Tools receive validated arguments and the per-request ToolContext, and
    can stream side-channel payloads through the context's data sink.
    Subclasses implement `_arun`.
    """

    # Tool subclasses should declare: name: str, description: str, args_schema: type[BaseModel]

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._context: ToolContext | None = None

    def set_context(self, context: ToolContext | None) -> None:
        self._context = context

    @property
    def context(self) -> ToolContext:
        if self._context is None:
            raise RuntimeError(f"Tool '{self.name}' has no context set")
        return self._context

    async def emit_data(self, data: dict[str, Any]) -> None:
        if self._context is not None and self._context.sink is not None:
            await self._context.sink.write(data)

    # Match LangChain signature for compatibility and type-checking
    async def arun(
        self,
        tool_input: str | dict[Any, Any],
        verbose: bool | None = None,
        start_color: str | None = None,
        color: str | None = None,
        callbacks: list[BaseCallbackHandler] | BaseCallbackManager | None = None,
        *,
        tags: list[str] | None = None,
        metadata: dict[str, Any] | None = None,
        run_name: str | None = None,
        run_id: UUID | None = None,
        config: RunnableConfig | None = None,
        tool_call_id: str | None = None,
        **kwargs: Any,
    ) -> Any:
        """Execute tool asynchronously. Default calls the _arun hook."""
        if not isinstance(tool_input, dict):
            raise TypeError(
                "tool_input must be a dict of arguments; callers should pass structured args via tool_input"
            )
        merged_kwargs: dict[Any, Any] = {**tool_input, **kwargs}
        return await self._arun(**merged_kwargs)

    # LangChain may pick the sync path; bridge it to the concrete _arun.
    def _run(self, *args: Any, **kwargs: Any) -> Any:  # pragma: no cover
        import asyncio
        import inspect

        impl = None
        for cls in type(self).__mro__:
            if cls is BaseTool:
                continue
            if cls.__name__ == "BaseTool" and cls.__module__.startswith(
                "langchain_core.tools"
            ):
                continue
            maybe = cls.__dict__.get("_arun")
            if maybe is not None:
                impl = maybe.__get__(self, type(self))
                break

        if impl is None:
            raise NotImplementedError("Tool must implement async _arun")

        coro = impl(**kwargs)
        if inspect.iscoroutine(coro):
            return asyncio.run(coro)
        return coro
