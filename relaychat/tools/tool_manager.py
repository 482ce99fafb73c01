from __future__ import annotations

import json
from collections.abc import Iterable
from typing import Any

from relaychat.utils.logger import agent_logger

from .base_tool import BaseTool
from .context import ToolContext


class ToolManager:
    """Registry and lifecycle manager for tools.

    Holds tools by name, exposes a uniform `run_tool` API, and propagates the
    per-request ToolContext to all registered tools.
    """

    def __init__(self) -> None:
        self._tools: dict[str, BaseTool] = {}
        self._context: ToolContext | None = None

    def set_context(self, context: ToolContext | None) -> None:
        self._context = context
        for tool in self._tools.values():
            tool.set_context(context)

    def register(self, tool: BaseTool) -> None:
        self._tools[tool.name] = tool
        tool.set_context(self._context)

    def get(self, name: str) -> BaseTool | None:
        return self._tools.get(name)

    def has_tool(self, name: str) -> bool:
        return name in self._tools

    def list_tools(self, names: Iterable[str] | None = None) -> list[BaseTool]:
        """Registered tools, optionally restricted to names (in that order)."""
        if names is None:
            return list(self._tools.values())
        return [self._tools[n] for n in names if n in self._tools]

    async def run_tool(self, name: str, args: dict[str, Any] | None = None) -> Any:
        """Validate args against the tool schema and run it.

        Failures come back as `tool_error` results instead of raising.
        """
        args = dict(args or {})
        tool = self.get(name)
        if tool is None:
            return {
                "type": "tool_error",
                "name": name,
                "code": "not_found",
                "error": f"Tool not found: {name}",
                "error_type": "ToolNotFound",
            }
        agent_logger.info("Tool call", tool=name, args=args)

        try:
            schema = getattr(tool, "args_schema", None)
            if schema is not None:
                parsed = schema.model_validate(args)
                args = parsed.model_dump()
        except Exception as ve:
            return {
                "type": "tool_error",
                "name": name,
                "code": "args_validation",
                "error": str(ve),
                "error_type": type(ve).__name__,
            }

        try:
            result = await tool.arun(tool_input=args)
        except Exception as e:
            agent_logger.error(
                "Tool execution failed",
                tool=name,
                error=str(e),
                error_type=type(e).__name__,
            )
            return {
                "type": "tool_error",
                "name": name,
                "code": "execution_failed",
                "error": str(e),
                "error_type": type(e).__name__,
            }

        try:
            serialized = json.dumps(result, ensure_ascii=False, default=str)
            agent_logger.info(
                "Tool result",
                tool=name,
                size_bytes=len(serialized.encode("utf-8")),
            )
        except (TypeError, ValueError):
            pass

        return result
