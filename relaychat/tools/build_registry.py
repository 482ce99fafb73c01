from __future__ import annotations

from .tool_manager import ToolManager


def build_registry(
    include: set[str] | None = None,
    exclude: set[str] | None = None,
) -> ToolManager:
    """Build a tool manager from the builtin TOOL_CLASSES.

    A fresh set of tool instances is created per call, so per-request
    context never leaks between requests.
    """
    manager = ToolManager()

    include = include or set()
    exclude = exclude or set()

    from relaychat.tools.builtin import TOOL_CLASSES as BUILTIN_TOOL_CLASSES

    for tool_cls in BUILTIN_TOOL_CLASSES:
        tool = tool_cls()
        if include and tool.name not in include:
            continue
        if tool.name in exclude:
            continue
        manager.register(tool)

    return manager
