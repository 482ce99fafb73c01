from .base_tool import BaseTool
from .build_registry import build_registry
from .context import DataSink, ToolContext
from .tool_manager import ToolManager

__all__ = ["BaseTool", "DataSink", "ToolContext", "ToolManager", "build_registry"]
