"""Builtin tool package.

Static export of tool classes, in the order they are offered to the model.
"""

from __future__ import annotations

from relaychat.tools.builtin.create_document import CreateDocumentTool
from relaychat.tools.builtin.get_weather import GetWeatherTool
from relaychat.tools.builtin.request_suggestions import RequestSuggestionsTool
from relaychat.tools.builtin.update_document import UpdateDocumentTool

TOOL_CLASSES = [
    GetWeatherTool,
    CreateDocumentTool,
    UpdateDocumentTool,
    RequestSuggestionsTool,
]

DEFAULT_ACTIVE_TOOLS = [
    "get_weather",
    "create_document",
    "update_document",
    "request_suggestions",
]

__all__ = [
    "TOOL_CLASSES",
    "DEFAULT_ACTIVE_TOOLS",
    "CreateDocumentTool",
    "GetWeatherTool",
    "RequestSuggestionsTool",
    "UpdateDocumentTool",
]
