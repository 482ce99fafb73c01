"""Chunk event types emitted on a chat stream.

Every chunk is serialized to one JSON document. The same string is sent to
the first caller, stored in the resumable buffer and replayed on resume.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Literal


class EventType(str, Enum):
    START = "start"
    TEXT_DELTA = "text-delta"
    TOOL_CALL = "tool-call"
    TOOL_RESULT = "tool-result"
    DATA = "data"
    ERROR = "error"
    FINISH = "finish"


@dataclass
class BaseEvent:
    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        for k, v in list(data.items()):
            if isinstance(v, Enum):
                data[k] = v.value
        return {k: v for k, v in data.items() if v is not None}

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False, default=str)


@dataclass
class StartEvent(BaseEvent):
    type: Literal[EventType.START] = EventType.START
    message_id: str = ""


@dataclass
class TextDeltaEvent(BaseEvent):
    type: Literal[EventType.TEXT_DELTA] = EventType.TEXT_DELTA
    text: str = ""


@dataclass
class ToolCallEvent(BaseEvent):
    type: Literal[EventType.TOOL_CALL] = EventType.TOOL_CALL
    tool_call_id: str = ""
    tool_name: str = ""
    args: dict[str, Any] = field(default_factory=dict)


@dataclass
class ToolResultEvent(BaseEvent):
    type: Literal[EventType.TOOL_RESULT] = EventType.TOOL_RESULT
    tool_call_id: str = ""
    tool_name: str = ""
    result: Any = None


@dataclass
class DataEvent(BaseEvent):
    """Side-channel payload written by a running tool."""

    type: Literal[EventType.DATA] = EventType.DATA
    data: dict[str, Any] = field(default_factory=dict)


@dataclass
class ErrorEvent(BaseEvent):
    type: Literal[EventType.ERROR] = EventType.ERROR
    error: str = ""


@dataclass
class FinishEvent(BaseEvent):
    type: Literal[EventType.FINISH] = EventType.FINISH
    finish_reason: str = "stop"


StreamEvent = (
    StartEvent
    | TextDeltaEvent
    | ToolCallEvent
    | ToolResultEvent
    | DataEvent
    | ErrorEvent
    | FinishEvent
)


def is_finish_chunk(chunk: str) -> bool:
    """Return True when a serialized chunk is the terminal finish event."""
    try:
        payload = json.loads(chunk)
    except (TypeError, ValueError):
        return False
    return isinstance(payload, dict) and payload.get("type") == EventType.FINISH.value
