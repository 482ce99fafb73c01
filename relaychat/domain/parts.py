"""Message content parts.

Stored messages come in several historical JSON shapes. `parse_parts` is the
single place those shapes become the tagged part variant, and `dump_parts`
the single place the variant becomes JSON again.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field

from relaychat.utils.logger import get_logger

logger = get_logger("domain.parts")


class TextPart(BaseModel):
    type: Literal["text"] = "text"
    text: str


class ToolInvocationPart(BaseModel):
    type: Literal["tool-invocation"] = "tool-invocation"
    tool_call_id: str
    tool_name: str
    args: Any = Field(default_factory=dict)


class ToolResultPart(BaseModel):
    type: Literal["tool-result"] = "tool-result"
    tool_call_id: str
    tool_name: str | None = None
    result: Any = None


MessagePart = Annotated[
    TextPart | ToolInvocationPart | ToolResultPart, Field(discriminator="type")
]


def parse_parts(raw: Any) -> list[MessagePart]:
    """Convert a stored `parts` document into tagged parts.

    Accepts a bare string (legacy rows), lists mixing strings and dicts,
    AI-SDK style nested `toolInvocation`/`toolResult` objects, and flat
    camelCase or snake_case keys. A tool invocation stored with its result
    inline (state "result") yields an invocation followed by a result part.
    Unknown part types are skipped.
    """
    if raw is None:
        return []
    if isinstance(raw, str):
        return [TextPart(text=raw)]
    if isinstance(raw, dict):
        raw = [raw]

    parts: list[MessagePart] = []
    for item in raw:
        if isinstance(item, str):
            parts.append(TextPart(text=item))
            continue
        if not isinstance(item, dict):
            logger.debug(
                "Skipping non-object message part", part_type=type(item).__name__
            )
            continue

        part_type = item.get("type")
        if part_type == "text":
            parts.append(TextPart(text=str(item.get("text") or "")))
        elif part_type in ("tool-invocation", "tool-call"):
            inv = item.get("toolInvocation") or item
            call_id = _first(inv, "toolCallId", "tool_call_id", "id")
            tool_name = _first(inv, "toolName", "tool_name", "name")
            parts.append(
                ToolInvocationPart(
                    tool_call_id=str(call_id or ""),
                    tool_name=str(tool_name or ""),
                    args=inv.get("args") if inv.get("args") is not None else {},
                )
            )
            if inv.get("state") == "result" and "result" in inv:
                parts.append(
                    ToolResultPart(
                        tool_call_id=str(call_id or ""),
                        tool_name=tool_name,
                        result=inv.get("result"),
                    )
                )
        elif part_type == "tool-result":
            res = item.get("toolResult") or item
            call_id = _first(res, "toolCallId", "tool_call_id", "id")
            parts.append(
                ToolResultPart(
                    tool_call_id=str(call_id or ""),
                    tool_name=_first(res, "toolName", "tool_name", "name"),
                    result=res.get("result"),
                )
            )
        else:
            logger.debug("Skipping unsupported message part", part_type=part_type)
    return parts


def _first(data: dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if data.get(key) is not None:
            return data[key]
    return None


def dump_part(part: MessagePart) -> dict[str, Any]:
    """Render a part in the stored JSON shape."""
    if isinstance(part, TextPart):
        return {"type": "text", "text": part.text}
    if isinstance(part, ToolInvocationPart):
        return {
            "type": "tool-invocation",
            "toolInvocation": {
                "toolCallId": part.tool_call_id,
                "toolName": part.tool_name,
                "args": part.args,
            },
        }
    return {
        "type": "tool-result",
        "toolResult": {
            "toolCallId": part.tool_call_id,
            "toolName": part.tool_name,
            "result": part.result,
        },
    }


def dump_parts(parts: list[MessagePart]) -> list[dict[str, Any]]:
    return [dump_part(part) for part in parts]


@dataclass(frozen=True)
class StoredMessage:
    """A message as read back from storage, with parts already parsed."""

    id: str
    role: str
    created_at: str
    parts: list[MessagePart] = field(default_factory=list)
    content: str | None = None

    @classmethod
    def from_row(cls, row: Any) -> StoredMessage:
        return cls(
            id=row.id,
            role=row.role,
            created_at=row.created_at,
            parts=parse_parts(row.parts),
        )
