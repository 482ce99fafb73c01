"""History normalization: stored messages + new user message -> model input.

This is the only place message parts are flattened into strings. The model
accepts a single string per history entry, so tool interactions are rendered
as bracketed summaries inside the text.
"""

from __future__ import annotations

import json
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from relaychat.domain.parts import (
    MessagePart,
    StoredMessage,
    TextPart,
    ToolInvocationPart,
    ToolResultPart,
)
from relaychat.utils.logger import agent_logger

ARCHIVED_PREFIX = "[Archived tool interaction]"
PASSTHROUGH_ROLES = frozenset({"user", "assistant", "system"})

_EPOCH = datetime.min.replace(tzinfo=UTC)


@dataclass(frozen=True)
class HistoryEntry:
    role: str
    content: str
    id: str | None = None
    created_at: str | None = None


def _to_json(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, separators=(",", ":"), default=str)


def _sort_key(created_at: str | None) -> datetime:
    if not created_at:
        return _EPOCH
    try:
        parsed = datetime.fromisoformat(created_at)
    except ValueError:
        return _EPOCH
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def render_part(part: MessagePart, tool_names: dict[str, str]) -> str:
    """Render one part as text.

    tool_names maps call ids to tool names, for results stored without one.
    """
    if isinstance(part, TextPart):
        return part.text
    if isinstance(part, ToolInvocationPart):
        return f"[Tool call: {part.tool_name}, Args: {_to_json(part.args)}]"
    if isinstance(part, ToolResultPart):
        name = part.tool_name or tool_names.get(part.tool_call_id) or "unknown"
        return f"[Tool result for {name}: {_to_json(part.result)}]"
    raise TypeError(f"Unsupported part: {type(part).__name__}")


def render_parts(parts: Iterable[MessagePart], tool_names: dict[str, str]) -> str:
    """Join rendered parts with newlines, skipped while the text is still empty."""
    text = ""
    for part in parts:
        rendered = render_part(part, tool_names)
        text = f"{text}\n{rendered}" if text else rendered
    return text


def _collect_tool_names(messages: Iterable[StoredMessage]) -> dict[str, str]:
    names: dict[str, str] = {}
    for message in messages:
        for part in message.parts:
            if isinstance(part, ToolInvocationPart) and part.tool_call_id:
                names.setdefault(part.tool_call_id, part.tool_name)
    return names


def user_text(message: StoredMessage) -> str:
    """Text of a freshly arrived user message: its text parts, else content."""
    texts = [part.text for part in message.parts if isinstance(part, TextPart)]
    if texts:
        return "\n".join(texts)
    return message.content or ""


def normalize_history(
    stored_messages: Iterable[StoredMessage], new_message: StoredMessage
) -> list[HistoryEntry]:
    """Build the ordered role/content sequence for a generation call.

    Stored messages are ordered by creation time (ties keep their input
    order) and each is collapsed to one string. Roles other than user,
    assistant and system are folded into an assistant entry prefixed with
    ARCHIVED_PREFIX. The new user message is always the last entry.

    The result depends only on the inputs.
    """
    ordered = sorted(stored_messages, key=lambda m: _sort_key(m.created_at))
    tool_names = _collect_tool_names(ordered)

    entries: list[HistoryEntry] = []
    for message in ordered:
        content = render_parts(message.parts, tool_names)
        if not message.parts and message.content:
            content = message.content

        role = message.role
        if role not in PASSTHROUGH_ROLES:
            agent_logger.info(
                "Folding message with unsupported role into assistant entry",
                message_id=message.id,
                role=role,
            )
            content = f"{ARCHIVED_PREFIX}\n{content}" if content else ARCHIVED_PREFIX
            role = "assistant"

        entries.append(
            HistoryEntry(
                role=role,
                content=content,
                id=message.id,
                created_at=message.created_at,
            )
        )

    entries.append(
        HistoryEntry(
            role="user",
            content=user_text(new_message),
            id=new_message.id,
            created_at=new_message.created_at,
        )
    )
    return entries
