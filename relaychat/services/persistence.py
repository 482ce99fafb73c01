"""Persistence sink: commit the assistant message of a finished generation."""

from __future__ import annotations

from typing import Any

from langchain_core.messages import AIMessage
from sqlalchemy.engine import Engine

from relaychat.db.base import utc_now_iso
from relaychat.db.queries import save_messages
from relaychat.domain.parts import (
    MessagePart,
    TextPart,
    ToolInvocationPart,
    ToolResultPart,
    dump_parts,
)
from relaychat.services.generation import GenerationResponse
from relaychat.utils.logger import agent_logger


def to_stored_parts(content: Any) -> list[MessagePart]:
    """Map assistant message content onto stored parts.

    String content becomes one text part. List content maps `text`,
    `tool-call` and `tool-result` items in order; anything else is skipped.
    """
    if isinstance(content, str):
        return [TextPart(text=content)]

    parts: list[MessagePart] = []
    for item in content:
        if isinstance(item, str):
            parts.append(TextPart(text=item))
            continue
        item_type = item.get("type") if isinstance(item, dict) else None
        if item_type == "text":
            parts.append(TextPart(text=item.get("text") or ""))
        elif item_type == "tool-call":
            parts.append(
                ToolInvocationPart(
                    tool_call_id=item.get("toolCallId") or "",
                    tool_name=item.get("toolName") or "",
                    args=item.get("args") or {},
                )
            )
        elif item_type == "tool-result":
            parts.append(
                ToolResultPart(
                    tool_call_id=item.get("toolCallId") or "",
                    tool_name=item.get("toolName"),
                    result=item.get("result"),
                )
            )
        else:
            agent_logger.warning(
                "Skipping unhandled response part", part_type=item_type
            )
    return parts


def persist_final_response(
    engine: Engine, conversation_id: str, response: GenerationResponse
) -> bool:
    """Store the last assistant message of response.

    Returns False when there is nothing to store or the write fails; the
    failure is logged and never raised.
    """
    assistant = next(
        (m for m in reversed(response.messages) if isinstance(m, AIMessage)), None
    )
    if assistant is None or not assistant.id:
        agent_logger.warning(
            "No assistant message found in response to save",
            conversation_id=conversation_id,
            finish_reason=response.finish_reason,
        )
        return False

    parts = to_stored_parts(assistant.content)
    try:
        save_messages(
            engine,
            [
                {
                    "id": assistant.id,
                    "conversation_id": conversation_id,
                    "role": "assistant",
                    "parts": dump_parts(parts),
                    "attachments": [],
                    "created_at": utc_now_iso(),
                }
            ],
        )
    except Exception as e:
        agent_logger.error(
            "Failed to save assistant message",
            conversation_id=conversation_id,
            message_id=assistant.id,
            error=str(e),
            exc_info=True,
        )
        return False

    agent_logger.info(
        "Saved assistant message",
        conversation_id=conversation_id,
        message_id=assistant.id,
        parts=len(parts),
    )
    return True
