"""Tests for committing the final assistant message."""

from unittest.mock import patch

from langchain_core.messages import AIMessage, ToolMessage

from relaychat.db.queries import get_messages, save_conversation
from relaychat.domain.parts import (
    StoredMessage,
    TextPart,
    ToolInvocationPart,
    ToolResultPart,
)
from relaychat.services.generation import GenerationResponse
from relaychat.services.persistence import persist_final_response, to_stored_parts


def _conversation(engine, cid="conv-1"):
    save_conversation(engine, conversation_id=cid, owner_id="u1", title="t")
    return cid


def test_string_content_becomes_single_text_part():
    assert to_stored_parts("hello") == [TextPart(text="hello")]


def test_structured_content_maps_each_part():
    parts = to_stored_parts(
        [
            {"type": "text", "text": "Checking"},
            {
                "type": "tool-call",
                "toolCallId": "c1",
                "toolName": "get_weather",
                "args": {"latitude": 1},
            },
            {"type": "tool-result", "toolCallId": "c1", "toolName": "get_weather", "result": 3},
            {"type": "image_url", "image_url": "x"},
        ]
    )

    assert parts == [
        TextPart(text="Checking"),
        ToolInvocationPart(
            tool_call_id="c1", tool_name="get_weather", args={"latitude": 1}
        ),
        ToolResultPart(tool_call_id="c1", tool_name="get_weather", result=3),
    ]


def test_persists_last_assistant_message(engine):
    cid = _conversation(engine)
    response = GenerationResponse(
        messages=[
            AIMessage(content="draft", id="early"),
            ToolMessage(content="{}", tool_call_id="c1"),
            AIMessage(content=[{"type": "text", "text": "Hi there"}], id="final"),
        ]
    )

    assert persist_final_response(engine, cid, response) is True

    rows = get_messages(engine, cid)
    assert [r.id for r in rows] == ["final"]
    stored = StoredMessage.from_row(rows[0])
    assert stored.role == "assistant"
    assert stored.parts == [TextPart(text="Hi there")]


def test_missing_assistant_message_is_reported_not_raised(engine):
    cid = _conversation(engine)

    assert persist_final_response(engine, cid, GenerationResponse()) is False
    assert get_messages(engine, cid) == []


def test_write_failure_is_logged_not_raised(engine):
    cid = _conversation(engine)
    response = GenerationResponse(messages=[AIMessage(content="x", id="m1")])

    with patch(
        "relaychat.services.persistence.save_messages",
        side_effect=RuntimeError("disk full"),
    ):
        assert persist_final_response(engine, cid, response) is False
