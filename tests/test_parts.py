"""Tests for stored message part parsing."""

from relaychat.domain.parts import (
    TextPart,
    ToolInvocationPart,
    ToolResultPart,
    dump_parts,
    parse_parts,
)


def test_none_and_bare_string():
    assert parse_parts(None) == []
    assert parse_parts("hello") == [TextPart(text="hello")]


def test_mixed_list_of_strings_and_text_dicts():
    parts = parse_parts(["a", {"type": "text", "text": "b"}])
    assert parts == [TextPart(text="a"), TextPart(text="b")]


def test_nested_tool_invocation_with_inline_result():
    parts = parse_parts(
        [
            {
                "type": "tool-invocation",
                "toolInvocation": {
                    "toolCallId": "c1",
                    "toolName": "get_weather",
                    "args": {"latitude": 1},
                    "state": "result",
                    "result": {"temp": 20},
                },
            }
        ]
    )

    assert parts == [
        ToolInvocationPart(
            tool_call_id="c1", tool_name="get_weather", args={"latitude": 1}
        ),
        ToolResultPart(tool_call_id="c1", tool_name="get_weather", result={"temp": 20}),
    ]


def test_flat_snake_case_tool_parts():
    parts = parse_parts(
        [
            {"type": "tool-call", "tool_call_id": "c2", "tool_name": "x", "args": None},
            {"type": "tool-result", "tool_call_id": "c2", "result": "done"},
        ]
    )

    assert parts == [
        ToolInvocationPart(tool_call_id="c2", tool_name="x", args={}),
        ToolResultPart(tool_call_id="c2", tool_name=None, result="done"),
    ]


def test_unknown_part_types_are_skipped():
    parts = parse_parts([{"type": "reasoning", "text": "hmm"}, 42, "kept"])
    assert parts == [TextPart(text="kept")]


def test_dumped_parts_parse_back():
    parts = [
        TextPart(text="hi"),
        ToolInvocationPart(tool_call_id="c1", tool_name="t", args={"a": 1}),
        ToolResultPart(tool_call_id="c1", tool_name="t", result=[1]),
    ]

    assert parse_parts(dump_parts(parts)) == parts
