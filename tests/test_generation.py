"""Tests for the multi-step generation invoker."""

from typing import Any
from unittest.mock import AsyncMock

import pytest
from conftest import FakeChatModel, FakeProvider, tool_call_chunk
from langchain_core.messages import AIMessage, HumanMessage, SystemMessage, ToolMessage
from pydantic import BaseModel

from relaychat.dialogs.normalizer import HistoryEntry
from relaychat.domain.events import (
    DataEvent,
    ErrorEvent,
    FinishEvent,
    StartEvent,
    TextDeltaEvent,
    ToolCallEvent,
    ToolResultEvent,
)
from relaychat.services.generation import GenerationInvoker, to_langchain_messages
from relaychat.tools import BaseTool, DataSink, ToolContext, ToolManager


class EchoArgs(BaseModel):
    text: str


class EchoTool(BaseTool):
    name: str = "echo"
    description: str = "Echo text back"
    args_schema: type[BaseModel] | dict[str, Any] | None = EchoArgs

    async def _arun(self, **kwargs: Any) -> dict[str, Any]:
        await self.emit_data({"type": "progress", "content": kwargs["text"]})
        return {"echo": kwargs["text"]}


HISTORY = [HistoryEntry(role="user", content="Hello", id="u1")]


def _invoker(model: FakeChatModel, tools: list[BaseTool] | None = None):
    manager = ToolManager()
    for tool in tools or []:
        manager.register(tool)
    return GenerationInvoker(FakeProvider(model), manager)


async def _run(invoker, **kwargs):
    finished = []

    async def on_finish(response):
        finished.append(response)

    kwargs.setdefault("system_prompt", "sys")
    kwargs.setdefault("max_steps", 5)
    events = [
        event
        async for event in invoker.stream(
            HISTORY, on_finish=on_finish, message_id="m1", **kwargs
        )
    ]
    return events, finished[0]


def test_history_maps_to_langchain_roles():
    messages = to_langchain_messages(
        [
            HistoryEntry(role="system", content="s"),
            HistoryEntry(role="user", content="u"),
            HistoryEntry(role="assistant", content="a"),
        ],
        "prompt",
    )

    assert [type(m) for m in messages] == [
        SystemMessage,
        SystemMessage,
        HumanMessage,
        AIMessage,
    ]
    assert messages[0].content == "prompt"


@pytest.mark.asyncio
async def test_text_only_reply():
    model = FakeChatModel([["Hi", " there"]])

    events, response = await _run(_invoker(model))

    assert events[0] == StartEvent(message_id="m1")
    assert [e.text for e in events if isinstance(e, TextDeltaEvent)] == ["Hi", " there"]
    assert events[-1] == FinishEvent(finish_reason="stop")

    assert response.finish_reason == "stop"
    assert len(response.messages) == 1
    reply = response.messages[0]
    assert reply.id == "m1"
    assert reply.content == [{"type": "text", "text": "Hi there"}]

    sent = model.calls[0]
    assert isinstance(sent[0], SystemMessage)
    assert sent[-1].content == "Hello"


@pytest.mark.asyncio
async def test_tool_step_forwards_sink_data_and_feeds_result_back():
    model = FakeChatModel(
        [
            ["Let me check.", tool_call_chunk("echo", {"text": "ping"})],
            ["Done."],
        ]
    )
    invoker = _invoker(model, [EchoTool()])
    context = ToolContext(user_id="user-1", sink=DataSink())

    events, response = await _run(invoker, active_tools=["echo"], context=context)

    kinds = [type(e) for e in events]
    assert kinds == [
        StartEvent,
        TextDeltaEvent,
        ToolCallEvent,
        DataEvent,
        ToolResultEvent,
        TextDeltaEvent,
        FinishEvent,
    ]
    call = events[2]
    assert call.tool_name == "echo"
    assert call.args == {"text": "ping"}
    assert events[3].data == {"type": "progress", "content": "ping"}
    assert events[4].result == {"echo": "ping"}

    # Second step sees the tool call and its result
    second = model.calls[1]
    assert isinstance(second[-2], AIMessage)
    assert second[-2].tool_calls[0]["name"] == "echo"
    assert isinstance(second[-1], ToolMessage)
    assert second[-1].tool_call_id == "call_1"

    assert [p["type"] for p in response.messages[0].content] == [
        "text",
        "tool-call",
        "tool-result",
        "text",
    ]
    assert isinstance(response.messages[1], ToolMessage)
    assert model.bound_tools and model.bound_tools[0].name == "echo"


@pytest.mark.asyncio
async def test_no_tools_means_no_binding():
    model = FakeChatModel([["ok"]])

    await _run(_invoker(model, [EchoTool()]), active_tools=[])

    assert model.bound_tools is None


@pytest.mark.asyncio
async def test_unknown_tool_becomes_error_result():
    model = FakeChatModel([[tool_call_chunk("missing", {})], ["sorry"]])

    events, _ = await _run(_invoker(model, [EchoTool()]), active_tools=["echo"])

    result = next(e for e in events if isinstance(e, ToolResultEvent))
    assert result.result["type"] == "tool_error"
    assert result.result["code"] == "not_found"


@pytest.mark.asyncio
async def test_invalid_tool_args_become_error_result():
    model = FakeChatModel([[tool_call_chunk("echo", {"wrong": 1})], ["sorry"]])

    events, _ = await _run(_invoker(model, [EchoTool()]), active_tools=["echo"])

    result = next(e for e in events if isinstance(e, ToolResultEvent))
    assert result.result["code"] == "args_validation"


@pytest.mark.asyncio
async def test_llm_failure_ends_with_error():
    model = FakeChatModel([["partial", RuntimeError("upstream down")]])

    events, response = await _run(_invoker(model))

    errors = [e for e in events if isinstance(e, ErrorEvent)]
    assert errors and "upstream down" in errors[0].error
    assert events[-1] == FinishEvent(finish_reason="error")
    assert response.finish_reason == "error"
    assert "upstream down" in response.error
    # Text produced before the failure is still part of the reply
    assert response.messages[0].content == [{"type": "text", "text": "partial"}]


@pytest.mark.asyncio
async def test_step_budget_exhausted():
    model = FakeChatModel(
        [
            [tool_call_chunk("echo", {"text": "1"}, call_id="c1")],
            [tool_call_chunk("echo", {"text": "2"}, call_id="c2")],
            ["unreachable"],
        ]
    )

    events, response = await _run(
        _invoker(model, [EchoTool()]), active_tools=["echo"], max_steps=2
    )

    assert len(model.calls) == 2
    assert events[-1] == FinishEvent(finish_reason="tool-calls")
    assert response.finish_reason == "tool-calls"


@pytest.mark.asyncio
async def test_empty_reply_produces_no_message():
    model = FakeChatModel([[]])

    events, response = await _run(_invoker(model))

    assert [type(e) for e in events] == [StartEvent, FinishEvent]
    assert response.messages == []


@pytest.mark.asyncio
async def test_on_finish_failure_still_finishes():
    model = FakeChatModel([["hi"]])

    async def broken(_response):
        raise RuntimeError("db gone")

    events = [
        e
        async for e in _invoker(model).stream(
            HISTORY, system_prompt=None, max_steps=1, on_finish=broken
        )
    ]

    assert events[-1] == FinishEvent(finish_reason="stop")


@pytest.mark.asyncio
async def test_tool_args_named_like_call_parameters_reach_the_tool():
    model = FakeChatModel(
        [[tool_call_chunk("echo", {"text": "ping", "name": "x"})], ["done"]]
    )

    events, _ = await _run(_invoker(model, [EchoTool()]), active_tools=["echo"])

    result = next(e for e in events if isinstance(e, ToolResultEvent))
    assert result.result == {"echo": "ping"}
    assert events[-1] == FinishEvent(finish_reason="stop")


@pytest.mark.asyncio
async def test_unexpected_failure_still_finishes_and_saves_partial_reply(
    monkeypatch,
):
    model = FakeChatModel(
        [["Let me check.", tool_call_chunk("echo", {"text": "ping"})], ["unused"]]
    )
    invoker = _invoker(model, [EchoTool()])
    monkeypatch.setattr(
        invoker.tool_manager, "run_tool", AsyncMock(side_effect=RuntimeError("boom"))
    )

    events, response = await _run(invoker, active_tools=["echo"])

    assert [type(e) for e in events] == [
        StartEvent,
        TextDeltaEvent,
        ToolCallEvent,
        ErrorEvent,
        FinishEvent,
    ]
    assert "boom" in events[3].error
    assert events[-1] == FinishEvent(finish_reason="error")
    assert response.finish_reason == "error"
    assert [p["type"] for p in response.messages[0].content] == ["text", "tool-call"]
