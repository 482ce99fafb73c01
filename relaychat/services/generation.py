"""Generation invoker: multi-step LLM calls with tool execution.

Turns normalized history into a stream of chunk events. Each step streams
the model's text, then runs any requested tools and feeds their results
into the next step. Tools write side-channel payloads to the data sink;
those are forwarded as `data` events while the tool is still running.
"""

from __future__ import annotations

import asyncio
import json
import uuid
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import aclosing
from dataclasses import dataclass, field
from typing import Any

from langchain_core.messages import (
    AIMessage,
    BaseMessage,
    HumanMessage,
    SystemMessage,
    ToolMessage,
)
from langchain_core.messages.tool import ToolCallChunk

from relaychat.dialogs.normalizer import HistoryEntry
from relaychat.domain.events import (
    DataEvent,
    ErrorEvent,
    FinishEvent,
    StartEvent,
    StreamEvent,
    TextDeltaEvent,
    ToolCallEvent,
    ToolResultEvent,
)
from relaychat.llm.provider import LLMProvider
from relaychat.tools.context import DataSink, ToolContext
from relaychat.tools.tool_manager import ToolManager
from relaychat.utils.logger import agent_logger

AccumulatedToolCall = dict[str, Any]


@dataclass
class GenerationResponse:
    """Final output of one generation: what gets persisted."""

    messages: list[BaseMessage] = field(default_factory=list)
    finish_reason: str = "stop"
    error: str | None = None


OnFinish = Callable[[GenerationResponse], Awaitable[Any]]


def to_langchain_messages(
    history: list[HistoryEntry], system_prompt: str | None
) -> list[BaseMessage]:
    messages: list[BaseMessage] = []
    if system_prompt:
        messages.append(SystemMessage(content=system_prompt))
    for entry in history:
        if entry.role == "system":
            messages.append(SystemMessage(content=entry.content))
        elif entry.role == "assistant":
            messages.append(AIMessage(content=entry.content))
        else:
            messages.append(HumanMessage(content=entry.content))
    return messages


class GenerationInvoker:
    def __init__(self, provider: LLMProvider, tool_manager: ToolManager | None = None):
        self.provider = provider
        self.tool_manager = tool_manager or ToolManager()

    async def stream(
        self,
        history: list[HistoryEntry],
        *,
        system_prompt: str | None,
        max_steps: int,
        active_tools: list[str] | None = None,
        context: ToolContext | None = None,
        on_finish: OnFinish | None = None,
        message_id: str | None = None,
    ) -> AsyncIterator[StreamEvent]:
        """Run the generation and yield chunk events.

        The final response is handed to on_finish before the finish event is
        yielded. Upstream failures end the stream with an error event and
        finish reason "error"; no step is retried.
        """
        message_id = message_id or str(uuid.uuid4())
        yield StartEvent(message_id=message_id)

        parts: list[dict[str, Any]] = []
        tool_messages: list[ToolMessage] = []
        finish_reason = "stop"
        error: str | None = None

        steps = self._run_steps(
            history,
            system_prompt=system_prompt,
            max_steps=max_steps,
            active_tools=active_tools,
            context=context,
            parts=parts,
            tool_messages=tool_messages,
        )
        try:
            async with aclosing(steps):
                async for event in steps:
                    if isinstance(event, FinishEvent):
                        finish_reason = event.finish_reason
                        continue
                    if isinstance(event, ErrorEvent):
                        error = event.error
                    yield event
        except Exception as e:
            agent_logger.error("Generation failed", error=str(e), exc_info=True)
            error = str(e)
            finish_reason = "error"
            yield ErrorEvent(error=f"Generation failed: {e}")

        response = GenerationResponse(finish_reason=finish_reason, error=error)
        if parts:
            response.messages.append(AIMessage(content=parts, id=message_id))
            response.messages.extend(tool_messages)

        if on_finish is not None:
            try:
                await on_finish(response)
            except Exception as e:
                agent_logger.error(
                    "on_finish callback failed", error=str(e), exc_info=True
                )

        yield FinishEvent(finish_reason=finish_reason)

    async def _run_steps(
        self,
        history: list[HistoryEntry],
        *,
        system_prompt: str | None,
        max_steps: int,
        active_tools: list[str] | None,
        context: ToolContext | None,
        parts: list[dict[str, Any]],
        tool_messages: list[ToolMessage],
    ) -> AsyncIterator[StreamEvent]:
        """Step loop. Appends to parts as it goes and ends with a FinishEvent."""
        messages = to_langchain_messages(history, system_prompt)
        tools = self.tool_manager.list_tools(active_tools or [])
        self.tool_manager.set_context(context)
        llm: Any = (
            self.provider.bind_tools(tools) if tools else self.provider.get_chat_model()
        )
        stream_kwargs = self.provider.get_stream_kwargs()

        for step in range(max_steps):
            accumulated: list[AccumulatedToolCall] = []
            current: AccumulatedToolCall | None = None
            step_text = ""
            try:
                async for chunk in llm.astream(messages, **stream_kwargs):
                    text = self._extract_text_from_content(chunk.content)
                    if text:
                        step_text += text
                        self._append_text(parts, text)
                        yield TextDeltaEvent(text=text)
                    for tc_chunk in getattr(chunk, "tool_call_chunks", None) or []:
                        current = self._accumulate_tool_call_chunk(
                            tc_chunk, current, accumulated
                        )
            except Exception as e:
                agent_logger.error(
                    "LLM streaming failed", step=step, error=str(e), exc_info=True
                )
                yield ErrorEvent(error=f"LLM error: {e}")
                yield FinishEvent(finish_reason="error")
                return

            if current and current["name"]:
                accumulated.append(current)
            tool_calls = self._build_tool_calls_payload(accumulated)
            if not tool_calls:
                yield FinishEvent(finish_reason="stop")
                return

            messages.append(AIMessage(content=step_text, tool_calls=tool_calls))
            for call in tool_calls:
                parts.append(
                    {
                        "type": "tool-call",
                        "toolCallId": call["id"],
                        "toolName": call["name"],
                        "args": call["args"],
                    }
                )
                yield ToolCallEvent(
                    tool_call_id=call["id"], tool_name=call["name"], args=call["args"]
                )

                outcome: dict[str, Any] = {}
                sink = context.sink if context is not None else None
                async for data in self._run_tool(call, sink, outcome):
                    yield DataEvent(data=data)
                result = outcome.get("result")

                parts.append(
                    {
                        "type": "tool-result",
                        "toolCallId": call["id"],
                        "toolName": call["name"],
                        "result": result,
                    }
                )
                yield ToolResultEvent(
                    tool_call_id=call["id"], tool_name=call["name"], result=result
                )
                tool_message = ToolMessage(
                    content=json.dumps(result, ensure_ascii=False, default=str),
                    tool_call_id=call["id"],
                    name=call["name"],
                )
                tool_messages.append(tool_message)
                messages.append(tool_message)

        # Step budget spent while the model still wanted tools
        agent_logger.info("Step budget exhausted", max_steps=max_steps)
        yield FinishEvent(finish_reason="tool-calls")

    async def _run_tool(
        self,
        call: dict[str, Any],
        sink: DataSink | None,
        outcome: dict[str, Any],
    ) -> AsyncIterator[dict[str, Any]]:
        """Run one tool call, yielding sink payloads until it completes.

        The tool result is stored in outcome["result"].
        """
        task = asyncio.ensure_future(
            self.tool_manager.run_tool(call["name"], call["args"])
        )
        getter: asyncio.Future[dict[str, Any]] | None = None
        try:
            if sink is not None:
                while True:
                    getter = asyncio.ensure_future(sink.get())
                    done, _ = await asyncio.wait(
                        {task, getter}, return_when=asyncio.FIRST_COMPLETED
                    )
                    if getter in done:
                        yield getter.result()
                        getter = None
                        continue
                    break
            outcome["result"] = await task
            if sink is not None:
                for data in sink.drain():
                    yield data
        finally:
            if getter is not None and not getter.done():
                getter.cancel()
            if not task.done():
                task.cancel()

    @staticmethod
    def _append_text(parts: list[dict[str, Any]], text: str) -> None:
        if parts and parts[-1]["type"] == "text":
            parts[-1]["text"] += text
        else:
            parts.append({"type": "text", "text": text})

    @staticmethod
    def _extract_text_from_content(content: Any) -> str | None:
        """Extract text string from string or list-of-blocks content."""
        if isinstance(content, str):
            return content if content else None

        text_parts: list[str] = []
        for item in content or []:
            if isinstance(item, str):
                text_parts.append(item)
            elif isinstance(item, dict) and item.get("type") == "text":
                text = item.get("text")
                if text:
                    text_parts.append(text)
        return "".join(text_parts) if text_parts else None

    @staticmethod
    def _accumulate_tool_call_chunk(
        tc_chunk: ToolCallChunk,
        current_tool_call: AccumulatedToolCall | None,
        accumulated_tool_calls: list[AccumulatedToolCall],
    ) -> AccumulatedToolCall | None:
        """Process a tool_call_chunk and update accumulation state.

        Returns the updated current_tool_call (or a new one if started).
        """
        chunk_index = tc_chunk.get("index")
        chunk_id = tc_chunk.get("id")
        chunk_name = tc_chunk.get("name")
        chunk_args = tc_chunk.get("args")

        if chunk_index is not None:
            if current_tool_call and current_tool_call["index"] == chunk_index:
                if chunk_id and not current_tool_call["id"]:
                    current_tool_call["id"] = chunk_id
                if chunk_name:
                    current_tool_call["name"] += chunk_name
                if chunk_args:
                    current_tool_call["args"] += chunk_args
            else:
                if current_tool_call and current_tool_call["name"]:
                    accumulated_tool_calls.append(current_tool_call)
                current_tool_call = {
                    "index": chunk_index,
                    "id": chunk_id or "",
                    "name": chunk_name or "",
                    "args": chunk_args or "",
                }
        elif current_tool_call:
            if chunk_name:
                current_tool_call["name"] += chunk_name
            if chunk_args:
                current_tool_call["args"] += chunk_args

        return current_tool_call

    @staticmethod
    def _build_tool_calls_payload(
        accumulated_tool_calls: list[AccumulatedToolCall],
    ) -> list[dict[str, Any]]:
        """Convert accumulated tool call chunks into LangChain tool calls.

        Calls without an id are dropped.
        """
        payload: list[dict[str, Any]] = []
        for tool_call in accumulated_tool_calls:
            name = tool_call["name"]
            try:
                args = json.loads(tool_call["args"] or "{}")
            except json.JSONDecodeError:
                args = {}
            if not isinstance(args, dict):
                args = {}
            if not tool_call["id"]:
                agent_logger.error(
                    "Missing tool_call id in streamed chunks; skipping call",
                    tool_name=name,
                )
                continue
            payload.append({"name": name, "args": args, "id": tool_call["id"]})
        return payload
