"""Shared helpers for the document tools: content streaming."""

from __future__ import annotations

from typing import Any, Literal

from langchain_core.messages import HumanMessage, SystemMessage

DocumentKind = Literal["text", "code"]

DELTA_TYPES: dict[str, str] = {"text": "text-delta", "code": "code-delta"}


async def stream_document_content(
    tool: Any,
    *,
    kind: str,
    system: str,
    user_text: str,
) -> str:
    """Generate document content, forwarding each delta to the tool's sink."""
    provider = tool.context.provider
    if provider is None:
        raise RuntimeError("Document tools require an LLM provider")
    model = provider.get_chat_model()
    delta_type = DELTA_TYPES.get(kind, "text-delta")
    content = ""
    async for chunk in model.astream(
        [SystemMessage(content=system), HumanMessage(content=user_text)]
    ):
        text = chunk.content if isinstance(chunk.content, str) else ""
        if not text:
            continue
        content += text
        await tool.emit_data({"type": delta_type, "content": text})
    return content
