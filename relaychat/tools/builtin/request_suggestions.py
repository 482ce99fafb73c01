from __future__ import annotations

import asyncio
import json
import uuid
from typing import Any

from langchain_core.messages import HumanMessage, SystemMessage
from pydantic import BaseModel, Field

from relaychat.db.queries import get_document, save_suggestions
from relaychat.prompts.system import SUGGESTIONS_PROMPT
from relaychat.utils.logger import agent_logger

from ..base_tool import BaseTool

MAX_SUGGESTIONS = 5


class RequestSuggestionsArgs(BaseModel):
    document_id: str = Field(
        ..., description="The ID of the document to request edits"
    )


def parse_suggestions(raw: str) -> list[dict[str, Any]]:
    """Parse the model's JSON array of suggestions, tolerating code fences."""
    text = raw.strip()
    if text.startswith("```"):
        text = text.strip("`")
        if text.startswith("json"):
            text = text[4:]
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        agent_logger.warning("Suggestions response was not valid JSON")
        return []
    if isinstance(data, dict):
        data = data.get("suggestions", [])
    if not isinstance(data, list):
        return []
    items: list[dict[str, Any]] = []
    for item in data:
        if not isinstance(item, dict):
            continue
        original = item.get("originalSentence") or item.get("original_text")
        suggested = item.get("suggestedSentence") or item.get("suggested_text")
        if not original or not suggested:
            continue
        items.append(
            {
                "original_text": str(original),
                "suggested_text": str(suggested),
                "description": item.get("description"),
            }
        )
    return items[:MAX_SUGGESTIONS]


class RequestSuggestionsTool(BaseTool):
    name: str = "request_suggestions"
    description: str = "Request suggestions for a document"
    args_schema: type[BaseModel] | dict[str, Any] | None = RequestSuggestionsArgs

    async def _arun(self, **kwargs: Any) -> dict[str, Any]:
        args = RequestSuggestionsArgs(**kwargs)
        ctx = self.context
        if ctx.engine is None or ctx.provider is None:
            return {"error": "Suggestions are not available"}

        document = await asyncio.to_thread(get_document, ctx.engine, args.document_id)
        if document is None or not document.content:
            return {"error": "Document not found"}

        raw = await ctx.provider.agenerate(
            [
                SystemMessage(content=SUGGESTIONS_PROMPT),
                HumanMessage(content=document.content),
            ]
        )

        suggestions: list[dict[str, Any]] = []
        for item in parse_suggestions(raw):
            suggestion = {
                "id": str(uuid.uuid4()),
                "document_id": document.id,
                "is_resolved": False,
                **item,
            }
            await self.emit_data({"type": "suggestion", "content": suggestion})
            suggestions.append(suggestion)

        if suggestions:
            await asyncio.to_thread(
                save_suggestions,
                ctx.engine,
                [
                    {
                        **s,
                        "document_created_at": document.created_at,
                        "user_id": ctx.user_id,
                    }
                    for s in suggestions
                ],
            )
        await self.emit_data({"type": "finish", "content": ""})

        return {
            "id": document.id,
            "title": document.title,
            "kind": document.kind,
            "message": "Suggestions have been added to the document",
        }
