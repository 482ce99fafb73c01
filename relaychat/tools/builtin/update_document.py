from __future__ import annotations

import asyncio
from typing import Any

from pydantic import BaseModel, Field

from relaychat.db.queries import get_document, save_document
from relaychat.prompts.system import update_document_prompt

from ..base_tool import BaseTool
from ._documents import stream_document_content


class UpdateDocumentArgs(BaseModel):
    id: str = Field(..., description="The ID of the document to update")
    description: str = Field(
        ..., min_length=1, description="The description of changes that need to be made"
    )


class UpdateDocumentTool(BaseTool):
    name: str = "update_document"
    description: str = "Update a document with the given description."
    args_schema: type[BaseModel] | dict[str, Any] | None = UpdateDocumentArgs

    async def _arun(self, **kwargs: Any) -> dict[str, Any]:
        args = UpdateDocumentArgs(**kwargs)
        ctx = self.context
        if ctx.engine is None:
            return {"error": "Document storage is not available"}

        document = await asyncio.to_thread(get_document, ctx.engine, args.id)
        if document is None or document.user_id != ctx.user_id:
            return {"error": "Document not found"}

        await self.emit_data({"type": "clear", "content": document.title})
        content = await stream_document_content(
            self,
            kind=document.kind,
            system=update_document_prompt(document.content, document.kind),
            user_text=args.description,
        )
        await asyncio.to_thread(
            save_document,
            ctx.engine,
            document_id=document.id,
            user_id=ctx.user_id,
            title=document.title,
            kind=document.kind,
            content=content,
        )
        await self.emit_data({"type": "finish", "content": ""})

        return {
            "id": document.id,
            "title": document.title,
            "kind": document.kind,
            "content": "The document has been updated successfully.",
        }
