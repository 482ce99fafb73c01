from __future__ import annotations

import asyncio
import uuid
from typing import Any

from pydantic import BaseModel, Field

from relaychat.db.queries import save_document
from relaychat.prompts.system import document_prompt

from ..base_tool import BaseTool
from ._documents import DocumentKind, stream_document_content


class CreateDocumentArgs(BaseModel):
    title: str = Field(..., min_length=1, description="Document title")
    kind: DocumentKind = Field("text", description="Kind of document to create")


class CreateDocumentTool(BaseTool):
    name: str = "create_document"
    description: str = (
        "Create a document for writing or content creation activities. This tool "
        "generates the document contents from the title and kind."
    )
    args_schema: type[BaseModel] | dict[str, Any] | None = CreateDocumentArgs

    async def _arun(self, **kwargs: Any) -> dict[str, Any]:
        args = CreateDocumentArgs(**kwargs)
        ctx = self.context
        document_id = str(uuid.uuid4())

        await self.emit_data({"type": "kind", "content": args.kind})
        await self.emit_data({"type": "id", "content": document_id})
        await self.emit_data({"type": "title", "content": args.title})
        await self.emit_data({"type": "clear", "content": ""})

        content = await stream_document_content(
            self,
            kind=args.kind,
            system=document_prompt(args.kind),
            user_text=args.title,
        )

        if ctx.engine is not None:
            await asyncio.to_thread(
                save_document,
                ctx.engine,
                document_id=document_id,
                user_id=ctx.user_id,
                title=args.title,
                kind=args.kind,
                content=content,
            )
        await self.emit_data({"type": "finish", "content": ""})

        return {
            "id": document_id,
            "title": args.title,
            "kind": args.kind,
            "content": "A document was created and is now visible to the user.",
        }
