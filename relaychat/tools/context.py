from __future__ import annotations

import asyncio
from typing import Any

from pydantic import BaseModel, ConfigDict


class DataSink:
    """Side channel a running tool writes to.

    The generation loop drains it while the tool runs and forwards each
    payload as a `data` chunk.
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue()

    async def write(self, data: dict[str, Any]) -> None:
        await self._queue.put(data)

    async def get(self) -> dict[str, Any]:
        return await self._queue.get()

    def drain(self) -> list[dict[str, Any]]:
        items: list[dict[str, Any]] = []
        while True:
            try:
                items.append(self._queue.get_nowait())
            except asyncio.QueueEmpty:
                return items


class ToolContext(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    user_id: str
    user_type: str = "regular"
    conversation_id: str | None = None
    # LLMProvider used by tools that generate content
    provider: Any | None = None
    # SQLAlchemy engine for document storage
    engine: Any | None = None
    sink: DataSink | None = None
