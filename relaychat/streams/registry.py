"""Stream identity registry.

Every generation attempt gets an opaque stream id recorded against its
conversation before any output exists. The registry only grows; the most
recently registered id is the conversation's active stream.
"""

from __future__ import annotations

import uuid

from sqlalchemy.engine import Engine

from relaychat.db.queries import create_stream_id, get_stream_ids
from relaychat.utils.logger import stream_logger


class StreamRegistry:
    def __init__(self, engine: Engine):
        self._engine = engine

    def register(self, conversation_id: str) -> str:
        """Record a fresh stream id for conversation_id and return it."""
        stream_id = str(uuid.uuid4())
        create_stream_id(self._engine, stream_id, conversation_id)
        stream_logger.debug(
            "Registered stream", stream_id=stream_id, conversation_id=conversation_id
        )
        return stream_id

    def list_stream_ids(self, conversation_id: str) -> list[str]:
        """Stream ids for a conversation in registration order."""
        return get_stream_ids(self._engine, conversation_id)

    def active_stream_id(self, conversation_id: str) -> str | None:
        ids = self.list_stream_ids(conversation_id)
        return ids[-1] if ids else None
