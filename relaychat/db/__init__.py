"""Database package: engine/session management and ORM models."""

from .base import get_engine, get_session
from .models import (
    BaseORM,
    BufferBaseORM,
    ConversationORM,
    DocumentORM,
    MessageORM,
    StreamBufferORM,
    StreamChunkORM,
    StreamHandleORM,
    SuggestionORM,
)

__all__ = [
    "get_engine",
    "get_session",
    "BaseORM",
    "BufferBaseORM",
    "ConversationORM",
    "MessageORM",
    "StreamHandleORM",
    "DocumentORM",
    "SuggestionORM",
    "StreamBufferORM",
    "StreamChunkORM",
]
