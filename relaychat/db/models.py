from __future__ import annotations

from typing import Any

from sqlalchemy import JSON, Boolean, Float, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class BaseORM(DeclarativeBase):
    pass


class ConversationORM(BaseORM):
    __tablename__ = "conversations"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    owner_id: Mapped[str] = mapped_column(String, index=True)
    title: Mapped[str] = mapped_column(Text)
    visibility: Mapped[str] = mapped_column(String, default="private")
    created_at: Mapped[str] = mapped_column(String)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "ownerId": self.owner_id,
            "title": self.title,
            "visibility": self.visibility,
            "createdAt": self.created_at,
        }


class MessageORM(BaseORM):
    __tablename__ = "messages"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    conversation_id: Mapped[str] = mapped_column(
        String, ForeignKey("conversations.id", ondelete="CASCADE"), index=True
    )
    role: Mapped[str] = mapped_column(String)
    # Stored as JSON documents; legacy rows may hold a bare string
    parts: Mapped[Any] = mapped_column(JSON)
    attachments: Mapped[Any] = mapped_column(JSON, default=list)
    # Server receive time; the client's own timestamp is kept for reference only
    created_at: Mapped[str] = mapped_column(String)
    client_created_at: Mapped[str | None] = mapped_column(String, nullable=True)

    __table_args__ = (
        Index("ix_messages_conversation_created", "conversation_id", "created_at"),
    )


class StreamHandleORM(BaseORM):
    """Registered generation attempts. seq gives registration order."""

    __tablename__ = "stream_handles"

    seq: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    id: Mapped[str] = mapped_column(String, unique=True)
    conversation_id: Mapped[str] = mapped_column(
        String, ForeignKey("conversations.id", ondelete="CASCADE"), index=True
    )
    created_at: Mapped[str] = mapped_column(String)


class DocumentORM(BaseORM):
    """Documents written by the document tools. Each save is a new version."""

    __tablename__ = "documents"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    created_at: Mapped[str] = mapped_column(String, primary_key=True)
    user_id: Mapped[str] = mapped_column(String, index=True)
    title: Mapped[str] = mapped_column(Text)
    kind: Mapped[str] = mapped_column(String, default="text")
    content: Mapped[str | None] = mapped_column(Text, nullable=True)


class SuggestionORM(BaseORM):
    __tablename__ = "suggestions"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    document_id: Mapped[str] = mapped_column(String, index=True)
    document_created_at: Mapped[str] = mapped_column(String)
    user_id: Mapped[str] = mapped_column(String)
    original_text: Mapped[str] = mapped_column(Text)
    suggested_text: Mapped[str] = mapped_column(Text)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_resolved: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[str] = mapped_column(String)


class BufferBaseORM(DeclarativeBase):
    """Metadata for the resumable stream buffer store.

    Kept apart from BaseORM because the buffer lives in its own database.
    """


class StreamBufferORM(BufferBaseORM):
    __tablename__ = "stream_buffers"

    stream_id: Mapped[str] = mapped_column(String, primary_key=True)
    status: Mapped[str] = mapped_column(String, default="live")
    chunk_count: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[float] = mapped_column(Float)
    last_updated_at: Mapped[float] = mapped_column(Float)


class StreamChunkORM(BufferBaseORM):
    __tablename__ = "stream_chunks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    stream_id: Mapped[str] = mapped_column(String)
    seq: Mapped[int] = mapped_column(Integer)
    data: Mapped[str] = mapped_column(Text)

    __table_args__ = (
        Index("ix_stream_chunks_stream_seq", "stream_id", "seq", unique=True),
    )
