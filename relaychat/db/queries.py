"""Row-level operations on the chat database.

Each function opens a short-lived session, commits its own work and returns
detached ORM rows.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Any

from sqlalchemy import delete, func, select
from sqlalchemy.engine import Engine

from relaychat.db.base import get_session, to_utc_iso, utc_now_iso
from relaychat.db.models import (
    BaseORM,
    ConversationORM,
    DocumentORM,
    MessageORM,
    StreamHandleORM,
    SuggestionORM,
)


def init_db(engine: Engine) -> None:
    BaseORM.metadata.create_all(engine)


# Conversations


def get_conversation(engine: Engine, conversation_id: str) -> ConversationORM | None:
    with get_session(engine) as session:
        return session.get(ConversationORM, conversation_id)


def _conversation_row(
    *,
    conversation_id: str,
    owner_id: str,
    title: str,
    visibility: str = "private",
) -> ConversationORM:
    return ConversationORM(
        id=conversation_id,
        owner_id=owner_id,
        title=title,
        visibility=visibility,
        created_at=utc_now_iso(),
    )


def save_conversation(
    engine: Engine,
    *,
    conversation_id: str,
    owner_id: str,
    title: str,
    visibility: str = "private",
) -> ConversationORM:
    with get_session(engine) as session:
        row = _conversation_row(
            conversation_id=conversation_id,
            owner_id=owner_id,
            title=title,
            visibility=visibility,
        )
        session.add(row)
        session.commit()
        session.refresh(row)
        session.expunge(row)
        return row


def delete_conversation(
    engine: Engine, conversation_id: str
) -> tuple[dict[str, Any] | None, list[str]]:
    """Delete a conversation with its messages and stream handles.

    Returns the deleted record and the stream ids that were registered for it,
    so the caller can evict their buffers.
    """
    with get_session(engine) as session:
        row = session.get(ConversationORM, conversation_id)
        if row is None:
            return None, []
        stream_ids = list(
            session.scalars(
                select(StreamHandleORM.id)
                .where(StreamHandleORM.conversation_id == conversation_id)
                .order_by(StreamHandleORM.seq)
            )
        )
        session.execute(
            delete(StreamHandleORM).where(
                StreamHandleORM.conversation_id == conversation_id
            )
        )
        session.execute(
            delete(MessageORM).where(MessageORM.conversation_id == conversation_id)
        )
        record = row.to_dict()
        session.delete(row)
        session.commit()
        return record, stream_ids


# Messages


def get_messages(engine: Engine, conversation_id: str) -> list[MessageORM]:
    with get_session(engine) as session:
        rows = session.scalars(
            select(MessageORM)
            .where(MessageORM.conversation_id == conversation_id)
            .order_by(MessageORM.created_at)
        ).all()
        session.expunge_all()
        return list(rows)


def message_exists(engine: Engine, message_id: str) -> bool:
    with get_session(engine) as session:
        return session.get(MessageORM, message_id) is not None


def save_messages(
    engine: Engine,
    messages: list[dict[str, Any]],
    *,
    conversation: dict[str, Any] | None = None,
) -> None:
    """Insert messages in one transaction.

    When conversation is given (keyword arguments of save_conversation) the
    conversation row is created in the same transaction, so a failed message
    insert leaves no conversation behind.
    """
    with get_session(engine) as session:
        if conversation is not None:
            session.add(_conversation_row(**conversation))
            session.flush()
        for message in messages:
            created_at = message.get("created_at")
            if isinstance(created_at, datetime):
                created_at = to_utc_iso(created_at)
            session.add(
                MessageORM(
                    id=message["id"],
                    conversation_id=message["conversation_id"],
                    role=message["role"],
                    parts=message.get("parts", []),
                    attachments=message.get("attachments", []),
                    created_at=created_at or utc_now_iso(),
                    client_created_at=message.get("client_created_at"),
                )
            )
        session.commit()


def count_user_messages(engine: Engine, user_id: str, *, hours: int = 24) -> int:
    """Count user-role messages in conversations owned by user_id within a window.

    The window applies to the server receive time of each message.
    """
    since = to_utc_iso(datetime.now(UTC) - timedelta(hours=hours))
    with get_session(engine) as session:
        stmt = (
            select(func.count(MessageORM.id))
            .join(ConversationORM, MessageORM.conversation_id == ConversationORM.id)
            .where(
                ConversationORM.owner_id == user_id,
                MessageORM.role == "user",
                MessageORM.created_at >= since,
            )
        )
        return int(session.scalar(stmt) or 0)


# Stream handles


def create_stream_id(engine: Engine, stream_id: str, conversation_id: str) -> None:
    with get_session(engine) as session:
        session.add(
            StreamHandleORM(
                id=stream_id,
                conversation_id=conversation_id,
                created_at=utc_now_iso(),
            )
        )
        session.commit()


def get_stream_ids(engine: Engine, conversation_id: str) -> list[str]:
    with get_session(engine) as session:
        return list(
            session.scalars(
                select(StreamHandleORM.id)
                .where(StreamHandleORM.conversation_id == conversation_id)
                .order_by(StreamHandleORM.seq)
            )
        )


# Documents


def save_document(
    engine: Engine,
    *,
    document_id: str,
    user_id: str,
    title: str,
    kind: str,
    content: str,
) -> DocumentORM:
    with get_session(engine) as session:
        row = DocumentORM(
            id=document_id,
            created_at=utc_now_iso(),
            user_id=user_id,
            title=title,
            kind=kind,
            content=content,
        )
        session.add(row)
        session.commit()
        session.refresh(row)
        session.expunge(row)
        return row


def get_document(engine: Engine, document_id: str) -> DocumentORM | None:
    """Return the newest version of a document."""
    with get_session(engine) as session:
        row = session.scalars(
            select(DocumentORM)
            .where(DocumentORM.id == document_id)
            .order_by(DocumentORM.created_at.desc())
            .limit(1)
        ).first()
        if row is not None:
            session.expunge(row)
        return row


def save_suggestions(engine: Engine, suggestions: list[dict[str, Any]]) -> None:
    with get_session(engine) as session:
        for suggestion in suggestions:
            session.add(
                SuggestionORM(
                    id=suggestion["id"],
                    document_id=suggestion["document_id"],
                    document_created_at=suggestion["document_created_at"],
                    user_id=suggestion["user_id"],
                    original_text=suggestion["original_text"],
                    suggested_text=suggestion["suggested_text"],
                    description=suggestion.get("description"),
                    is_resolved=False,
                    created_at=utc_now_iso(),
                )
            )
        session.commit()
