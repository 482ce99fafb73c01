from __future__ import annotations

from sqlalchemy.engine import Engine

from relaychat.config import settings
from relaychat.db.base import get_engine as _mk_engine
from relaychat.db.queries import init_db
from relaychat.services.chat_service import ChatService
from relaychat.streams.context import get_stream_context, refresh_stream_settings
from relaychat.streams.coordinator import ResumableStreamCoordinator

_chat_service: ChatService | None = None
_coordinator: ResumableStreamCoordinator | None = None
_db_engine: Engine | None = None


def get_db_engine() -> Engine:
    """Singleton SQLAlchemy Engine for the chat database.

    Engine is created on first access, tables are created if missing.
    """
    global _db_engine
    if _db_engine is None:
        _db_engine = _mk_engine(settings.database_url)
        init_db(_db_engine)
    return _db_engine


def get_stream_coordinator() -> ResumableStreamCoordinator:
    global _coordinator
    if _coordinator is None:
        _coordinator = ResumableStreamCoordinator(
            get_stream_context(),
            stale_seconds=settings.stream_stale_seconds,
            max_duration=settings.max_duration_seconds,
            poll_interval=settings.stream_poll_interval_seconds,
        )
    return _coordinator


def get_chat_service() -> ChatService:
    global _chat_service
    if _chat_service is None:
        _chat_service = ChatService(get_db_engine(), get_stream_coordinator())
    return _chat_service


def invalidate_chat_service() -> None:
    """Drop cached service objects so the next request sees fresh config."""
    global _chat_service, _coordinator
    _chat_service = None
    _coordinator = None
    refresh_stream_settings()


def dispose_db_engine() -> None:
    """Dispose the shared Engine if it exists (called on app shutdown)."""
    global _db_engine
    try:
        if _db_engine is not None:
            _db_engine.dispose()
    finally:
        _db_engine = None
