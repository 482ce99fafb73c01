"""Process-wide handle to the stream buffer backend.

Created lazily on first use, at most once per process. A missing or broken
backend configuration yields None, which turns resumability off while chat
keeps working.
"""

from __future__ import annotations

import threading

from relaychat.config import settings
from relaychat.db.base import get_engine
from relaychat.streams.buffer import BufferStore
from relaychat.utils.logger import stream_logger

_lock = threading.Lock()
_initialized = False
_store: BufferStore | None = None


def _create_store() -> BufferStore | None:
    url = settings.stream_buffer_url
    if not url:
        stream_logger.info(
            "Resumable streams are disabled due to missing stream_buffer_url"
        )
        return None
    try:
        store = BufferStore(get_engine(url), settings.stream_stale_seconds)
        store.ensure_schema()
        store.ping()
    except Exception as e:
        stream_logger.error(
            "Failed to initialize stream buffer backend",
            error=str(e),
            exc_info=True,
        )
        return None
    stream_logger.info("Resumable streams enabled")
    return store


def get_stream_context() -> BufferStore | None:
    """Return the shared buffer store, or None when resumability is disabled."""
    global _initialized, _store
    if _initialized:
        return _store
    with _lock:
        if not _initialized:
            _store = _create_store()
            _initialized = True
    return _store


def reset_stream_context() -> None:
    """Forget the shared store so the next call re-reads configuration."""
    global _initialized, _store
    with _lock:
        if _store is not None:
            _store.engine.dispose()
        _store = None
        _initialized = False


def refresh_stream_settings() -> None:
    """Apply the configured staleness threshold to the shared store.

    In-flight writers and new readers share the store, so they switch to the
    new threshold together.
    """
    with _lock:
        if _store is None:
            return
        threshold = settings.stream_stale_seconds
        previous = _store.stale_seconds
        if threshold == previous:
            return
        try:
            _store.stale_seconds = threshold
        except ValueError as e:
            stream_logger.error("Ignoring invalid staleness threshold", error=str(e))
            return
        stream_logger.info(
            "Stream staleness threshold changed", old=previous, new=threshold
        )
