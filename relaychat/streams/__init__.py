"""Resumable stream plumbing: registry, buffer store and coordinator."""

from .buffer import BufferSnapshot, BufferStore
from .context import (
    get_stream_context,
    refresh_stream_settings,
    reset_stream_context,
)
from .coordinator import ResumableStreamCoordinator, StreamLookup, StreamStatus
from .registry import StreamRegistry

__all__ = [
    "BufferSnapshot",
    "BufferStore",
    "ResumableStreamCoordinator",
    "StreamLookup",
    "StreamRegistry",
    "StreamStatus",
    "get_stream_context",
    "refresh_stream_settings",
    "reset_stream_context",
]
