"""Durable chunk buffer for resumable streams.

One `stream_buffers` row per stream holds status, chunk count and the last
write time; each chunk is a `stream_chunks` row with a per-stream sequence
number. A chunk insert and its timestamp refresh commit together, and readers
only see chunks below the committed chunk count, so a reader always gets a
consistent prefix of what the writer produced.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass

from sqlalchemy import delete, select, text
from sqlalchemy.engine import Engine

from relaychat.db.base import get_session
from relaychat.db.models import BufferBaseORM, StreamBufferORM, StreamChunkORM
from relaychat.utils.logger import stream_logger

STATUS_LIVE = "live"
STATUS_FINISHED = "finished"


def is_stale(last_updated_at: float, threshold: float, now: float) -> bool:
    if threshold <= 0:
        raise ValueError("Staleness threshold must be positive")
    return now - last_updated_at >= threshold


@dataclass(frozen=True)
class BufferSnapshot:
    status: str
    chunks: tuple[str, ...]
    last_updated_at: float
    chunk_count: int


class BufferStore:
    """SQL-backed buffer keyed by stream id."""

    def __init__(
        self,
        engine: Engine,
        stale_seconds: float,
        clock: Callable[[], float] = time.time,
    ):
        if stale_seconds <= 0:
            raise ValueError("stale_seconds must be positive")
        self._engine = engine
        self._stale_seconds = stale_seconds
        self._clock = clock

    @property
    def stale_seconds(self) -> float:
        return self._stale_seconds

    @stale_seconds.setter
    def stale_seconds(self, value: float) -> None:
        if value <= 0:
            raise ValueError("stale_seconds must be positive")
        self._stale_seconds = value

    @property
    def engine(self) -> Engine:
        return self._engine

    def ensure_schema(self) -> None:
        BufferBaseORM.metadata.create_all(self._engine)

    def ping(self) -> None:
        with self._engine.connect() as conn:
            conn.execute(text("SELECT 1"))

    def create(self, stream_id: str) -> None:
        now = self._clock()
        with get_session(self._engine) as session:
            session.add(
                StreamBufferORM(
                    stream_id=stream_id,
                    status=STATUS_LIVE,
                    chunk_count=0,
                    created_at=now,
                    last_updated_at=now,
                )
            )
            session.commit()

    def append(self, stream_id: str, chunk: str) -> bool:
        """Append one chunk. Returns False when the buffer is gone or stale.

        A stale buffer is evicted here as well, so the writer never revives
        a stream a reader has already reported as expired.
        """
        now = self._clock()
        with get_session(self._engine) as session:
            buf = session.get(StreamBufferORM, stream_id)
            if buf is None:
                return False
            if is_stale(buf.last_updated_at, self.stale_seconds, now):
                self._delete_in(session, [stream_id])
                session.commit()
                stream_logger.info("Writer found stale buffer", stream_id=stream_id)
                return False
            session.add(
                StreamChunkORM(stream_id=stream_id, seq=buf.chunk_count, data=chunk)
            )
            buf.chunk_count += 1
            buf.last_updated_at = now
            session.commit()
            return True

    def mark_finished(self, stream_id: str) -> bool:
        now = self._clock()
        with get_session(self._engine) as session:
            buf = session.get(StreamBufferORM, stream_id)
            if buf is None:
                return False
            if is_stale(buf.last_updated_at, self.stale_seconds, now):
                self._delete_in(session, [stream_id])
                session.commit()
                return False
            buf.status = STATUS_FINISHED
            buf.last_updated_at = now
            session.commit()
            return True

    def get(self, stream_id: str, offset: int = 0) -> BufferSnapshot | None:
        """Read the buffer state and chunks from offset onwards."""
        with get_session(self._engine) as session:
            buf = session.get(StreamBufferORM, stream_id)
            if buf is None:
                return None
            chunks = session.scalars(
                select(StreamChunkORM.data)
                .where(
                    StreamChunkORM.stream_id == stream_id,
                    StreamChunkORM.seq >= offset,
                    StreamChunkORM.seq < buf.chunk_count,
                )
                .order_by(StreamChunkORM.seq)
            ).all()
            return BufferSnapshot(
                status=buf.status,
                chunks=tuple(chunks),
                last_updated_at=buf.last_updated_at,
                chunk_count=buf.chunk_count,
            )

    def delete(self, stream_id: str) -> None:
        self.delete_many([stream_id])

    def delete_many(self, stream_ids: Iterable[str]) -> None:
        ids = list(stream_ids)
        if not ids:
            return
        with get_session(self._engine) as session:
            self._delete_in(session, ids)
            session.commit()

    @staticmethod
    def _delete_in(session, stream_ids: list[str]) -> None:
        session.execute(
            delete(StreamChunkORM).where(StreamChunkORM.stream_id.in_(stream_ids))
        )
        session.execute(
            delete(StreamBufferORM).where(StreamBufferORM.stream_id.in_(stream_ids))
        )
