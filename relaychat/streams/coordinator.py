"""Resumable stream coordinator.

`wrap` detaches generation from the request that started it: a background
producer drains the chunk source into the durable buffer and an in-process
queue, and the first caller reads from the queue. Later callers reattach
through `lookup` / `follow`, which only read the buffer.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass
from enum import Enum

from relaychat.core.background_tasks import (
    BackgroundTaskManager,
    get_background_manager,
)
from relaychat.domain.events import ErrorEvent, FinishEvent, is_finish_chunk
from relaychat.streams import buffer as buffer_mod
from relaychat.streams.buffer import BufferStore
from relaychat.utils.logger import stream_log, stream_logger


class StreamStatus(str, Enum):
    LIVE = "live"
    FINISHED = "finished"
    EXPIRED = "expired"


@dataclass(frozen=True)
class StreamLookup:
    status: StreamStatus
    chunks: tuple[str, ...] = ()
    last_updated_at: float | None = None

    @property
    def data(self) -> str:
        return "".join(self.chunks)


class ResumableStreamCoordinator:
    """Tees generation output into a buffer and serves reattachment.

    With store=None every operation degrades: `wrap` passes chunks through
    (still detached from the caller) and `lookup` reports nothing.

    When a store is given its threshold is the one used for staleness, so
    the writer and every reader agree on it.
    """

    def __init__(
        self,
        store: BufferStore | None,
        *,
        stale_seconds: float,
        max_duration: float,
        poll_interval: float = 0.5,
        background: BackgroundTaskManager | None = None,
        clock: Callable[[], float] = time.time,
    ):
        if stale_seconds <= 0:
            raise ValueError("stale_seconds must be positive")
        self._store = store
        self._stale_seconds = stale_seconds
        self.max_duration = max_duration
        self.poll_interval = poll_interval
        self._background = background or get_background_manager()
        self._clock = clock

    @property
    def enabled(self) -> bool:
        return self._store is not None

    @property
    def stale_seconds(self) -> float:
        if self._store is not None:
            return self._store.stale_seconds
        return self._stale_seconds

    # Writing

    def wrap(self, stream_id: str, source: AsyncIterator[str]) -> AsyncIterator[str]:
        """Start producing stream_id from source and return the live reader.

        The producer runs as a background task; closing the returned
        iterator does not stop it.
        """
        queue: asyncio.Queue[str | None] = asyncio.Queue()
        self._background.create_task(
            self._produce(stream_id, source, queue), name=f"stream:{stream_id}"
        )
        return self._consume(queue)

    async def _produce(
        self,
        stream_id: str,
        source: AsyncIterator[str],
        queue: asyncio.Queue[str | None],
    ) -> None:
        buffering = await self._create_buffer(stream_id)
        count = 0
        finish_seen = False
        try:
            async with asyncio.timeout(self.max_duration):
                async for chunk in source:
                    count += 1
                    finish_seen = finish_seen or is_finish_chunk(chunk)
                    queue.put_nowait(chunk)
                    if buffering:
                        buffering = await self._append(stream_id, chunk)
        except TimeoutError:
            # Buffer stays live; staleness reclassifies it later
            stream_logger.warning(
                "Generation exceeded max duration, abandoning",
                stream_id=stream_id,
                max_duration=self.max_duration,
                chunks=count,
            )
            aclose = getattr(source, "aclose", None)
            if aclose is not None:
                try:
                    await aclose()
                except Exception as e:
                    stream_logger.debug(
                        "Error closing abandoned source",
                        stream_id=stream_id,
                        error=str(e),
                    )
        except Exception as e:
            stream_logger.error(
                "Stream producer failed",
                stream_id=stream_id,
                error=str(e),
                exc_info=True,
            )
            # Terminal chunks go to the live reader and the buffer alike
            terminal = [ErrorEvent(error=str(e)).to_json()]
            if not finish_seen:
                terminal.append(FinishEvent(finish_reason="error").to_json())
            for chunk in terminal:
                queue.put_nowait(chunk)
                if buffering:
                    buffering = await self._append(stream_id, chunk)
            await self._mark_finished(stream_id, buffering)
        else:
            await self._mark_finished(stream_id, buffering)
            stream_log(stream_logger, "finished", stream_id=stream_id, chunks=count)
        finally:
            queue.put_nowait(None)

    async def _mark_finished(self, stream_id: str, buffering: bool) -> None:
        if not buffering or self._store is None:
            return
        try:
            await asyncio.to_thread(self._store.mark_finished, stream_id)
        except Exception as e:
            stream_logger.error(
                "Failed to mark stream finished",
                stream_id=stream_id,
                error=str(e),
                exc_info=True,
            )

    async def _create_buffer(self, stream_id: str) -> bool:
        if self._store is None:
            return False
        try:
            await asyncio.to_thread(self._store.create, stream_id)
        except Exception as e:
            stream_logger.error(
                "Failed to create stream buffer, streaming without resume",
                stream_id=stream_id,
                error=str(e),
                exc_info=True,
            )
            return False
        stream_log(stream_logger, "buffer_created", stream_id=stream_id)
        return True

    async def _append(self, stream_id: str, chunk: str) -> bool:
        if self._store is None:
            return False
        try:
            appended = await asyncio.to_thread(self._store.append, stream_id, chunk)
        except Exception as e:
            stream_logger.error(
                "Failed to buffer chunk, buffering stopped",
                stream_id=stream_id,
                error=str(e),
                exc_info=True,
            )
            return False
        if not appended:
            stream_logger.info(
                "Stream buffer evicted, buffering stopped", stream_id=stream_id
            )
        return appended

    @staticmethod
    async def _consume(queue: asyncio.Queue[str | None]) -> AsyncIterator[str]:
        while True:
            chunk = await queue.get()
            if chunk is None:
                return
            yield chunk

    # Reading

    @staticmethod
    def is_stale(
        last_updated_at: float, threshold: float, now: float | None = None
    ) -> bool:
        """True when now - last_updated_at >= threshold (threshold > 0)."""
        return buffer_mod.is_stale(
            last_updated_at, threshold, time.time() if now is None else now
        )

    def lookup(self, stream_id: str, offset: int = 0) -> StreamLookup | None:
        """Current state of a stream, evicting it if stale.

        Returns None when the stream was never buffered or is already gone.
        A stale buffer is deleted and reported once as EXPIRED with no data.
        """
        if self._store is None:
            return None
        snapshot = self._store.get(stream_id, offset)
        if snapshot is None:
            return None
        if self.is_stale(snapshot.last_updated_at, self.stale_seconds, self._clock()):
            self._store.delete(stream_id)
            stream_log(stream_logger, "expired", stream_id=stream_id)
            return StreamLookup(
                status=StreamStatus.EXPIRED, last_updated_at=snapshot.last_updated_at
            )
        return StreamLookup(
            status=StreamStatus(snapshot.status),
            chunks=snapshot.chunks,
            last_updated_at=snapshot.last_updated_at,
        )

    async def follow(self, stream_id: str, offset: int = 0) -> AsyncIterator[str]:
        """Yield buffered chunks from offset, then new ones while live."""
        while True:
            result = await asyncio.to_thread(self.lookup, stream_id, offset)
            if result is None or result.status is StreamStatus.EXPIRED:
                return
            for chunk in result.chunks:
                yield chunk
            offset += len(result.chunks)
            if result.status is StreamStatus.FINISHED:
                return
            await asyncio.sleep(self.poll_interval)

    def delete(self, stream_id: str) -> None:
        if self._store is not None:
            self._store.delete(stream_id)

    def delete_many(self, stream_ids: list[str]) -> None:
        if self._store is not None:
            self._store.delete_many(stream_ids)
