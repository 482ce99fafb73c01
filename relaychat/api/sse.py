"""SSE adapter utilities.

Provides `stream_response` to wrap async iterators of serialized chunk
events into an EventSourceResponse. A crashing pipeline still ends the
stream with an error event followed by a finish event.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator

from sse_starlette.sse import EventSourceResponse

from relaychat.domain.events import ErrorEvent, FinishEvent, is_finish_chunk
from relaychat.utils.logger import api_logger


def stream_response(
    chunks: AsyncIterator[str], stream_id: str | None = None
) -> EventSourceResponse:
    async def guarded_stream() -> AsyncIterator[dict[str, str]]:
        finish_sent = False

        try:
            async for chunk in chunks:
                if is_finish_chunk(chunk):
                    finish_sent = True
                yield {"data": chunk}
        except asyncio.CancelledError:
            # Client went away; generation continues in the background
            api_logger.info("SSE stream cancelled", stream_id=stream_id)
            raise
        except Exception as e:
            api_logger.error(
                "SSE pipeline crashed", exc_info=True, error=str(e), stream_id=stream_id
            )
            yield {"data": ErrorEvent(error=str(e)).to_json()}
            if not finish_sent:
                yield {"data": FinishEvent(finish_reason="error").to_json()}
            return

    headers = {"Cache-Control": "no-cache", "X-Accel-Buffering": "no"}
    if stream_id:
        headers["X-Stream-Id"] = stream_id
    return EventSourceResponse(guarded_stream(), headers=headers)
