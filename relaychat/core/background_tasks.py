"""Background task manager for stream producers.

Generation keeps running after the client that started it disconnects, so the
producer side of every chat stream is owned by this manager rather than by
the request:
- Track all running producer tasks
- Graceful shutdown with timeout
- Automatic cleanup of completed tasks
"""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine
from typing import Any

from relaychat.utils.logger import get_logger

logger = get_logger("streams.background")


class BackgroundTaskManager:
    """Manages background tasks with proper lifecycle and cleanup."""

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task[None]] = set()

    def create_task(
        self, coro: Coroutine[Any, Any, None], name: str | None = None
    ) -> asyncio.Task[None]:
        """Schedule a coroutine on the running loop and track it.

        The coroutine starts only after the caller yields control, so the
        request handler that scheduled it can return its response first.

        Args:
            coro: Coroutine to run in background
            name: Optional name for the task (for debugging)
        """

        async def _wrapped_task() -> None:
            await asyncio.sleep(0)
            try:
                await coro
            except asyncio.CancelledError:
                logger.debug("Background task cancelled", task_name=name or "unnamed")
                raise
            except Exception as e:
                logger.error(
                    "Background task failed",
                    task_name=name or "unnamed",
                    error=str(e),
                    exc_info=True,
                )

        task: asyncio.Task[None] = asyncio.ensure_future(_wrapped_task())
        if name:
            task.set_name(name)

        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

        logger.debug(
            "Scheduled background task",
            task_name=name or "unnamed",
            active_tasks=len(self._tasks),
        )
        return task

    async def shutdown(self, timeout: float = 5.0) -> None:
        """Wait for running tasks, cancelling whatever outlives the timeout."""
        if not self._tasks:
            logger.debug("No background tasks to shutdown")
            return

        logger.info("Shutting down background tasks", count=len(self._tasks))

        try:
            await asyncio.wait_for(
                asyncio.gather(*self._tasks, return_exceptions=True),
                timeout=timeout,
            )
            logger.info("All background tasks completed gracefully")
        except TimeoutError:
            logger.warning(
                "Background tasks timeout, cancelling remaining tasks",
                remaining=len([t for t in self._tasks if not t.done()]),
            )
            for task in self._tasks:
                if not task.done():
                    task.cancel()

            try:
                await asyncio.wait_for(
                    asyncio.gather(*self._tasks, return_exceptions=True),
                    timeout=1.0,
                )
            except TimeoutError:
                logger.error("Some tasks did not respond to cancellation")

        self._tasks.clear()
        logger.info("Background task shutdown complete")

    @property
    def active_count(self) -> int:
        return len([t for t in self._tasks if not t.done()])

    @property
    def has_tasks(self) -> bool:
        return len(self._tasks) > 0

    def cancel_all(self) -> None:
        """Cancel all pending tasks without waiting (test cleanup)."""
        for task in list(self._tasks):
            if not task.done():
                task.cancel()
        self._tasks.clear()


_background_manager: BackgroundTaskManager | None = None


def get_background_manager() -> BackgroundTaskManager:
    """Get or create the global background task manager."""
    global _background_manager
    if _background_manager is None:
        _background_manager = BackgroundTaskManager()
    return _background_manager
