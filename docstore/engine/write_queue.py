"""
WriteQueue - single-worker FIFO queue serializing store mutations.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

logger = logging.getLogger(__name__)


class WriteQueue:
    """
    Runs submitted mutations one at a time, in arrival order.

    Each job is a coroutine function performing a full load-mutate-rewrite
    cycle. A job does not start until the previous job has finished, so two
    mutations never load the same stale state.

    Only protects callers inside one process; the file is never OS-locked.
    """

    def __init__(self) -> None:
        # Lazy initialized in async context
        self._queue: asyncio.Queue[tuple[Callable[..., Awaitable[Any]], tuple, asyncio.Future]] | None = None
        self._worker_task: asyncio.Task | None = None
        self._closed: bool = False

    async def submit(self, operation: Callable[..., Awaitable[Any]], *args: Any) -> Any:
        """
        Enqueue a mutation and wait for its result.

        Args:
            operation: Coroutine function to run.
            *args: Arguments passed to the operation.

        Returns:
            Whatever the operation returns.

        Raises:
            RuntimeError: If the queue is closed.
            Exception: Whatever the operation raises.
        """
        if self._closed:
            raise RuntimeError("Cannot submit to a closed WriteQueue")

        self._start_worker()

        future = asyncio.get_running_loop().create_future()
        await self._queue.put((operation, args, future))
        return await future

    def _start_worker(self) -> None:
        """Start the background worker if not already running."""
        if self._queue is None:
            self._queue = asyncio.Queue()
        if self._worker_task is None or self._worker_task.done():
            self._worker_task = asyncio.create_task(self._worker())

    async def _worker(self) -> None:
        """Background worker that runs queued mutations sequentially."""
        while True:
            try:
                operation, args, future = await self._queue.get()
            except asyncio.CancelledError:
                break

            try:
                if future.cancelled():
                    continue
                try:
                    result = await operation(*args)
                except asyncio.CancelledError:
                    future.cancel()
                    raise
                except Exception as e:
                    logger.debug(f"Write operation {getattr(operation, '__name__', operation)} failed: {e}")
                    if not future.cancelled():
                        future.set_exception(e)
                else:
                    if not future.cancelled():
                        future.set_result(result)
            finally:
                self._queue.task_done()

    async def close(self) -> None:
        """Wait for queued mutations to finish, then stop the worker."""
        self._closed = True

        # Wait for queue to drain completely
        if self._queue is not None and self._worker_task is not None and not self._worker_task.done():
            await self._queue.join()

        # Now cancel worker
        if self._worker_task:
            self._worker_task.cancel()
            try:
                await self._worker_task
            except asyncio.CancelledError:
                pass
            self._worker_task = None
