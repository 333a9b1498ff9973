"""Process-wide FIFO that serializes and spaces upstream calls."""

import asyncio
import time
from typing import Any, Awaitable, Callable

from cryptodash.utils.config import config
from cryptodash.utils.logger import StructuredLogger

TaskFactory = Callable[[], Awaitable[Any]]


class RequestQueue:
    """
    Runs queued coroutine factories one at a time on a single worker task.

    The start of each task is at least ``min_interval`` seconds after the
    start of the previous one, no matter how many callers are waiting. A
    failing task only fails its own caller; the worker keeps going. A caller
    that gives up waiting does not cancel its task, whose result is discarded.
    """

    def __init__(
        self,
        min_interval: float | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.min_interval = config.upstream.min_interval if min_interval is None else min_interval
        self._clock = clock
        self._sleep = sleep
        self._queue: asyncio.Queue | None = None
        self._worker: asyncio.Task | None = None
        self._last_start: float | None = None
        self.logger = StructuredLogger("RequestQueue")

    @property
    def pending(self) -> int:
        """Number of tasks waiting to start."""
        return self._queue.qsize() if self._queue is not None else 0

    @property
    def running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    def start(self) -> None:
        """Start the worker on the running event loop if it is not already running."""
        if self.running:
            return
        if self._queue is None:
            self._queue = asyncio.Queue()
        self._worker = asyncio.get_running_loop().create_task(
            self._run(), name="upstream-request-queue"
        )

    async def stop(self) -> None:
        """Stop the worker and fail the running task and every task not started yet."""
        if self._worker is not None:
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
            self._worker = None

        if self._queue is not None:
            while not self._queue.empty():
                _, future = self._queue.get_nowait()
                if not future.done():
                    future.set_exception(RuntimeError("Request queue stopped"))
                self._queue.task_done()

    async def submit(self, factory: TaskFactory) -> Any:
        """
        Enqueue a task and wait for its outcome.

        Args:
            factory: Zero-argument callable returning the coroutine to run

        Returns:
            Whatever the coroutine returns

        Raises:
            Whatever the coroutine raises
        """
        self.start()
        future = asyncio.get_running_loop().create_future()
        self._queue.put_nowait((factory, future))
        if self._queue.qsize() > 1:
            self.logger.debug("Upstream call queued", context={"pending": self._queue.qsize()})
        return await future

    async def _wait_for_slot(self) -> None:
        if self._last_start is not None:
            delay = self.min_interval - (self._clock() - self._last_start)
            if delay > 0:
                self.logger.debug(
                    "Waiting to respect upstream rate limit",
                    context={"wait_seconds": round(delay, 3)},
                )
                await self._sleep(delay)
        self._last_start = self._clock()

    async def _run(self) -> None:
        while True:
            factory, future = await self._queue.get()
            try:
                await self._wait_for_slot()
                result = await factory()
            except asyncio.CancelledError:
                if asyncio.current_task().cancelling():
                    # stop() cancelled the worker mid-task
                    if not future.done():
                        future.set_exception(RuntimeError("Request queue stopped"))
                    raise
                # Raised by the task itself: only its caller sees it
                future.cancel()
            except Exception as e:
                if not future.done():
                    future.set_exception(e)
            else:
                if not future.done():
                    future.set_result(result)
            finally:
                self._queue.task_done()
