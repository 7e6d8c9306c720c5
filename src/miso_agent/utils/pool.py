"""Bounded asyncio worker pool with fail-fast joins.

A WorkerPool caps how many submitted coroutines run at once. Work is grouped
into a TaskBatch; `await_all()` yields results in completion order and raises
the first exception it observes. Tasks still running at that point are left
alone (not cancelled); their outcome is discarded.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Generic, TypeVar

from miso_agent.utils.logging import get_logger, DIM, RESET

log = get_logger()

T = TypeVar("T")


class WorkerPool:
    """Shared concurrency limit for any number of task batches."""

    def __init__(self, max_concurrency: int = 4):
        if max_concurrency < 1:
            max_concurrency = 1
        self.max_concurrency = max_concurrency
        self._semaphore = asyncio.Semaphore(max_concurrency)

    def batch(self) -> TaskBatch:
        return TaskBatch(self)

    async def _run(self, fn: Callable[[], Awaitable[T]]) -> T:
        async with self._semaphore:
            return await fn()


class TaskBatch(Generic[T]):
    """A group of submissions joined together by `await_all()`."""

    def __init__(self, pool: WorkerPool):
        self._pool = pool
        self._tasks: list[asyncio.Task] = []

    def __len__(self) -> int:
        return len(self._tasks)

    def submit(self, fn: Callable[[], Awaitable[T]]) -> None:
        """Schedule `fn()` on the pool. Must be called from a running event loop."""
        task = asyncio.create_task(self._pool._run(fn))
        task.add_done_callback(_retrieve_exception)
        self._tasks.append(task)

    async def await_all(self) -> list[T]:
        """Wait for every submission; results are in completion order.

        Raises the first exception observed. Collection stops there; sibling
        tasks keep running to completion in the background.
        """
        results: list[T] = []
        for fut in asyncio.as_completed(self._tasks):
            results.append(await fut)
        return results


def _retrieve_exception(task: asyncio.Task) -> None:
    # Abandoned siblings may fail after the join gave up on them
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        log.debug(f"  {DIM}pool task finished with error: {exc!r}{RESET}")
