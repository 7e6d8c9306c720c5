"""Fan a unit list out over a worker pool, one engine run per sub-list."""

from __future__ import annotations

from typing import Awaitable, Callable, Sequence, TypeVar

from miso_agent.utils.logging import get_logger, DIM, RESET
from miso_agent.utils.pool import WorkerPool

log = get_logger()

U = TypeVar("U")
R = TypeVar("R")

DEFAULT_BATCH_SIZE = 2


def partition(units: Sequence[U], batch_size: int | None) -> list[list[U]]:
    """Split into contiguous sub-lists of at most `batch_size` (2 when unset or < 1)."""
    if batch_size is None or batch_size < 1:
        batch_size = DEFAULT_BATCH_SIZE
    return [list(units[i:i + batch_size]) for i in range(0, len(units), batch_size)]


async def fan_out(
    units: Sequence[U],
    batch_size: int | None,
    pool: WorkerPool,
    run: Callable[[list[U]], Awaitable[R]],
) -> list[tuple[int, R]]:
    """Run `run(sub_list)` for every sub-list on `pool`.

    Returns (sub-list index, result) pairs in completion order. The first
    failing run's exception propagates and no result is returned.
    """
    plan = partition(units, batch_size)
    log.info(f"  {DIM}fan-out: {len(units)} items in {len(plan)} batches{RESET}")

    batch = pool.batch()
    for index, sub in enumerate(plan):
        batch.submit(_indexed(index, sub, run))
    return await batch.await_all()


def _indexed(index: int, sub: list[U], run: Callable[[list[U]], Awaitable[R]]):
    async def _run() -> tuple[int, R]:
        return index, await run(sub)

    return _run
