"""Bounded fan-out for remote generation requests.

A queue of pending items is drained by a fixed number of workers. Results are
written back by index, so output order always matches input order regardless
of completion order.
"""

import asyncio
import logging
from typing import Awaitable, Callable, List, Sequence, Tuple, TypeVar


logger = logging.getLogger(__name__)


ItemT = TypeVar('ItemT')
ResultT = TypeVar('ResultT')


async def run_bounded(
    items: Sequence[ItemT],
    worker_fn: Callable[[int, ItemT], Awaitable[ResultT]],
    max_concurrency: int
) -> List[ResultT]:
    """Apply ``worker_fn`` to every item with at most ``max_concurrency`` in flight.

    ``worker_fn`` receives ``(index, item)``. It is expected to handle its own
    per-item failures; an exception escaping it cancels the remaining workers
    and propagates to the caller.
    """
    if max_concurrency < 1:
        raise ValueError("max_concurrency must be at least 1")
    if not items:
        return []

    queue: "asyncio.Queue[Tuple[int, ItemT]]" = asyncio.Queue()
    for index, item in enumerate(items):
        queue.put_nowait((index, item))

    results: List[ResultT] = [None] * len(items)

    async def worker(worker_id: int) -> None:
        while True:
            try:
                index, item = queue.get_nowait()
            except asyncio.QueueEmpty:
                return
            logger.debug(f"worker {worker_id} picked item {index}")
            results[index] = await worker_fn(index, item)

    worker_count = min(max_concurrency, len(items))
    workers = [asyncio.create_task(worker(n)) for n in range(worker_count)]
    try:
        await asyncio.gather(*workers)
    except BaseException:
        for task in workers:
            task.cancel()
        raise

    return results
