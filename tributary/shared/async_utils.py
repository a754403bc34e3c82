"""
Async Helpers
=============

Bounded fan-out for independent per-item I/O inside an activity.
"""

import asyncio
import inspect
from collections.abc import Awaitable, Callable, Iterable
from typing import Any, TypeVar

T = TypeVar("T")
R = TypeVar("R")


async def concurrent_executor(
    items: Iterable[T],
    fn: Callable[[T], Awaitable[R]],
    *,
    concurrency: int,
    on_item_complete: Callable[[], Any] | None = None,
) -> list[R]:
    """
    Run ``fn`` over ``items`` with at most ``concurrency`` calls in flight.

    Every item runs to completion even if another one fails; the first
    failure (in item order) is raised afterwards. Results keep item order.
    ``on_item_complete`` runs after each item, sync or async (heartbeats).
    """
    if concurrency < 1:
        raise ValueError("concurrency must be >= 1")

    sem = asyncio.Semaphore(concurrency)

    async def _run_one(item: T) -> R:
        async with sem:
            try:
                return await fn(item)
            finally:
                if on_item_complete is not None:
                    maybe_awaitable = on_item_complete()
                    if inspect.isawaitable(maybe_awaitable):
                        await maybe_awaitable

    results = await asyncio.gather(*(_run_one(item) for item in items), return_exceptions=True)

    for result in results:
        if isinstance(result, BaseException):
            raise result
    return results
