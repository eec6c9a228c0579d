"""
Bounded Fan-Out

Runs one coroutine per item with at most *limit* in flight, waits for every
one of them, and only then reports the outcome. There is no short circuit:
a failure (or a result that would already decide a combinator) does not stop
the remaining items.
"""

import asyncio
from typing import Awaitable, Callable, List, Sequence, TypeVar

from .constants import DEFAULT_MAX_CONCURRENCY

T = TypeVar("T")
R = TypeVar("R")


async def gather_bounded(
    items: Sequence[T],
    fn: Callable[[T], Awaitable[R]],
    limit: int = DEFAULT_MAX_CONCURRENCY,
) -> List[R]:
    """
    Apply *fn* to every item concurrently, at most *limit* at a time.

    Results are returned in item order, independent of completion order.
    If any call failed, the exception of the first failing item (in item
    order) is raised after all calls have finished.

    If the awaiting task is cancelled, calls already dispatched keep running
    to completion and their results are discarded.
    """
    if limit < 1:
        raise ValueError(f"Concurrency limit must be >= 1, got {limit}")
    if not items:
        return []

    # One semaphore per call; nested fan-outs never share permits
    semaphore = asyncio.Semaphore(limit)

    async def run(item: T) -> R:
        async with semaphore:
            return await fn(item)

    tasks = [asyncio.ensure_future(run(item)) for item in items]
    outcomes = await asyncio.shield(asyncio.gather(*tasks, return_exceptions=True))

    for outcome in outcomes:
        if isinstance(outcome, BaseException):
            raise outcome
    return list(outcomes)
