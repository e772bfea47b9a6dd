"""Shared concurrency primitives for the ingestion pipeline.

**run_in_batches** runs fixed-size batches fully, one after the other, with a
pause between them.  The ingestion coordinator uses it to bound load on the
embedding service and the vector store.  Failures are returned in place so
one item's error never aborts its siblings.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Sequence, TypeVar

import structlog

from src.utils.logging import get_logger

_T = TypeVar("_T")
_R = TypeVar("_R")

_logger: structlog.BoundLogger = get_logger(__name__)


async def run_in_batches(
    items: Sequence[_T],
    worker: Callable[[_T], Awaitable[_R]],
    batch_size: int = 3,
    delay: float = 0.0,
    on_batch_done: Callable[[int, list[_R | BaseException]], Awaitable[None]] | None = None,
) -> list[_R | BaseException]:
    """Apply ``worker`` to ``items`` in sequential fixed-size batches.

    Parameters
    ----------
    items:
        The inputs, processed in order.
    worker:
        Async callable applied to each item.
    batch_size:
        Items per batch; every item of a batch runs concurrently.
    delay:
        Seconds to sleep between batches (not after the last one).
    on_batch_done:
        Optional async callback invoked after each batch with the number of
        items processed so far and that batch's results.

    Returns
    -------
    list
        One entry per item, in input order: the worker's result or the
        exception it raised.
    """
    if batch_size < 1:
        raise ValueError("batch_size must be at least 1")

    results: list[_R | BaseException] = []
    for start in range(0, len(items), batch_size):
        batch = items[start:start + batch_size]
        batch_results = await asyncio.gather(
            *(worker(item) for item in batch), return_exceptions=True
        )
        results.extend(batch_results)

        failures = sum(1 for r in batch_results if isinstance(r, BaseException))
        if failures:
            _logger.debug("batch_had_failures", batch_start=start, failures=failures)

        if on_batch_done is not None:
            await on_batch_done(len(results), batch_results)

        if delay > 0 and start + batch_size < len(items):
            await asyncio.sleep(delay)

    return results
