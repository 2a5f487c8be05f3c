# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Structured join for concurrent build tasks.

`gather_or_cancel` runs coroutines as tasks and waits for all of them. The
first failure wins: it is re-raised as soon as it is observed, and every task
that has not finished yet is cancelled. Work already handed to a thread keeps
running to completion, but its result is never used.
"""

import asyncio
from typing import Any, Awaitable, TypeVar

T = TypeVar("T")


async def gather_or_cancel(*aws: Awaitable[T]) -> list[T]:
    """
    Await every awaitable concurrently and return their results in order.

    Raises:
        The first exception raised by any of the awaitables.
    """
    tasks: list[asyncio.Future[Any]] = [asyncio.ensure_future(aw) for aw in aws]
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        for task in tasks:
            if not task.done():
                task.cancel()
        # Let cancellations settle so no task outlives the join.
        await asyncio.gather(*tasks, return_exceptions=True)
        raise
