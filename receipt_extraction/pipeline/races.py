"""
Race Combinators.

``race`` runs two awaitables and settles with whichever finishes first,
cancelling the other. ``race_timeout`` races work against a timer that
raises a given exception, which is how extraction deadlines are enforced.
"""

import asyncio
from typing import Awaitable, TypeVar

T = TypeVar('T')


async def timer(seconds: float, error: BaseException) -> None:
    """Sleep for ``seconds`` and raise ``error``."""
    await asyncio.sleep(seconds)
    raise error


async def race(first: Awaitable[T], second: Awaitable[T]) -> T:
    """
    Settle with the first of two awaitables to finish.

    The winner's result is returned (or its exception raised); the loser
    is cancelled and reaped. When both finish in the same step, ``first``
    wins.

    Example:
        >>> await race(client.extract_structured(f), timer(15, TimeoutError()))
    """
    tasks = [asyncio.ensure_future(first), asyncio.ensure_future(second)]
    try:
        done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
    finally:
        for task in tasks:
            if not task.done():
                task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    winner = tasks[0] if tasks[0] in done else tasks[1]
    return winner.result()


async def race_timeout(work: Awaitable[T], seconds: float, error: BaseException) -> T:
    """Race ``work`` against a timer raising ``error`` after ``seconds``."""
    return await race(work, timer(seconds, error))
