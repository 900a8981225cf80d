"""Bounded-concurrency runner for fetch fan-out."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Iterable

_logger = logging.getLogger(__name__)

Thunk = Callable[[], Awaitable[object]]


async def throttle(thunks: Iterable[Thunk], limit: int) -> list[BaseException | None]:
    """Run ``thunks`` with at most ``limit`` in flight.

    Thunks are admitted in order; as each one settles the next is started. A
    failing thunk never cancels its siblings. The returned list holds, in
    admission order, ``None`` for thunks that succeeded and the raised exception
    for those that failed.
    """

    if limit < 1:
        raise ValueError("throttle limit must be at least 1")

    outcomes: list[BaseException | None] = []
    in_flight: dict[asyncio.Task, int] = {}

    def _settle(task: asyncio.Task) -> None:
        index = in_flight.pop(task)
        if task.cancelled():
            outcomes[index] = asyncio.CancelledError()
            return
        error = task.exception()
        if error is not None:
            _logger.warning("Throttled task %d failed: %s", index, error)
        outcomes[index] = error

    for thunk in thunks:
        if len(in_flight) >= limit:
            done, _ = await asyncio.wait(in_flight.keys(), return_when=asyncio.FIRST_COMPLETED)
            for task in done:
                _settle(task)
        outcomes.append(None)
        task = asyncio.ensure_future(thunk())
        in_flight[task] = len(outcomes) - 1

    if in_flight:
        done, _ = await asyncio.wait(in_flight.keys())
        for task in done:
            _settle(task)
    return outcomes
