"""Bounded-time polling for state that settles asynchronously."""

import asyncio
import logging
from typing import Any, Awaitable, Callable

from .errors import ConvergenceTimeout

logger = logging.getLogger(__name__)


async def wait_until(condition: Callable[[], Awaitable[Any]], *,
                     interval: float, timeout: float, message: str) -> None:
    """
    Poll ``condition`` every ``interval`` seconds until it returns a truthy value.

    The condition is called at least once. Exceptions raised by the condition
    propagate immediately. When ``timeout`` seconds pass without the condition
    holding, ConvergenceTimeout is raised with ``message``.

    Args:
        condition: Zero-argument coroutine function
        interval: Constant delay between polls (no backoff), shortened only
            so the final poll falls on the deadline
        timeout: Total time allowed for the condition to hold
        message: Diagnostic used when the deadline elapses
    """
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    attempt = 0
    while True:
        attempt += 1
        if await condition():
            logger.debug("Condition held after %d poll(s)", attempt)
            return
        if loop.time() >= deadline:
            raise ConvergenceTimeout(f"{message} (waited {timeout:.1f}s, {attempt} polls)")
        # last poll lands on the deadline rather than past it
        await asyncio.sleep(min(interval, max(0.0, deadline - loop.time())))
