"""Async utilities for orchestration waits."""

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

T = TypeVar("T")

# Every suspension point in the orchestrators goes through one of these so
# tests can substitute a recorder and runs never wait in real time.
SleepFunc = Callable[[float], Awaitable[None]]


async def default_sleep(seconds: float) -> None:
    """Cancellable wait used by the orchestrators."""
    if seconds > 0:
        await asyncio.sleep(seconds)


async def run_with_timeout(
    coro: Awaitable[T],
    timeout: float,
    timeout_message: str = "Operation timed out",
) -> T:
    """Run a coroutine with a timeout.

    Args:
        coro: Coroutine to run
        timeout: Timeout in seconds
        timeout_message: Message for timeout error

    Returns:
        Result of the coroutine

    Raises:
        CommandTimeoutError: If the operation times out
    """
    from shipctl.core.exceptions import CommandTimeoutError

    try:
        return await asyncio.wait_for(coro, timeout=timeout)
    except asyncio.TimeoutError:
        raise CommandTimeoutError(timeout_message, timeout_seconds=timeout)


def run_sync(coro: Awaitable[T]) -> T:
    """Run an async function synchronously.

    This is useful for integrating async code with Click commands.

    Args:
        coro: Coroutine to run

    Returns:
        Result of the coroutine
    """
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        loop = None

    if loop and loop.is_running():
        # If we're already in an async context, create a new loop
        import concurrent.futures

        with concurrent.futures.ThreadPoolExecutor() as pool:
            future = pool.submit(asyncio.run, coro)
            return future.result()
    else:
        return asyncio.run(coro)
