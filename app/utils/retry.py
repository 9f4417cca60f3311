"""
Async retry for transient storage failures.

Used around database reads (settings, records, ledger document) and pool
creation. Retries only TRANSIENT_EXCEPTIONS, with exponential backoff and
±20% jitter; the last exception is re-raised unchanged. No logging here,
callers decide what a final failure means.
"""

import asyncio
import random
from typing import Any, Awaitable, Callable, Tuple, Type

import asyncpg
from redis import exceptions as redis_exceptions


DEFAULT_RETRIES = 2
DEFAULT_BASE_DELAY = 1.0
DEFAULT_MAX_DELAY = 10.0


TRANSIENT_EXCEPTIONS: Tuple[Type[BaseException], ...] = (
    asyncpg.PostgresConnectionError,
    asyncpg.InterfaceError,
    asyncpg.exceptions.TooManyConnectionsError,
    redis_exceptions.ConnectionError,
    redis_exceptions.TimeoutError,
    asyncio.TimeoutError,
    ConnectionError,
    OSError,
)


def backoff_delay(attempt: int, base_delay: float, max_delay: float) -> float:
    """Delay before retry number attempt+1 (attempt counts from 0)."""
    delay = min(base_delay * (2 ** attempt), max_delay)
    jitter = delay * 0.2 * (random.random() * 2 - 1)
    return max(0.0, delay + jitter)


async def retry_async(
    fn: Callable[[], Awaitable[Any]],
    *,
    retries: int = DEFAULT_RETRIES,
    base_delay: float = DEFAULT_BASE_DELAY,
    max_delay: float = DEFAULT_MAX_DELAY,
    retry_on: Tuple[Type[BaseException], ...] = TRANSIENT_EXCEPTIONS,
) -> Any:
    """
    Await fn() until it succeeds or retries are exhausted.

    Args:
        fn: Zero-argument callable returning an awaitable (called once per attempt)
        retries: Extra attempts after the first one
        retry_on: Exception types worth another attempt

    Raises:
        The last exception once retries are exhausted; anything outside retry_on immediately
    """
    attempt = 0
    while True:
        try:
            return await fn()
        except retry_on:
            if attempt >= retries:
                raise
            await asyncio.sleep(backoff_delay(attempt, base_delay, max_delay))
            attempt += 1
