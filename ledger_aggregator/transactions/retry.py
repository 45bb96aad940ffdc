"""
Retry utilities for ledger RPC calls.

Implements exponential backoff with jitter for transient failures.
Only the exception types passed in `retry_on` are retried; anything else
propagates on the first attempt.
"""

import asyncio
import random
from typing import Awaitable, Callable, Tuple, Type, TypeVar
import structlog

from ledger_aggregator.transactions.config import RetryConfig

logger = structlog.get_logger()

T = TypeVar("T")


async def retry_with_backoff(
    func: Callable[[], Awaitable[T]],
    config: RetryConfig,
    operation_name: str = "operation",
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
) -> T:
    """
    Execute a function with exponential backoff retry.

    Args:
        func: Async function to execute
        config: Retry configuration
        operation_name: Name for logging
        retry_on: Exception types that trigger another attempt

    Returns:
        Function result

    Raises:
        Exception: Last exception if all retries exhausted
    """
    attempt = 0
    while True:
        try:
            return await func()
        except retry_on as e:
            attempt += 1

            if attempt >= config.max_attempts:
                logger.error(
                    "retry_exhausted",
                    operation=operation_name,
                    attempts=attempt,
                    error=str(e),
                )
                raise

            delay = min(
                config.initial_delay * (config.exponential_base ** (attempt - 1)),
                config.max_delay,
            )
            if config.jitter:
                delay = delay * (0.5 + random.random() * 0.5)

            logger.warning(
                "retry_attempt",
                operation=operation_name,
                attempt=attempt,
                max_attempts=config.max_attempts,
                delay_seconds=delay,
                error=str(e),
            )

            await asyncio.sleep(delay)
