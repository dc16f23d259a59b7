"""
Retry utilities with exponential backoff.

Used for requests to the page agent, which may be briefly unreachable
while a page loads.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterator, Optional, Tuple, Type, TypeVar
import logging

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class RetryConfig:
    """
    Retry policy.

    Attributes:
        max_attempts: Total attempts, the first one included
        initial_delay_ms: Pause before the first retry
        max_delay_ms: Upper bound on any pause
        backoff_multiplier: Growth of the pause after each retry
        retry_on: Exception types worth another attempt
        give_up_on: Exception types raised at once, even when they are
            also listed in retry_on
        on_retry: Called with (attempt, error) before each pause
    """
    max_attempts: int = 3
    initial_delay_ms: int = 1000
    max_delay_ms: int = 30000
    backoff_multiplier: float = 2.0
    retry_on: Tuple[Type[Exception], ...] = (Exception,)
    give_up_on: Tuple[Type[Exception], ...] = ()
    on_retry: Optional[Callable[[int, Exception], None]] = None


def backoff_delays(config: RetryConfig) -> Iterator[float]:
    """
    Pauses in milliseconds between consecutive attempts.

    Yields max_attempts - 1 values, growing by backoff_multiplier and
    capped at max_delay_ms.
    """
    delay_ms = float(min(config.initial_delay_ms, config.max_delay_ms))
    for _ in range(config.max_attempts - 1):
        yield delay_ms
        delay_ms = min(delay_ms * config.backoff_multiplier, config.max_delay_ms)


async def retry_async(
    func: Callable[..., Awaitable[T]],
    config: RetryConfig,
    *args: Any,
    **kwargs: Any,
) -> T:
    """
    Await ``func(*args, **kwargs)`` under a retry policy.

    Args:
        func: Async callable to run
        config: Retry policy
        *args: Positional arguments for func
        **kwargs: Keyword arguments for func

    Returns:
        The first successful result

    Raises:
        The first error matching config.give_up_on, an error outside
        config.retry_on, or the last error once attempts run out
    """
    name = getattr(func, "__qualname__", repr(func))
    pauses = backoff_delays(config)
    attempt = 0

    while True:
        attempt += 1
        try:
            return await func(*args, **kwargs)
        except config.give_up_on:
            raise
        except config.retry_on as e:
            delay_ms = next(pauses, None)
            if delay_ms is None:
                logger.error(f"{name} failed after {attempt} attempt(s): {e}")
                raise

            logger.warning(
                f"{name} attempt {attempt}/{config.max_attempts} failed: {e}. "
                f"Retrying in {int(delay_ms)}ms"
            )
            if config.on_retry:
                config.on_retry(attempt, e)
            await asyncio.sleep(delay_ms / 1000)
