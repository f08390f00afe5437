"""
Backoff and retry helpers.

The kline fetcher drives ExponentialBackoff itself so that it can honour
Retry-After headers; chat delivery wraps its send call in retry_async.
"""

import asyncio
import functools
import logging
import random
from typing import Any, Awaitable, Callable, Optional, Tuple, Type

logger = logging.getLogger(__name__)

AsyncFunc = Callable[..., Awaitable[Any]]
RetryCallback = Callable[[Exception, int], None]

JITTER_FRACTION = 0.25


class RetryError(Exception):
    """Every attempt failed; `last_exception` holds the final failure."""

    def __init__(self, message: str, last_exception: Exception):
        super().__init__(message)
        self.last_exception = last_exception


class ExponentialBackoff:
    """
    Delay curve base * multiplier**attempt, capped at max_delay.

    With jitter on, each delay is moved by up to a quarter of its value in
    either direction so that concurrent retries spread out.

    Example:
        >>> curve = ExponentialBackoff(base=0.5, multiplier=3.0, jitter=False)
        >>> [curve.calculate(n) for n in range(3)]
        [0.5, 1.5, 4.5]
    """

    def __init__(
        self,
        base: float = 1.0,
        multiplier: float = 2.0,
        max_delay: float = 60.0,
        jitter: bool = True,
    ):
        self.base = base
        self.multiplier = multiplier
        self.max_delay = max_delay
        self.jitter = jitter

    def _nominal(self, attempt: int) -> float:
        return min(self.base * self.multiplier**attempt, self.max_delay)

    def calculate(self, attempt: int, retry_after: Optional[float] = None) -> float:
        """
        Seconds to wait before retry number `attempt` (0 for the first retry).

        A server-provided `retry_after` replaces the curve and is only clamped
        to [0, max_delay]; no jitter is applied to it.
        """
        if retry_after is not None:
            return min(max(retry_after, 0.0), self.max_delay)

        delay = self._nominal(attempt)
        if self.jitter:
            spread = delay * JITTER_FRACTION
            delay = delay + random.uniform(-spread, spread)
        return max(delay, 0.0)


def retry_async(
    max_attempts: int = 3,
    exceptions: Tuple[Type[Exception], ...] = (Exception,),
    base_delay: float = 1.0,
    multiplier: float = 2.0,
    max_delay: float = 60.0,
    jitter: bool = True,
    on_retry: Optional[RetryCallback] = None,
) -> Callable[[AsyncFunc], AsyncFunc]:
    """
    Retry a coroutine function on the listed exceptions.

    `max_attempts` counts the first call. Exceptions outside `exceptions`
    propagate at once. `on_retry(exc, attempt)` runs after every listed
    failure, including the last one.

    Raises:
        RetryError: all attempts failed
    """
    backoff = ExponentialBackoff(base_delay, multiplier, max_delay, jitter)

    def decorator(func: AsyncFunc) -> AsyncFunc:
        name = func.__name__

        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            failure: Optional[Exception] = None
            attempt = 0
            while attempt < max_attempts:
                try:
                    return await func(*args, **kwargs)
                except exceptions as e:
                    failure = e
                logger.warning(
                    "%s: attempt %d/%d failed: %s", name, attempt + 1, max_attempts, failure
                )
                if on_retry is not None:
                    on_retry(failure, attempt)
                attempt += 1
                if attempt < max_attempts:
                    delay = backoff.calculate(attempt - 1)
                    logger.info("%s: next attempt in %.2fs", name, delay)
                    await asyncio.sleep(delay)

            message = f"{name} failed after {max_attempts} attempts. Last error: {failure}"
            logger.error(message)
            raise RetryError(message, failure)  # type: ignore[arg-type]

        return wrapper

    return decorator
