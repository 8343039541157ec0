"""Decorators shared by the backend client and services"""

import functools
import asyncio
from typing import Callable, Tuple, Type

from .logger import get_logger

logger = get_logger(__name__)


def with_retry(
    max_attempts: int = 3,
    initial_delay: float = 1.0,
    backoff_factor: float = 2.0,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    should_retry: Callable[[BaseException], bool] = None
):
    """
    Decorator adding exponential backoff retries to an async callable.
    
    The n-th retry waits ``initial_delay * backoff_factor ** (n - 1)`` seconds.
    Only use on idempotent reads - order creation must never go through this.
    
    Args:
        max_attempts: Total attempts including the first call
        initial_delay: Delay before the first retry in seconds
        backoff_factor: Multiplier applied to the delay after each retry
        retry_on: Exception types that may be retried
        should_retry: Optional predicate narrowing which errors are retried
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            delay = initial_delay
            attempt = 1
            while True:
                try:
                    return await func(*args, **kwargs)
                except retry_on as e:
                    retryable = should_retry(e) if should_retry else True
                    if not retryable or attempt >= max_attempts:
                        raise
                    logger.info(f"[Retry] {func.__name__} failed (attempt {attempt}/{max_attempts}), "
                                f"retrying in {delay:.1f}s: {e}")
                    await asyncio.sleep(delay)
                    delay *= backoff_factor
                    attempt += 1
        return wrapper
    return decorator
