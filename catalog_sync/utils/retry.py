"""
Retry utilities with exponential backoff.

Used by the provider client to absorb rate-limit responses at the smallest
unit of work (one pricing batch) instead of failing the whole fetch.
"""

import logging
import time
from collections.abc import Callable
from functools import wraps

logger = logging.getLogger(__name__)


def with_backoff(
    max_retries: int = 3,
    initial_delay: float = 2.0,
    exponential_base: float = 2.0,
    exceptions: tuple[type[Exception], ...] = (Exception,),
    on_retry: Callable[[int, float, Exception], None] | None = None,
):
    """
    Decorator that retries a function with exponential backoff.

    Retry ``n`` (1-based) waits ``initial_delay * exponential_base ** (n - 1)``
    seconds, so the defaults give 2s, 4s, 8s. Once ``max_retries`` retries are
    spent the last exception is re-raised. Exceptions outside ``exceptions``
    propagate immediately.

    Args:
        max_retries: Number of retries after the first attempt (default: 3)
        initial_delay: Delay in seconds before the first retry (default: 2.0s)
        exponential_base: Multiplier applied to the delay after each retry (default: 2.0)
        exceptions: Exception types that trigger a retry
        on_retry: Optional callback invoked as on_retry(retry_number, delay, error)

    Example:
        @with_backoff(max_retries=3, exceptions=(RateLimited,))
        def fetch_batch(ids):
            ...
    """

    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args, **kwargs):
            retries = 0
            while True:
                try:
                    return func(*args, **kwargs)
                except exceptions as e:
                    if retries >= max_retries:
                        logger.error(f"{func.__name__} failed after {max_retries} retries: {e}")
                        raise

                    retries += 1
                    delay = initial_delay * (exponential_base ** (retries - 1))
                    logger.warning(
                        f"{func.__name__} failed ({e}). "
                        f"Waiting {delay:.0f}s before retry {retries}/{max_retries}..."
                    )
                    if on_retry is not None:
                        on_retry(retries, delay, e)
                    time.sleep(delay)

        return wrapper

    return decorator
