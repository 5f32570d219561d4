"""Retry decorator with exponential backoff, used for classifier calls."""

import random
import time
from functools import wraps
from typing import Any, Callable, Iterator, Optional, Tuple, Type, TypeVar

from question_grader import config
from question_grader.utils.logger import get_logger

logger = get_logger()

F = TypeVar('F', bound=Callable[..., Any])


def backoff_delays(initial_delay: float, backoff_factor: float, jitter: float) -> Iterator[float]:
    """Yields the wait before each retry: ``initial_delay`` growing by ``backoff_factor``.

    Each delay is perturbed by up to ``jitter`` times itself in either
    direction and never drops below zero.
    """
    delay = initial_delay
    while True:
        yield max(0.0, delay + delay * jitter * random.uniform(-1, 1))
        delay *= backoff_factor


def retry_on_exception(
    exceptions: Tuple[Type[Exception], ...] = (Exception,),
    max_attempts: int = 3,
    initial_delay: float = 1.0,
    backoff_factor: float = 2.0,
    jitter: float = 0.1,
    should_retry: Optional[Callable[[Exception], bool]] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> Callable[[F], F]:
    """Decorator to retry a function call upon specific exceptions with exponential backoff.

    Args:
        exceptions: Exception types that may be retried.
        max_attempts: Maximum number of attempts, including the first call.
        initial_delay: Seconds before the first retry.
        backoff_factor: Multiplier applied to the delay after every retry.
        jitter: Relative random spread applied to each delay.
        should_retry: Predicate deciding whether a caught exception is worth
            another attempt; rejected exceptions are re-raised at once.
        sleep: Function used to wait between attempts.

    Returns:
        A decorator function.
    """
    def decorator(func: F) -> F:
        name = getattr(func, "__name__", repr(func))

        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            delays = backoff_delays(initial_delay, backoff_factor, jitter)
            for attempt in range(1, max_attempts + 1):
                try:
                    return func(*args, **kwargs)
                except exceptions as e:
                    if should_retry is not None and not should_retry(e):
                        logger.debug(f"{name} raised non-retryable {type(e).__name__}: {e}")
                        raise
                    if attempt >= max_attempts:
                        logger.error(
                            f"{name} failed after {max_attempts} attempts due to {type(e).__name__}.",
                            exc_info=config.DEBUG
                        )
                        raise
                    wait_time = next(delays)
                    logger.warning(
                        f"{name} failed with {type(e).__name__} (attempt {attempt}/{max_attempts}). "
                        f"Retrying in {wait_time:.2f} seconds...",
                        exc_info=config.DEBUG
                    )
                    sleep(wait_time)
            raise ValueError(f"max_attempts must be at least 1 for {name}")

        return wrapper  # type: ignore
    return decorator
