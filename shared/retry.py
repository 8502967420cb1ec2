"""
Backoff and retry for (re)connecting long-lived channels.
"""

import asyncio
import functools
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Tuple, Type

from shared.logging import get_logger


@dataclass
class RetryConfig:
    """How many attempts to make and how long to wait between them."""
    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 60.0
    exponential_base: float = 2.0
    jitter: bool = True
    backoff_strategy: str = "exponential"

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait after failed ``attempt`` (1-based), capped at ``max_delay``."""
        if self.backoff_strategy == "exponential":
            delay = self.base_delay * (self.exponential_base ** (attempt - 1))
        elif self.backoff_strategy == "linear":
            delay = self.base_delay * attempt
        else:
            delay = self.base_delay

        delay = min(delay, self.max_delay)
        if self.jitter:
            spread = delay * 0.1
            delay += random.uniform(-spread, spread)
        return max(0.0, delay)


class RetryError(Exception):
    """Every attempt failed; ``last_exception`` is the final cause."""

    def __init__(self, message: str, last_exception: BaseException, attempts: int):
        super().__init__(message)
        self.last_exception = last_exception
        self.attempts = attempts


def retry_on_exception(
    exceptions: Tuple[Type[BaseException], ...] = (Exception,),
    config: Optional[RetryConfig] = None,
    config_factory: Optional[Callable[..., RetryConfig]] = None,
) -> Callable:
    """Retry an async callable while it raises one of ``exceptions``.

    ``config_factory`` is called with the same arguments as the wrapped
    function and wins over ``config``; methods use it to read their policy
    from ``self``. Exceptions outside ``exceptions`` propagate immediately.
    """

    def decorator(func: Callable[..., Awaitable[Any]]) -> Callable[..., Awaitable[Any]]:
        logger = get_logger(f"retry.{func.__name__}")

        @functools.wraps(func)
        async def wrapper(*args, **kwargs) -> Any:
            policy = config_factory(*args, **kwargs) if config_factory else (config or RetryConfig())
            attempt = 0

            while True:
                attempt += 1
                try:
                    result = await func(*args, **kwargs)
                except exceptions as e:
                    if attempt >= policy.max_attempts:
                        logger.error("Giving up", attempts=attempt, error=str(e))
                        raise RetryError(
                            f"{func.__name__} failed after {attempt} attempts",
                            last_exception=e,
                            attempts=attempt,
                        ) from e

                    delay = policy.delay_for(attempt)
                    logger.warning("Attempt failed, backing off", attempt=attempt, delay=round(delay, 3), error=str(e))
                    await asyncio.sleep(delay)
                    continue

                if attempt > 1:
                    logger.info("Succeeded after retry", attempts=attempt)
                return result

        return wrapper

    return decorator
