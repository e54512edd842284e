"""
Retry helpers for Otter.

Exponential backoff with jitter for calls to the Google Sheets API. Only
transient failures (network errors, 429 and 5xx responses) are retried.
"""

import asyncio
import functools
import inspect
import random
import time
from collections.abc import Callable

import httpx

from .exceptions import NetworkError, OtterError, RetryExhaustedError
from .logging import get_logger

logger = get_logger(__name__)


class RetryConfig:
    """Configuration for retry behavior."""

    def __init__(
        self,
        max_attempts: int = 3,
        base_wait: float = 1.0,
        max_wait: float = 30.0,
        multiplier: float = 2.0,
        jitter: bool = True,
    ):
        self.max_attempts = max(1, max_attempts)
        self.base_wait = base_wait
        self.max_wait = max_wait
        self.multiplier = multiplier
        self.jitter = jitter


def is_retryable_exception(exception: Exception) -> bool:
    """Decide whether a failed call is worth repeating."""
    if isinstance(exception, OtterError):
        return exception.retryable

    if isinstance(exception, httpx.HTTPStatusError):
        status = exception.response.status_code
        return status >= 500 or status == 429

    if isinstance(exception, httpx.TransportError | ConnectionError | TimeoutError):
        return True

    return False


def calculate_backoff_with_jitter(
    attempt: int,
    base_wait: float = 1.0,
    max_wait: float = 30.0,
    multiplier: float = 2.0,
    jitter: bool = True,
) -> float:
    """Exponential backoff capped at ``max_wait`` with ±25% jitter."""
    wait_time = min(base_wait * (multiplier ** (attempt - 1)), max_wait)

    if jitter:
        jitter_range = wait_time * 0.25
        wait_time += random.uniform(-jitter_range, jitter_range)

    return max(0.0, wait_time)


def _should_stop(config: RetryConfig, error: Exception, attempt: int) -> bool:
    return attempt >= config.max_attempts or not is_retryable_exception(error)


def _exhausted(name: str, attempt: int, error: Exception) -> Exception:
    # Non-retryable errors surface unchanged on the first attempt
    if attempt == 1 and not is_retryable_exception(error):
        return error
    return RetryExhaustedError(
        f"Operation {name} failed after {attempt} attempts",
        attempt_count=attempt,
        last_error=error,
        operation=name,
    )


def with_enhanced_retry(
    config: RetryConfig | None = None, operation_name: str | None = None
):
    """
    Decorator adding retry with backoff to sync or async callables.

    A non-retryable error on the first attempt is re-raised as-is; otherwise
    the last error is wrapped in :class:`RetryExhaustedError`.
    """
    config = config or RetryConfig()

    def decorator(func: Callable) -> Callable:
        name = operation_name or func.__name__

        @functools.wraps(func)
        async def async_wrapper(*args, **kwargs):
            for attempt in range(1, config.max_attempts + 1):
                try:
                    result = await func(*args, **kwargs)
                    if attempt > 1:
                        logger.info(
                            f"Operation {name} succeeded after retry", attempt=attempt
                        )
                    return result
                except Exception as e:
                    if _should_stop(config, e, attempt):
                        final = _exhausted(name, attempt, e)
                        if final is e:
                            raise
                        raise final from e

                    wait_time = calculate_backoff_with_jitter(
                        attempt,
                        config.base_wait,
                        config.max_wait,
                        config.multiplier,
                        config.jitter,
                    )
                    logger.warning(
                        f"Operation {name} failed, retrying in {wait_time:.2f}s",
                        attempt=attempt,
                        max_attempts=config.max_attempts,
                        error=str(e),
                        error_type=type(e).__name__,
                    )
                    await asyncio.sleep(wait_time)

            raise RetryExhaustedError(
                f"Operation {name} exhausted all retry attempts",
                attempt_count=config.max_attempts,
                operation=name,
            )

        @functools.wraps(func)
        def sync_wrapper(*args, **kwargs):
            for attempt in range(1, config.max_attempts + 1):
                try:
                    return func(*args, **kwargs)
                except Exception as e:
                    if _should_stop(config, e, attempt):
                        final = _exhausted(name, attempt, e)
                        if final is e:
                            raise
                        raise final from e

                    wait_time = calculate_backoff_with_jitter(
                        attempt,
                        config.base_wait,
                        config.max_wait,
                        config.multiplier,
                        config.jitter,
                    )
                    logger.warning(
                        f"Operation {name} failed, retrying in {wait_time:.2f}s",
                        attempt=attempt,
                        error=str(e),
                    )
                    time.sleep(wait_time)

            raise RetryExhaustedError(
                f"Operation {name} exhausted all retry attempts",
                attempt_count=config.max_attempts,
                operation=name,
            )

        if inspect.iscoroutinefunction(func):
            return async_wrapper
        return sync_wrapper

    return decorator


def as_network_error(error: httpx.TransportError, host: str | None = None) -> NetworkError:
    """Wrap an httpx transport failure in a :class:`NetworkError`."""
    return NetworkError(f"Could not reach {host or 'service'}: {error}", host=host)
