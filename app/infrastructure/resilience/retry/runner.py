"""Async retry loop driven by a RetryConfig."""

from typing import Awaitable, Callable, Optional, TypeVar

from infrastructure.logging import get_module_logger
from infrastructure.resilience.clock import Clock
from infrastructure.resilience.retry.config import RetryConfig

logger = get_module_logger()

T = TypeVar("T")


async def retry_async(
    operation: Callable[[int], Awaitable[T]],
    config: RetryConfig,
    clock: Clock,
    *,
    is_retryable: Optional[Callable[[Exception], bool]] = None,
    retry_after: Optional[Callable[[Exception], Optional[float]]] = None,
    on_failure: Optional[Callable[[int, Exception], None]] = None,
    operation_name: str = "operation",
) -> T:
    """Run ``operation`` until it succeeds or the policy is exhausted.

    Args:
        operation: Coroutine function called with the 1-based attempt number
        config: Retry policy
        clock: Clock used for sleeping between attempts
        is_retryable: Returns False for errors that must not be retried;
            such errors propagate immediately. Every error is retryable when
            omitted.
        retry_after: Extracts a minimum wait hint from an error
        on_failure: Called with (attempt, error) after every failed attempt
        operation_name: Name used in log entries

    Returns:
        The operation's result.

    Raises:
        Exception: The last error once no further attempt is allowed, or the
            first non-retryable error.
    """
    attempts = 0
    waited = 0.0

    while True:
        attempts += 1
        try:
            return await operation(attempts)
        except Exception as e:
            if on_failure is not None:
                on_failure(attempts, e)

            if is_retryable is not None and not is_retryable(e):
                raise

            hint = retry_after(e) if retry_after is not None else None
            delay = config.next_delay(attempts, waited, hint)
            if delay is None:
                logger.warning(
                    "retry_exhausted",
                    operation=operation_name,
                    attempts=attempts,
                    waited_seconds=waited,
                    error=str(e),
                )
                raise

            logger.info(
                "retry_scheduled",
                operation=operation_name,
                attempt=attempts,
                delay_seconds=delay,
                error=str(e),
            )
            waited += delay
            await clock.sleep(delay)
