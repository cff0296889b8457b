"""Bounded retry for network operations.

Architecture:
- RetryConfig: Backoff policy (explicit ladder or exponential) with an
  attempt cap and a cumulative delay ceiling
- retry_async: Async loop that applies a RetryConfig to a coroutine

Usage:
    from infrastructure.resilience.retry import RetryConfig, retry_async

    config = RetryConfig(max_attempts=3, base_delay_seconds=1)
    result = await retry_async(send, config, clock, operation_name="send_photo")
"""

from infrastructure.resilience.retry.config import RetryConfig
from infrastructure.resilience.retry.runner import retry_async

__all__ = [
    "RetryConfig",
    "retry_async",
]
