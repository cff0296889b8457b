"""Resilience patterns and implementations.

This module contains resilience-related infrastructure components: the
clock abstraction every time-dependent component reads, and bounded retry.
"""

from infrastructure.resilience.clock import Clock, SystemClock
from infrastructure.resilience.retry import RetryConfig, retry_async

__all__ = [
    # Time
    "Clock",
    "SystemClock",
    # Retry
    "RetryConfig",
    "retry_async",
]
