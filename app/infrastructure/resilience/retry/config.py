"""Retry policy configuration.

This module defines the backoff policy shared by feed fetches and
notification delivery.
"""

from dataclasses import dataclass
from typing import Optional, Tuple


@dataclass(frozen=True)
class RetryConfig:
    """Bounded retry policy.

    Delays come either from an explicit ladder (``delays``) or from
    exponential backoff: ``min(base_delay * 2 ** (attempts - 1), max_delay)``.
    A ``retry_after`` hint from the remote side raises the next delay to at
    least that value. No further attempt is made once ``max_attempts`` is
    reached or once the next delay would take the cumulative wait past
    ``max_total_delay_seconds``.

    Attributes:
        max_attempts: Attempts before giving up (including the first one)
        base_delay_seconds: First exponential backoff delay
        max_delay_seconds: Cap for a single exponential delay
        max_total_delay_seconds: Ceiling on the cumulative wait
        delays: Explicit delay ladder; the last entry repeats if it is shorter
            than ``max_attempts - 1``

    Example:
        # Exponential backoff for message delivery
        config = RetryConfig(max_attempts=3, base_delay_seconds=1)

        # Fixed ladder for feed fetches
        config = RetryConfig.from_ladder([5, 15, 45], max_attempts=3)
    """

    max_attempts: int = 3
    base_delay_seconds: float = 1.0
    max_delay_seconds: float = 10.0
    max_total_delay_seconds: float = 30.0
    delays: Tuple[float, ...] = ()

    def __post_init__(self) -> None:
        """Validate configuration values."""
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay_seconds < 0:
            raise ValueError("base_delay_seconds must not be negative")
        if self.max_delay_seconds < self.base_delay_seconds:
            raise ValueError("max_delay_seconds must be >= base_delay_seconds")
        if self.max_total_delay_seconds < 0:
            raise ValueError("max_total_delay_seconds must not be negative")
        if any(delay < 0 for delay in self.delays):
            raise ValueError("delays must not be negative")

    @classmethod
    def from_ladder(cls, delays, max_attempts: Optional[int] = None) -> "RetryConfig":
        """Build a policy from an explicit delay ladder.

        The cumulative ceiling is the sum of the delays actually used, so the
        ladder alone decides the timing.
        """
        ladder = tuple(float(delay) for delay in delays)
        attempts = max_attempts if max_attempts is not None else len(ladder) + 1
        used = [ladder[min(i, len(ladder) - 1)] for i in range(attempts - 1)] if ladder else []
        return cls(
            max_attempts=attempts,
            base_delay_seconds=0.0,
            max_delay_seconds=max(ladder, default=0.0),
            max_total_delay_seconds=sum(used),
            delays=ladder,
        )

    def delay_for(self, attempts: int) -> float:
        """Delay before the attempt following ``attempts`` completed attempts."""
        if self.delays:
            return self.delays[min(attempts - 1, len(self.delays) - 1)]
        delay = self.base_delay_seconds * (2 ** (attempts - 1))
        return min(delay, self.max_delay_seconds)

    def next_delay(
        self,
        attempts: int,
        waited: float,
        retry_after: Optional[float] = None,
    ) -> Optional[float]:
        """Return the delay before the next attempt, or None when exhausted.

        Args:
            attempts: Attempts made so far
            waited: Seconds already spent waiting between attempts
            retry_after: Minimum wait requested by the remote side

        Returns:
            Seconds to wait, or None if no further attempt is allowed.
        """
        if attempts >= self.max_attempts:
            return None
        delay = self.delay_for(attempts)
        if retry_after is not None:
            delay = max(delay, float(retry_after))
        if waited + delay > self.max_total_delay_seconds:
            return None
        return delay
