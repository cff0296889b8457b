"""Notification delivery infrastructure settings."""

from pydantic import Field

from infrastructure.configuration.base import InfrastructureSettings


class DeliverySettings(InfrastructureSettings):
    """Retry policy for outbound notifications.

    Exponential Backoff:
        Delay before attempt ``n + 1``: ``base_delay * 2 ** (n - 1)``, capped at
        ``max_delay``. The sequence stops early when the next delay would push
        the cumulative wait past ``max_total_delay``.

        Example with defaults (base=1s, attempts=3):
            Attempt 1: immediate
            Attempt 2: after 1s
            Attempt 3: after 2s

    Environment Variables:
        DELIVERY_MAX_ATTEMPTS: Rich attempts before the plain-text fallback
        DELIVERY_BASE_DELAY_SECONDS: First backoff delay
        DELIVERY_MAX_DELAY_SECONDS: Cap for a single backoff delay
        DELIVERY_MAX_TOTAL_DELAY_SECONDS: Ceiling on the cumulative wait per destination
        DELIVERY_TIMEOUT_SECONDS: Per-request timeout for the delivery transport
    """

    max_attempts: int = Field(
        default=3,
        alias="DELIVERY_MAX_ATTEMPTS",
        description="Rich attempts per destination before the plain-text fallback",
    )
    base_delay_seconds: float = Field(
        default=1.0,
        alias="DELIVERY_BASE_DELAY_SECONDS",
        description="Base delay for exponential backoff (seconds)",
    )
    max_delay_seconds: float = Field(
        default=10.0,
        alias="DELIVERY_MAX_DELAY_SECONDS",
        description="Maximum single backoff delay (seconds)",
    )
    max_total_delay_seconds: float = Field(
        default=30.0,
        alias="DELIVERY_MAX_TOTAL_DELAY_SECONDS",
        description="Ceiling on cumulative backoff per destination (seconds)",
    )
    timeout_seconds: float = Field(
        default=30.0,
        alias="DELIVERY_TIMEOUT_SECONDS",
        description="Per-request timeout (seconds)",
    )
