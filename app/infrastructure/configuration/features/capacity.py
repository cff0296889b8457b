"""Capacity limit settings."""

from typing import List

from pydantic import Field, model_validator

from infrastructure.configuration.base import FeatureSettings


class CapacitySettings(FeatureSettings):
    """System-wide resource limits and alert thresholds.

    Limits are grouped by the resource they protect. Thresholds are fractions
    of a limit; crossing one moves the dimension to the next level
    (warning, critical, emergency). Throttled dimensions deny admission once
    they reach the critical threshold.

    Environment Variables:
        MAX_TOTAL_USERS: Registered recipients
        MAX_CONCURRENT_USERS: Recipients being notified at once
        MAX_ACTIONS_PER_USER_PER_MIN: Notifications per recipient per minute
        MAX_TOTAL_CHANNELS: Connected broadcast channels
        MAX_CHANNEL_PUBLISH_PER_MIN: Broadcast publications per minute
        MAX_CONCURRENT_CHANNEL_OPS: Broadcast operations in flight
        MAX_TOTAL_PROBES: Registered probe targets
        MAX_CONCURRENT_PROBES: Probes in flight
        MAX_PROBES_PER_MINUTE: Probes per minute
        MAX_MESSAGES_PER_MINUTE: Outbound messages per minute
        MAX_MSG_PER_DESTINATION_PER_MIN: Outbound messages per destination per minute
        MAX_MESSAGE_QUEUE_SIZE: Recipients waiting for delivery in a schedule batch
        ALERT_WARNING_THRESHOLD / ALERT_CRITICAL_THRESHOLD /
        ALERT_EMERGENCY_THRESHOLD: Level thresholds (fractions of a limit)
        EMERGENCY_SCHEDULER_SLOWDOWN: Interval multiplier while in emergency mode
        EMERGENCY_DISABLE_NON_CRITICAL: Disable non-critical features in emergency mode
        NON_CRITICAL_FEATURES: Features switched off in emergency mode
        CAPACITY_CHECK_INTERVAL_SECONDS: Capacity evaluation interval
        CAPACITY_SUMMARY_INTERVAL_SECONDS: Usage summary log interval

    Raises:
        ValueError: When a limit is not positive or the thresholds are not
            strictly increasing. Pydantic surfaces it as a ValidationError at
            startup.
    """

    max_total_users: int = Field(default=10000, alias="MAX_TOTAL_USERS")
    max_concurrent_users: int = Field(default=500, alias="MAX_CONCURRENT_USERS")
    max_actions_per_user_per_min: int = Field(
        default=20, alias="MAX_ACTIONS_PER_USER_PER_MIN"
    )

    max_total_channels: int = Field(default=5000, alias="MAX_TOTAL_CHANNELS")
    max_channel_publish_per_min: int = Field(
        default=100, alias="MAX_CHANNEL_PUBLISH_PER_MIN"
    )
    max_concurrent_channel_ops: int = Field(
        default=50, alias="MAX_CONCURRENT_CHANNEL_OPS"
    )

    max_total_probes: int = Field(default=2000, alias="MAX_TOTAL_PROBES")
    max_concurrent_probes: int = Field(default=100, alias="MAX_CONCURRENT_PROBES")
    max_probes_per_minute: int = Field(default=3000, alias="MAX_PROBES_PER_MINUTE")

    max_messages_per_minute: int = Field(default=1000, alias="MAX_MESSAGES_PER_MINUTE")
    max_msg_per_destination_per_min: int = Field(
        default=20, alias="MAX_MSG_PER_DESTINATION_PER_MIN"
    )
    max_message_queue_size: int = Field(default=5000, alias="MAX_MESSAGE_QUEUE_SIZE")

    warning_threshold: float = Field(default=0.8, alias="ALERT_WARNING_THRESHOLD")
    critical_threshold: float = Field(default=0.9, alias="ALERT_CRITICAL_THRESHOLD")
    emergency_threshold: float = Field(default=1.0, alias="ALERT_EMERGENCY_THRESHOLD")

    emergency_slowdown: float = Field(
        default=2.0,
        alias="EMERGENCY_SCHEDULER_SLOWDOWN",
        description="Interval multiplier applied to recurring checks in emergency mode",
    )
    emergency_disable_non_critical: bool = Field(
        default=True,
        alias="EMERGENCY_DISABLE_NON_CRITICAL",
        description="Disable non-critical features while in emergency mode",
    )
    non_critical_features: List[str] = Field(
        default_factory=lambda: ["statistics", "analytics", "growth_metrics"],
        alias="NON_CRITICAL_FEATURES",
    )

    check_interval_seconds: int = Field(
        default=60, alias="CAPACITY_CHECK_INTERVAL_SECONDS"
    )
    summary_interval_seconds: int = Field(
        default=300, alias="CAPACITY_SUMMARY_INTERVAL_SECONDS"
    )

    @model_validator(mode="after")
    def validate_limits(self) -> "CapacitySettings":
        """Reject non-positive limits and out-of-order thresholds."""
        for name, value in self.limits().items():
            if value <= 0:
                raise ValueError(f"{name} must be positive, got {value}")

        if not (
            0 < self.warning_threshold
            < self.critical_threshold
            < self.emergency_threshold
        ):
            raise ValueError(
                "Capacity thresholds must satisfy 0 < warning < critical < emergency "
                f"(got {self.warning_threshold}, {self.critical_threshold}, "
                f"{self.emergency_threshold})"
            )

        if self.emergency_slowdown < 1:
            raise ValueError("EMERGENCY_SCHEDULER_SLOWDOWN must be at least 1")

        return self

    def limits(self) -> dict[str, int]:
        """Return every configured limit keyed by field name."""
        return {
            name: getattr(self, name)
            for name in type(self).model_fields
            if name.startswith("max_")
        }
