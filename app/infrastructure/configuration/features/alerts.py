"""Operator alert settings."""

from typing import Optional

from pydantic import Field

from infrastructure.configuration.base import FeatureSettings


class AlertSettings(FeatureSettings):
    """Operator alert delivery configuration.

    Environment Variables:
        ALERT_DEBOUNCE_MINUTES: Cooldown for an identical (type, title) alert
        ALERT_MAX_PER_HOUR: Global cap on alerts fired in the trailing hour
        ALERT_ESCALATION_THRESHOLD: Prior occurrences before a level is bumped
        ALERT_ERROR_BURST_THRESHOLD: Errors from one source that trigger an alert
        ALERT_ERROR_WINDOW_MINUTES: Window in which error bursts are counted
        ALERT_RETENTION_DAYS: How long fired alerts are kept in history
        ALERT_HISTORY_SIZE: Maximum number of alerts kept in history
        ALERT_SWEEP_INTERVAL_SECONDS: Interval of the history sweep trigger
        ALERT_CHAT_ID: Operator chat receiving alerts (alerts are logged only
            when unset)
    """

    debounce_minutes: float = Field(default=15, alias="ALERT_DEBOUNCE_MINUTES")
    max_per_hour: int = Field(default=20, alias="ALERT_MAX_PER_HOUR")
    escalation_threshold: int = Field(default=3, alias="ALERT_ESCALATION_THRESHOLD")
    error_burst_threshold: int = Field(default=5, alias="ALERT_ERROR_BURST_THRESHOLD")
    error_window_minutes: float = Field(default=10, alias="ALERT_ERROR_WINDOW_MINUTES")
    retention_days: int = Field(default=7, alias="ALERT_RETENTION_DAYS")
    history_size: int = Field(default=1000, alias="ALERT_HISTORY_SIZE")
    sweep_interval_seconds: int = Field(
        default=900, alias="ALERT_SWEEP_INTERVAL_SECONDS"
    )
    chat_id: Optional[str] = Field(default=None, alias="ALERT_CHAT_ID")
