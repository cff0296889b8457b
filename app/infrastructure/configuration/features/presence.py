"""Presence (router reachability) settings."""

from pydantic import Field

from infrastructure.configuration.base import FeatureSettings


class PresenceSettings(FeatureSettings):
    """Router reachability probe configuration.

    Environment Variables:
        POWER_DEBOUNCE_MINUTES: How long a new reading must hold before it is
            confirmed as a power transition
        POWER_CHECK_INTERVAL_SECONDS: Probe trigger interval
        PROBE_TIMEOUT_SECONDS: Per-probe timeout
        PROBE_DEFAULT_PORT: Port used when the address has none
    """

    debounce_minutes: float = Field(
        default=5,
        alias="POWER_DEBOUNCE_MINUTES",
        description="Stability window before a reading is confirmed (minutes)",
    )
    check_interval_seconds: int = Field(
        default=30,
        alias="POWER_CHECK_INTERVAL_SECONDS",
        description="Probe trigger interval (seconds)",
    )
    probe_timeout_seconds: float = Field(
        default=5.0,
        alias="PROBE_TIMEOUT_SECONDS",
        description="Per-probe timeout (seconds)",
    )
    default_port: int = Field(
        default=80,
        alias="PROBE_DEFAULT_PORT",
        description="Port used when the probe address has none",
    )
