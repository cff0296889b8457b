"""Standard capacity dimensions."""

import math
from typing import Optional

from infrastructure.configuration.features import CapacitySettings
from infrastructure.notifications import (
    CHANNEL_CONCURRENT_OPERATIONS,
    CHANNEL_PUBLISH_PER_MINUTE,
    MESSAGES_PER_DESTINATION,
    MESSAGES_PER_MINUTE,
    AdmissionGate,
)
from infrastructure.resilience import Clock
from modules.capacity.governor import CapacityGovernor

USERS_TOTAL = "users.total"
USERS_CONCURRENT = "users.concurrent"
USERS_ACTIONS_PER_MINUTE = "users.actions_per_minute"
CHANNELS_TOTAL = "channels.total"
PROBE_TOTAL = "probe.total"
PROBE_CONCURRENT = "probe.concurrent"
PROBE_PER_MINUTE = "probe.per_minute"
MESSAGE_QUEUE_SIZE = "messages.queue_size"

MINUTE = 60


def register_standard_dimensions(
    governor: CapacityGovernor, settings: CapacitySettings
) -> CapacityGovernor:
    """Register every dimension the pipeline records or checks.

    Per-minute rates and in-flight counts that protect a shared resource are
    throttled; totals only drive alerts.
    """
    governor.register_dimension(USERS_TOTAL, None, settings.max_total_users)
    governor.register_dimension(
        USERS_CONCURRENT, None, settings.max_concurrent_users, throttled=True
    )
    governor.register_dimension(
        USERS_ACTIONS_PER_MINUTE,
        MINUTE,
        settings.max_actions_per_user_per_min,
        throttled=True,
        keyed=True,
    )

    governor.register_dimension(CHANNELS_TOTAL, None, settings.max_total_channels)
    governor.register_dimension(
        CHANNEL_PUBLISH_PER_MINUTE,
        MINUTE,
        settings.max_channel_publish_per_min,
        throttled=True,
    )
    governor.register_dimension(
        CHANNEL_CONCURRENT_OPERATIONS,
        None,
        settings.max_concurrent_channel_ops,
        throttled=True,
    )

    governor.register_dimension(PROBE_TOTAL, None, settings.max_total_probes)
    governor.register_dimension(
        PROBE_CONCURRENT, None, settings.max_concurrent_probes, throttled=True
    )
    governor.register_dimension(
        PROBE_PER_MINUTE, MINUTE, settings.max_probes_per_minute, throttled=True
    )

    governor.register_dimension(
        MESSAGES_PER_MINUTE, MINUTE, settings.max_messages_per_minute, throttled=True
    )
    governor.register_dimension(
        MESSAGES_PER_DESTINATION,
        MINUTE,
        settings.max_msg_per_destination_per_min,
        throttled=True,
        keyed=True,
    )
    governor.register_dimension(MESSAGE_QUEUE_SIZE, None, settings.max_message_queue_size)
    return governor


def notification_denial(gate: AdmissionGate, recipient_id: str) -> Optional[str]:
    """Return the first dimension refusing a notification to ``recipient_id``.

    None means the notification may go out.
    """
    if not gate.admit(MESSAGES_PER_MINUTE):
        return MESSAGES_PER_MINUTE
    if not gate.admit(USERS_CONCURRENT):
        return USERS_CONCURRENT
    if not gate.admit(USERS_ACTIONS_PER_MINUTE, key=recipient_id):
        return USERS_ACTIONS_PER_MINUTE
    return None


def build_governor(
    settings: CapacitySettings, clock: Optional[Clock] = None
) -> CapacityGovernor:
    """Create a governor from settings with the standard dimensions registered."""
    governor = CapacityGovernor(
        warning_threshold=settings.warning_threshold,
        critical_threshold=settings.critical_threshold,
        emergency_threshold=settings.emergency_threshold,
        clock=clock,
        emergency_slowdown=settings.emergency_slowdown,
        disable_non_critical=settings.emergency_disable_non_critical,
        non_critical_features=settings.non_critical_features,
    )
    return register_standard_dimensions(governor, settings)


def probe_slots(settings: CapacitySettings) -> int:
    """Probes allowed in flight at once.

    One below the count at which ``probe.concurrent`` reaches the critical
    threshold, so a full set of in-flight probes never trips admission.
    """
    critical_count = math.ceil(
        round(settings.max_concurrent_probes * settings.critical_threshold, 6)
    )
    return max(critical_count - 1, 1)
