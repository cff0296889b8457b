"""Periodic capacity evaluation.

Refreshes the gauges that mirror the recipient store, evaluates every
system-wide dimension, raises an operator alert for each level change into
warning, critical or emergency, and switches emergency mode on and off.
"""

from typing import Callable, Dict, List, Optional, Tuple

from infrastructure.events import EMERGENCY_MODE_CHANGED, Event, EventBus
from infrastructure.logging import get_module_logger
from infrastructure.notifications import (
    CHANNEL_CONCURRENT_OPERATIONS,
    CHANNEL_PUBLISH_PER_MINUTE,
    MESSAGES_PER_MINUTE,
)
from modules.alerts import AlertDispatcher, AlertLevel, AlertType
from modules.capacity.governor import CapacityGovernor
from modules.capacity.limits import (
    CHANNELS_TOTAL,
    MESSAGE_QUEUE_SIZE,
    PROBE_CONCURRENT,
    PROBE_PER_MINUTE,
    PROBE_TOTAL,
    USERS_CONCURRENT,
    USERS_TOTAL,
)
from modules.capacity.models import CapacityLevel, LevelTransition
from modules.recipients import RecipientStateStore

logger = get_module_logger()

STATISTICS_FEATURE = "statistics"

DIMENSION_LABELS: Dict[str, Tuple[str, AlertType]] = {
    USERS_TOTAL: ("Recipients (total)", AlertType.BUSINESS),
    USERS_CONCURRENT: ("Recipients being notified", AlertType.APPLICATION),
    CHANNELS_TOTAL: ("Channels (total)", AlertType.BUSINESS),
    CHANNEL_PUBLISH_PER_MINUTE: ("Channel publications per minute", AlertType.CHANNEL),
    CHANNEL_CONCURRENT_OPERATIONS: ("Concurrent channel operations", AlertType.CHANNEL),
    PROBE_TOTAL: ("Probe targets", AlertType.PROBE),
    PROBE_CONCURRENT: ("Concurrent probes", AlertType.PROBE),
    PROBE_PER_MINUTE: ("Probes per minute", AlertType.PROBE),
    MESSAGES_PER_MINUTE: ("Messages per minute", AlertType.APPLICATION),
    MESSAGE_QUEUE_SIZE: ("Message queue", AlertType.APPLICATION),
}

_ALERT_TEXT = {
    CapacityLevel.WARNING: (
        AlertLevel.WARN,
        "Capacity warning",
        "Keep an eye on it",
    ),
    CapacityLevel.CRITICAL: (
        AlertLevel.CRITICAL,
        "Capacity critical",
        "Reduce load; new work on this dimension is being throttled",
    ),
    CapacityLevel.EMERGENCY: (
        AlertLevel.CRITICAL,
        "Capacity limit exceeded",
        "The system is in emergency mode; act now",
    ),
}


class CapacityMonitor:
    """Drives the governor's periodic evaluation.

    Args:
        governor: Capacity governor
        alerts: Operator alert dispatcher
        store: Recipient store the total gauges are derived from
        on_slowdown: Called with the interval multiplier when emergency mode
            is entered (governor multiplier) or left (1.0)
        event_bus: Optional bus receiving emergency-mode events
    """

    def __init__(
        self,
        governor: CapacityGovernor,
        alerts: AlertDispatcher,
        store: RecipientStateStore,
        on_slowdown: Optional[Callable[[float], None]] = None,
        event_bus: Optional[EventBus] = None,
    ):
        self.governor = governor
        self.alerts = alerts
        self.store = store
        self.on_slowdown = on_slowdown
        self.event_bus = event_bus

    def refresh_gauges(self) -> None:
        recipients = self.store.list_all()
        self.governor.set_usage(USERS_TOTAL, len(recipients))
        self.governor.set_usage(
            CHANNELS_TOTAL,
            sum(1 for r in recipients if r.has_broadcast and not r.broadcast_blocked),
        )
        self.governor.set_usage(PROBE_TOTAL, sum(1 for r in recipients if r.has_probe))

    async def check(self) -> List[LevelTransition]:
        """Evaluate capacity once.

        Returns:
            Level transitions observed in this evaluation.
        """
        self.refresh_gauges()
        transitions = self.governor.evaluate()

        for transition in transitions:
            logger.info(
                "capacity_level_changed",
                dimension=transition.dimension,
                previous=transition.previous.value,
                current=transition.current.value,
                current_usage=transition.status.current,
                limit=transition.status.limit,
            )
            if transition.current != CapacityLevel.NONE:
                await self._alert(transition)

        await self._update_emergency_mode()
        return transitions

    async def _alert(self, transition: LevelTransition) -> None:
        status = transition.status
        label, alert_type = DIMENSION_LABELS.get(
            transition.dimension, (transition.dimension, AlertType.SYSTEM)
        )
        level, prefix, action = _ALERT_TEXT[transition.current]
        await self.alerts.generate(
            alert_type,
            level,
            f"{prefix}: {label}",
            f"{status.percentage:.1f}% used ({status.current}/{status.limit})",
            data={
                "dimension": transition.dimension,
                "current": status.current,
                "limit": status.limit,
                "level": transition.current.value,
            },
            action=action,
        )

    async def _update_emergency_mode(self) -> None:
        at_emergency = [
            name
            for name in self.governor.dimensions
            if self.governor.current_level(name) == CapacityLevel.EMERGENCY
        ]

        if at_emergency and self.governor.enable_emergency_mode():
            await self.alerts.generate(
                AlertType.SYSTEM,
                AlertLevel.CRITICAL,
                "Emergency mode enabled",
                "Capacity limits reached on: " + ", ".join(sorted(at_emergency)),
                data={"dimensions": ", ".join(sorted(at_emergency))},
                action="Recurring checks are slowed down and non-critical features are off",
            )
            await self._mode_changed(enabled=True)
        elif not at_emergency and self.governor.disable_emergency_mode():
            await self.alerts.generate(
                AlertType.SYSTEM,
                AlertLevel.INFO,
                "Emergency mode disabled",
                "All capacity dimensions are back below their limits",
            )
            await self._mode_changed(enabled=False)

    async def _mode_changed(self, enabled: bool) -> None:
        multiplier = self.governor.slowdown_multiplier
        if self.on_slowdown is not None:
            self.on_slowdown(multiplier)
        if self.event_bus is not None:
            await self.event_bus.publish(
                Event(
                    event_type=EMERGENCY_MODE_CHANGED,
                    metadata={"enabled": enabled, "slowdown_multiplier": multiplier},
                )
            )

    def log_summary(self) -> None:
        """Log current usage of every system-wide dimension."""
        summary = self.governor.usage_summary()
        if self.governor.is_feature_enabled(STATISTICS_FEATURE):
            summary["alerts"] = self.alerts.summary()
        logger.info("capacity_summary", **summary)
