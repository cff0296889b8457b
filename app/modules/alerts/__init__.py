"""Operator alerts with deduplication, an hourly cap and escalation."""

from modules.alerts.dispatcher import AlertDispatcher
from modules.alerts.models import Alert, AlertLevel, AlertRecord, AlertType

__all__ = [
    "AlertDispatcher",
    "Alert",
    "AlertLevel",
    "AlertRecord",
    "AlertType",
]
