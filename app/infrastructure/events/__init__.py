"""In-process event bus.

Exports:
    Event: Immutable event record
    EventBus: Instance-scoped publish/subscribe registry
    CHANNEL_BLOCKED, PERSONAL_BLOCKED, EMERGENCY_MODE_CHANGED: Event types
"""

from infrastructure.events.dispatcher import EventBus
from infrastructure.events.models import (
    CHANNEL_BLOCKED,
    EMERGENCY_MODE_CHANGED,
    PERSONAL_BLOCKED,
    Event,
)

__all__ = [
    "Event",
    "EventBus",
    "CHANNEL_BLOCKED",
    "PERSONAL_BLOCKED",
    "EMERGENCY_MODE_CHANGED",
]
