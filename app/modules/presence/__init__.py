"""Presence (power on/off) detection from router reachability.

The monitor lives in ``modules.presence.monitor`` and is imported from there.
"""

from modules.presence.debouncer import SignalDebouncer, transition
from modules.presence.models import (
    PowerState,
    PresenceLabel,
    PresenceState,
    PresenceTransition,
)

__all__ = [
    "SignalDebouncer",
    "transition",
    "PowerState",
    "PresenceLabel",
    "PresenceState",
    "PresenceTransition",
]
