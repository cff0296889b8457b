"""Capacity accounting, admission control and emergency mode."""

from modules.capacity.governor import CapacityGovernor
from modules.capacity.limits import (
    build_governor,
    notification_denial,
    probe_slots,
    register_standard_dimensions,
)
from modules.capacity.models import (
    CapacityLevel,
    CapacityStatus,
    DimensionSpec,
    LevelTransition,
)
from modules.capacity.monitor import CapacityMonitor

__all__ = [
    "CapacityGovernor",
    "CapacityMonitor",
    "CapacityLevel",
    "CapacityStatus",
    "DimensionSpec",
    "LevelTransition",
    "build_governor",
    "notification_denial",
    "probe_slots",
    "register_standard_dimensions",
]
