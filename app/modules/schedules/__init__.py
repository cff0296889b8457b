"""Outage schedule feed, change fingerprints and schedule messages.

The monitor lives in ``modules.schedules.monitor`` and is imported from there.
"""

from modules.schedules.fingerprint import (
    compute_day_fingerprints,
    compute_fingerprint,
    has_changed,
)
from modules.schedules.models import (
    NextEvent,
    OutageInterval,
    QueueSchedule,
    ScheduleSnapshot,
)

__all__ = [
    "compute_day_fingerprints",
    "compute_fingerprint",
    "has_changed",
    "NextEvent",
    "OutageInterval",
    "QueueSchedule",
    "ScheduleSnapshot",
]
