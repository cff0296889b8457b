"""Schedule feed models.

Lightweight dataclasses used internally by the schedule pipeline. The raw feed
payload is kept on the snapshot as-is; per-queue intervals are extracted on
demand by ``modules.schedules.parser``.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, tzinfo
from enum import Enum
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class OutageInterval:
    """One planned outage.

    Attributes:
        start: Outage start (timezone-aware)
        end: Outage end (timezone-aware)
        possible: The outage is announced as possible rather than confirmed
    """

    start: datetime
    end: datetime
    possible: bool = False

    def starts_on(self, day: date, tz: tzinfo) -> bool:
        return self.start.astimezone(tz).date() == day

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment <= self.end


@dataclass
class ScheduleSnapshot:
    """The result of one feed fetch for a region.

    Attributes:
        region: Region the feed belongs to
        fetched_at: When the payload was fetched
        raw_payload: Decoded JSON object as served by the feed
        stale: Served from an expired cache entry after every fetch attempt
            failed
    """

    region: str
    fetched_at: datetime
    raw_payload: Dict[str, Any] = field(default_factory=dict)
    stale: bool = False


@dataclass
class QueueSchedule:
    """Intervals of one queue extracted from a snapshot.

    Attributes:
        queue: Queue identifier (e.g. "3.1")
        intervals: Outages sorted by start
        has_data: The feed carried an entry for the queue
    """

    queue: str
    intervals: List[OutageInterval] = field(default_factory=list)
    has_data: bool = False


class EventKind(str, Enum):
    POWER_OFF = "power_off"
    POWER_ON = "power_on"


@dataclass(frozen=True)
class NextEvent:
    """The next planned power change.

    Attributes:
        kind: POWER_OFF when an outage is ahead, POWER_ON while inside one
        at: When the change happens
        minutes: Whole minutes until the change
        possible: The underlying outage is only possible
    """

    kind: EventKind
    at: datetime
    minutes: int
    possible: bool = False


class UpdateKind(str, Enum):
    """What changed between two published schedules."""

    FIRST = "first"
    TODAY_UPDATED = "today_updated"
    TOMORROW_PUBLISHED = "tomorrow_published"
    TOMORROW_UPDATED = "tomorrow_updated"
    UPDATED = "updated"


@dataclass(frozen=True)
class DayFingerprints:
    """Fingerprints of the today and tomorrow slices of a queue's schedule."""

    day: date
    today: str
    tomorrow: str
    tomorrow_empty: bool = True

    def classify(self, previous: Optional["DayFingerprints"]) -> UpdateKind:
        """Label the change relative to ``previous``."""
        if previous is None:
            return UpdateKind.FIRST
        if previous.day != self.day:
            return UpdateKind.UPDATED
        if previous.tomorrow_empty and not self.tomorrow_empty:
            return UpdateKind.TOMORROW_PUBLISHED
        if previous.today != self.today:
            return UpdateKind.TODAY_UPDATED
        if previous.tomorrow != self.tomorrow:
            return UpdateKind.TOMORROW_UPDATED
        return UpdateKind.UPDATED
