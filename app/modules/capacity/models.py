"""Capacity accounting models."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class CapacityLevel(str, Enum):
    """Usage level of a dimension, ordered from NONE to EMERGENCY."""

    NONE = "none"
    WARNING = "warning"
    CRITICAL = "critical"
    EMERGENCY = "emergency"

    @property
    def rank(self) -> int:
        return _RANKS[self]

    def __ge__(self, other):
        if isinstance(other, CapacityLevel):
            return self.rank >= other.rank
        return NotImplemented

    def __gt__(self, other):
        if isinstance(other, CapacityLevel):
            return self.rank > other.rank
        return NotImplemented

    def __le__(self, other):
        if isinstance(other, CapacityLevel):
            return self.rank <= other.rank
        return NotImplemented

    def __lt__(self, other):
        if isinstance(other, CapacityLevel):
            return self.rank < other.rank
        return NotImplemented


_RANKS = {
    CapacityLevel.NONE: 0,
    CapacityLevel.WARNING: 1,
    CapacityLevel.CRITICAL: 2,
    CapacityLevel.EMERGENCY: 3,
}


@dataclass(frozen=True)
class DimensionSpec:
    """Registered capacity dimension.

    Attributes:
        name: Dimension name (e.g. "messages.per_minute")
        limit: Maximum usage
        window_seconds: Counting window; None for gauges (totals and
            in-flight counts)
        throttled: Admission is denied at the critical threshold
        keyed: Usage is tracked per key (recipient or destination)
    """

    name: str
    limit: int
    window_seconds: Optional[float] = None
    throttled: bool = False
    keyed: bool = False

    @property
    def is_gauge(self) -> bool:
        return self.window_seconds is None


@dataclass
class CapacityCounter:
    """Usage of one dimension (and key) in the current window."""

    dimension: str
    key: Optional[str]
    limit: int
    window_count: int = 0
    window_started_at: Optional[datetime] = None


@dataclass(frozen=True)
class CapacityStatus:
    """Point-in-time usage of a dimension."""

    dimension: str
    current: int
    limit: int
    percentage: float
    level: CapacityLevel
    key: Optional[str] = None


@dataclass(frozen=True)
class LevelTransition:
    """A dimension moved from one level to another between evaluations."""

    dimension: str
    previous: CapacityLevel
    current: CapacityLevel
    status: CapacityStatus

    @property
    def is_escalation(self) -> bool:
        return self.current > self.previous
