"""Capacity governor.

Tracks usage per dimension, derives levels from thresholds, gates admission
on throttled dimensions and owns the emergency-mode state.

Two kinds of dimensions are supported:
- Windowed counters (``window_seconds`` set) count events in a window that
  resets as a whole once it has elapsed. Resets happen lazily whenever the
  counter is read or written.
- Gauges (``window_seconds`` None) hold a value that is set directly or
  recorded and released around an operation.

Usage:
    governor = CapacityGovernor(clock=clock)
    governor.register_dimension("messages.per_minute", 60, 1000, throttled=True)

    if governor.admit("messages.per_minute"):
        governor.record("messages.per_minute")
"""

from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

from infrastructure.logging import get_module_logger
from infrastructure.operations import ConfigInvalid
from infrastructure.resilience import Clock, SystemClock
from modules.capacity.models import (
    CapacityCounter,
    CapacityLevel,
    CapacityStatus,
    DimensionSpec,
    LevelTransition,
)

logger = get_module_logger()

CounterKey = Tuple[str, Optional[str]]


class CapacityGovernor:
    """Usage counters, level evaluation, admission and emergency mode.

    Args:
        warning_threshold: Fraction of a limit at which a dimension is WARNING
        critical_threshold: Fraction at which it is CRITICAL; throttled
            dimensions deny admission from here on
        emergency_threshold: Fraction at which it is EMERGENCY
        clock: Time source for counter windows
        emergency_slowdown: Interval multiplier while in emergency mode
        disable_non_critical: Switch off non-critical features in emergency mode
        non_critical_features: Feature names considered non-critical

    Raises:
        ConfigInvalid: When the thresholds are not ``0 < warning < critical <
            emergency`` or the slowdown is below 1.
    """

    def __init__(
        self,
        warning_threshold: float = 0.8,
        critical_threshold: float = 0.9,
        emergency_threshold: float = 1.0,
        clock: Optional[Clock] = None,
        emergency_slowdown: float = 2.0,
        disable_non_critical: bool = True,
        non_critical_features: Iterable[str] = ("statistics", "analytics", "growth_metrics"),
    ):
        if not 0 < warning_threshold < critical_threshold < emergency_threshold:
            raise ConfigInvalid(
                "Capacity thresholds must satisfy 0 < warning < critical < emergency "
                f"(got {warning_threshold}, {critical_threshold}, {emergency_threshold})"
            )
        if emergency_slowdown < 1:
            raise ConfigInvalid("Emergency slowdown must be at least 1")

        self.warning_threshold = warning_threshold
        self.critical_threshold = critical_threshold
        self.emergency_threshold = emergency_threshold
        self.clock = clock or SystemClock()
        self.emergency_slowdown = emergency_slowdown
        self.disable_non_critical = disable_non_critical
        self.non_critical_features = frozenset(non_critical_features)

        self._dimensions: Dict[str, DimensionSpec] = {}
        self._counters: Dict[CounterKey, CapacityCounter] = {}
        self._levels: Dict[str, CapacityLevel] = {}
        self.emergency_mode = False
        self.emergency_since: Optional[datetime] = None

    # Registration

    def register_dimension(
        self,
        name: str,
        window_seconds: Optional[float],
        limit: int,
        throttled: bool = False,
        keyed: bool = False,
    ) -> DimensionSpec:
        """Register a dimension.

        Raises:
            ConfigInvalid: Non-positive limit or window, or duplicate name.
        """
        if limit <= 0:
            raise ConfigInvalid(f"Limit for {name} must be positive, got {limit}")
        if window_seconds is not None and window_seconds <= 0:
            raise ConfigInvalid(f"Window for {name} must be positive, got {window_seconds}")
        if name in self._dimensions:
            raise ConfigInvalid(f"Dimension {name} is already registered")

        spec = DimensionSpec(
            name=name,
            limit=limit,
            window_seconds=window_seconds,
            throttled=throttled,
            keyed=keyed,
        )
        self._dimensions[name] = spec
        if not keyed:
            self._levels[name] = CapacityLevel.NONE
        return spec

    @property
    def dimensions(self) -> List[str]:
        return list(self._dimensions)

    def spec(self, dimension: str) -> DimensionSpec:
        try:
            return self._dimensions[dimension]
        except KeyError:
            raise KeyError(f"Unknown capacity dimension: {dimension}") from None

    # Counters

    def _counter(self, spec: DimensionSpec, key: Optional[str]) -> CapacityCounter:
        if spec.keyed and key is None:
            raise ValueError(f"Dimension {spec.name} is keyed; a key is required")
        counter_key = (spec.name, key if spec.keyed else None)
        now = self.clock.now()

        counter = self._counters.get(counter_key)
        if counter is None:
            counter = CapacityCounter(
                dimension=spec.name,
                key=counter_key[1],
                limit=spec.limit,
                window_started_at=now,
            )
            self._counters[counter_key] = counter
        elif self._expired(spec, counter, now):
            counter.window_count = 0
            counter.window_started_at = now
        return counter

    @staticmethod
    def _expired(spec: DimensionSpec, counter: CapacityCounter, now: datetime) -> bool:
        if spec.is_gauge or counter.window_started_at is None:
            return False
        elapsed = (now - counter.window_started_at).total_seconds()
        return elapsed >= spec.window_seconds

    def _governed(self, dimension: str) -> Optional[DimensionSpec]:
        spec = self._dimensions.get(dimension)
        if spec is None:
            logger.debug("capacity_dimension_not_governed", dimension=dimension)
        return spec

    def record(self, dimension: str, amount: int = 1, key: Optional[str] = None) -> None:
        """Add ``amount`` to the dimension's current usage.

        Unregistered dimensions are not governed and are ignored.
        """
        if amount < 0:
            raise ValueError("amount must not be negative")
        spec = self._governed(dimension)
        if spec is not None:
            self._counter(spec, key).window_count += amount

    def release(self, dimension: str, amount: int = 1, key: Optional[str] = None) -> None:
        """Subtract ``amount`` from the current usage, never below zero."""
        if amount < 0:
            raise ValueError("amount must not be negative")
        spec = self._governed(dimension)
        if spec is not None:
            counter = self._counter(spec, key)
            counter.window_count = max(counter.window_count - amount, 0)

    def set_usage(self, dimension: str, value: int, key: Optional[str] = None) -> None:
        """Set a gauge to ``value`` (clamped at zero)."""
        spec = self._governed(dimension)
        if spec is not None:
            self._counter(spec, key).window_count = max(int(value), 0)

    # Levels and admission

    def level_for(self, ratio: float) -> CapacityLevel:
        """Level for usage expressed as a fraction of the limit."""
        if ratio >= self.emergency_threshold:
            return CapacityLevel.EMERGENCY
        if ratio >= self.critical_threshold:
            return CapacityLevel.CRITICAL
        if ratio >= self.warning_threshold:
            return CapacityLevel.WARNING
        return CapacityLevel.NONE

    def status(self, dimension: str, key: Optional[str] = None) -> CapacityStatus:
        spec = self.spec(dimension)
        counter = self._counter(spec, key)
        ratio = counter.window_count / spec.limit
        return CapacityStatus(
            dimension=dimension,
            current=counter.window_count,
            limit=spec.limit,
            percentage=ratio * 100,
            level=self.level_for(ratio),
            key=counter.key,
        )

    def admit(self, dimension: str, key: Optional[str] = None) -> bool:
        """Return whether one more unit of work may start on ``dimension``.

        Throttled dimensions deny at or above the critical threshold; other
        dimensions, and dimensions that are not registered, always admit.
        """
        spec = self._dimensions.get(dimension)
        if spec is None or not spec.throttled:
            return True

        status = self.status(dimension, key)
        if status.level >= CapacityLevel.CRITICAL:
            logger.info(
                "capacity_admission_denied",
                dimension=dimension,
                key=key,
                current=status.current,
                limit=status.limit,
                level=status.level.value,
            )
            return False
        return True

    def evaluate(self) -> List[LevelTransition]:
        """Recompute system-wide dimensions and return level changes.

        Keyed dimensions are admission-only and are not evaluated. Expired
        keyed counters are dropped.
        """
        self._prune_keyed()

        transitions = []
        for name, spec in self._dimensions.items():
            if spec.keyed:
                continue
            status = self.status(name)
            previous = self._levels.get(name, CapacityLevel.NONE)
            if status.level != previous:
                self._levels[name] = status.level
                transitions.append(
                    LevelTransition(
                        dimension=name,
                        previous=previous,
                        current=status.level,
                        status=status,
                    )
                )
        return transitions

    def current_level(self, dimension: str) -> CapacityLevel:
        """Level recorded for ``dimension`` by the last ``evaluate``."""
        return self._levels.get(dimension, CapacityLevel.NONE)

    def highest_level(self) -> CapacityLevel:
        """Worst level recorded by the last ``evaluate`` across all dimensions."""
        return max(self._levels.values(), key=lambda level: level.rank, default=CapacityLevel.NONE)

    def _prune_keyed(self) -> None:
        now = self.clock.now()
        expired = [
            counter_key
            for counter_key, counter in self._counters.items()
            if counter_key[1] is not None
            and self._expired(self._dimensions[counter_key[0]], counter, now)
        ]
        for counter_key in expired:
            del self._counters[counter_key]

    # Emergency mode

    def enable_emergency_mode(self) -> bool:
        """Enter emergency mode. Returns False if it was already active."""
        if self.emergency_mode:
            return False
        self.emergency_mode = True
        self.emergency_since = self.clock.now()
        logger.warning(
            "emergency_mode_enabled",
            slowdown_multiplier=self.emergency_slowdown,
            disabled_features=sorted(self.disabled_features()),
        )
        return True

    def disable_emergency_mode(self) -> bool:
        """Leave emergency mode. Returns False if it was not active."""
        if not self.emergency_mode:
            return False
        duration = (self.clock.now() - self.emergency_since).total_seconds()
        self.emergency_mode = False
        self.emergency_since = None
        logger.info("emergency_mode_disabled", duration_seconds=duration)
        return True

    @property
    def slowdown_multiplier(self) -> float:
        return self.emergency_slowdown if self.emergency_mode else 1.0

    def disabled_features(self) -> frozenset:
        if self.emergency_mode and self.disable_non_critical:
            return self.non_critical_features
        return frozenset()

    def is_feature_enabled(self, feature: str) -> bool:
        return feature not in self.disabled_features()

    def usage_summary(self) -> Dict[str, Any]:
        """Usage of every system-wide dimension plus the emergency state."""
        dimensions = {}
        for name, spec in self._dimensions.items():
            if spec.keyed:
                continue
            status = self.status(name)
            dimensions[name] = {
                "current": status.current,
                "limit": status.limit,
                "percentage": round(status.percentage, 1),
                "level": status.level.value,
            }
        return {
            "emergency_mode": self.emergency_mode,
            "slowdown_multiplier": self.slowdown_multiplier,
            "highest_level": self.highest_level().value,
            "dimensions": dimensions,
        }
