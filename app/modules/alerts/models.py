"""Operator alert models."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Tuple


class AlertLevel(str, Enum):
    INFO = "INFO"
    WARN = "WARN"
    CRITICAL = "CRITICAL"

    def escalated(self) -> "AlertLevel":
        """Next tier up, capped at CRITICAL."""
        if self == AlertLevel.INFO:
            return AlertLevel.WARN
        return AlertLevel.CRITICAL


class AlertType(str, Enum):
    SYSTEM = "system"
    APPLICATION = "application"
    BUSINESS = "business"
    PROBE = "probe"
    CHANNEL = "channel"


Signature = Tuple[str, str]


@dataclass
class AlertRecord:
    """Deduplication state of one alert signature.

    Attributes:
        signature: (type, title)
        level: Level the alert last fired with
        last_fired_at: When it last fired
        occurrence_count: How many times it fired
    """

    signature: Signature
    level: AlertLevel
    last_fired_at: datetime
    occurrence_count: int = 0


@dataclass(frozen=True)
class Alert:
    """A fired alert."""

    type: AlertType
    level: AlertLevel
    title: str
    message: str
    timestamp: datetime
    data: Dict[str, Any] = field(default_factory=dict)
    action: Optional[str] = None
    occurrence_count: int = 1

    @property
    def signature(self) -> Signature:
        return (self.type.value, self.title)
