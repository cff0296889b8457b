"""Event models for the in-process event bus."""

from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from typing import Any, Dict
from uuid import UUID, uuid4

CHANNEL_BLOCKED = "channel.blocked"
PERSONAL_BLOCKED = "personal.blocked"
EMERGENCY_MODE_CHANGED = "capacity.emergency_mode_changed"


@dataclass(frozen=True)
class Event:
    """Immutable record of something that happened.

    Used for cross-module signals such as a broadcast destination becoming
    permanently unreachable.
    """

    event_type: str
    """The type of event (e.g., 'channel.blocked')."""

    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    """When the event occurred."""

    correlation_id: UUID = field(default_factory=uuid4)
    """Unique ID to track related events across the system."""

    recipient_id: str = ""
    """Recipient the event concerns, if any."""

    metadata: Dict[str, Any] = field(default_factory=dict)
    """Custom metadata for this event type."""

    def to_dict(self) -> Dict[str, Any]:
        """Serialize event to dictionary.

        Returns:
            Dictionary representation of the event with ISO format timestamp
            and UUID as string.
        """
        data = asdict(self)
        data["timestamp"] = self.timestamp.isoformat()
        data["correlation_id"] = str(self.correlation_id)
        return data
