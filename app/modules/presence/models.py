"""Presence state models.

``PresenceState`` is the persisted per-recipient debounce state. Its tagged
view (``Unknown``, ``Stable``, ``Pending``) is what the transition function
reasons about; the flat fields are what the recipient store keeps.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, model_validator


class PowerState(str, Enum):
    """Confirmed or observed power state."""

    ON = "on"
    OFF = "off"
    UNKNOWN = "unknown"


class PresenceLabel(str, Enum):
    """Label shown to recipients and operators."""

    ONLINE = "online"
    OFFLINE = "offline"
    UNSTABLE = "unstable"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class Unknown:
    """No reading has been observed yet."""


@dataclass(frozen=True)
class Stable:
    """A confirmed value with no competing candidate."""

    value: PowerState


@dataclass(frozen=True)
class Pending:
    """A candidate value waiting for the stability window to elapse.

    Attributes:
        value: Candidate value
        since: When the candidate was first observed
        prior: Confirmed value the candidate would replace
    """

    value: PowerState
    since: datetime
    prior: PowerState


Phase = Union[Unknown, Stable, Pending]


class PresenceState(BaseModel):
    """Debounce state of one recipient's presence signal.

    Attributes:
        current_confirmed: Last confirmed value
        pending_candidate: Value waiting to be confirmed, if any
        pending_since: When the pending candidate was first observed
        confirmed_since: When the confirmed value took effect
        transition_count: Confirmed transitions so far
    """

    model_config = ConfigDict(frozen=True)

    current_confirmed: PowerState = PowerState.UNKNOWN
    pending_candidate: Optional[PowerState] = None
    pending_since: Optional[datetime] = None
    confirmed_since: Optional[datetime] = None
    transition_count: int = 0

    @model_validator(mode="after")
    def validate_pending(self) -> "PresenceState":
        if (self.pending_candidate is None) != (self.pending_since is None):
            raise ValueError("pending_candidate and pending_since must be set together")
        if self.pending_candidate is not None:
            if self.current_confirmed == PowerState.UNKNOWN:
                raise ValueError("A candidate cannot be pending before a baseline exists")
            if self.pending_candidate in (self.current_confirmed, PowerState.UNKNOWN):
                raise ValueError("pending_candidate must differ from current_confirmed")
        return self

    @property
    def phase(self) -> Phase:
        if self.current_confirmed == PowerState.UNKNOWN:
            return Unknown()
        if self.pending_candidate is None:
            return Stable(self.current_confirmed)
        return Pending(self.pending_candidate, self.pending_since, self.current_confirmed)

    @property
    def label(self) -> PresenceLabel:
        if self.current_confirmed == PowerState.UNKNOWN:
            return PresenceLabel.UNKNOWN
        if self.pending_candidate is not None:
            return PresenceLabel.UNSTABLE
        if self.current_confirmed == PowerState.ON:
            return PresenceLabel.ONLINE
        return PresenceLabel.OFFLINE


@dataclass(frozen=True)
class PresenceTransition:
    """A confirmed change of the presence signal.

    Attributes:
        previous: Value before the change
        current: Value after the change
        changed_at: When the new value was first observed
        confirmed_at: When the stability window elapsed
        previous_since: When the previous value took effect, if known
    """

    previous: PowerState
    current: PowerState
    changed_at: datetime
    confirmed_at: datetime
    previous_since: Optional[datetime] = None

    @property
    def previous_duration_seconds(self) -> Optional[float]:
        """How long the previous value lasted, if its start is known."""
        if self.previous_since is None:
            return None
        return max((self.changed_at - self.previous_since).total_seconds(), 0.0)
