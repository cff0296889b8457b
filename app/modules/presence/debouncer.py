"""Debouncing of the binary presence signal.

A raw reading only becomes a confirmed transition after it has held for the
whole stability window. Flapping back to the confirmed value cancels the
candidate without an event, and the very first reading sets a baseline
silently.
"""

from datetime import datetime, timedelta
from typing import Optional, Tuple

from modules.presence.models import (
    Pending,
    PowerState,
    PresenceState,
    PresenceTransition,
    Stable,
    Unknown,
)


def transition(
    state: PresenceState,
    reading: PowerState,
    now: datetime,
    window: timedelta,
) -> Tuple[PresenceState, Optional[PresenceTransition]]:
    """Apply one reading to the debounce state.

    Args:
        state: Current debounce state
        reading: Observed value (ON or OFF)
        now: Observation time
        window: How long a candidate must hold to be confirmed

    Returns:
        Tuple of the new state and the confirmed transition, if one happened.

    Raises:
        ValueError: If ``reading`` is UNKNOWN.
        TypeError: If the state is in a phase this function does not know.
    """
    if reading == PowerState.UNKNOWN:
        raise ValueError("A reading must be ON or OFF")

    phase = state.phase

    if isinstance(phase, Unknown):
        return (
            PresenceState(
                current_confirmed=reading,
                confirmed_since=now,
                transition_count=state.transition_count,
            ),
            None,
        )

    if isinstance(phase, Stable):
        if reading == phase.value:
            return state, None
        return state.model_copy(update={"pending_candidate": reading, "pending_since": now}), None

    if not isinstance(phase, Pending):
        raise TypeError(f"Unsupported presence phase: {phase!r}")

    if reading == phase.value:
        if now - phase.since < window:
            return state, None
        event = PresenceTransition(
            previous=phase.prior,
            current=phase.value,
            changed_at=phase.since,
            confirmed_at=now,
            previous_since=state.confirmed_since,
        )
        return (
            PresenceState(
                current_confirmed=phase.value,
                confirmed_since=phase.since,
                transition_count=state.transition_count + 1,
            ),
            event,
        )

    if reading == phase.prior:
        return state.model_copy(update={"pending_candidate": None, "pending_since": None}), None

    return state.model_copy(update={"pending_candidate": reading, "pending_since": now}), None


class SignalDebouncer:
    """``transition`` bound to a configured stability window.

    Args:
        window_minutes: Stability window in minutes
    """

    def __init__(self, window_minutes: float = 5):
        if window_minutes < 0:
            raise ValueError("window_minutes must not be negative")
        self.window = timedelta(minutes=window_minutes)

    def observe(
        self, state: PresenceState, reading: PowerState, now: datetime
    ) -> Tuple[PresenceState, Optional[PresenceTransition]]:
        return transition(state, reading, now, self.window)
