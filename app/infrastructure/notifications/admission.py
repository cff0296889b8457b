"""Admission seam between delivery and capacity accounting.

The dispatcher checks admission immediately before every send and records
each send it makes. Anything with ``admit``/``record``/``release`` can act as
the gate; the capacity governor is the production implementation.
"""

from typing import Optional, Protocol

MESSAGES_PER_MINUTE = "messages.per_minute"
MESSAGES_PER_DESTINATION = "messages.per_destination_per_minute"
CHANNEL_PUBLISH_PER_MINUTE = "channels.publish_per_minute"
CHANNEL_CONCURRENT_OPERATIONS = "channels.concurrent_operations"


class AdmissionGate(Protocol):
    """Capacity checks used by the delivery path."""

    def admit(self, dimension: str, key: Optional[str] = None) -> bool:
        ...

    def record(self, dimension: str, amount: int = 1, key: Optional[str] = None) -> None:
        ...

    def release(self, dimension: str, amount: int = 1, key: Optional[str] = None) -> None:
        ...


class OpenGate:
    """Gate that admits everything and records nothing."""

    def admit(self, dimension: str, key: Optional[str] = None) -> bool:
        return True

    def record(self, dimension: str, amount: int = 1, key: Optional[str] = None) -> None:
        return None

    def release(self, dimension: str, amount: int = 1, key: Optional[str] = None) -> None:
        return None
