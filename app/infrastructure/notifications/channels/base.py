"""Notification channel abstract base class.

All delivery transports must implement this interface.
"""

from abc import ABC, abstractmethod
from typing import Optional

from infrastructure.operations import OperationResult


class NotificationChannel(ABC):
    """Abstract base class for delivery transports.

    Each method performs exactly one network call. Implementations must not
    raise for delivery failures: they return an OperationResult whose status
    (and therefore ``error_kind``) classifies the failure, and leave retries
    to the dispatcher.

    Successful sends return ``OperationResult.success(data={"message_id": int})``.
    """

    @property
    @abstractmethod
    def channel_name(self) -> str:
        """Transport identifier used in logs."""
        pass

    @abstractmethod
    async def send_media(
        self,
        chat_id: str,
        media: bytes,
        caption: Optional[str] = None,
        filename: str = "schedule.png",
    ) -> OperationResult:
        """Send an image, optionally with an HTML caption."""
        pass

    @abstractmethod
    async def send_text(self, chat_id: str, text: str) -> OperationResult:
        """Send an HTML text message."""
        pass

    @abstractmethod
    async def delete_message(self, chat_id: str, message_id: int) -> OperationResult:
        """Delete a previously sent message."""
        pass

    @abstractmethod
    async def health_check(self) -> OperationResult:
        """Check transport health (API connectivity, credentials)."""
        pass
