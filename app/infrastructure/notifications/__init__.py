"""Notification delivery infrastructure.

Feature modules build a Payload for a Recipient; the dispatcher delivers it
to the personal chat and/or broadcast channel through a NotificationChannel,
with bounded retry, media-to-text fallback and permanent-failure handling.

Usage:
    from infrastructure.notifications import (
        NotificationDispatcher,
        Payload,
        Recipient,
        TelegramChannel,
    )

    channel = TelegramChannel(token=settings.telegram.TELEGRAM_BOT_TOKEN)
    dispatcher = NotificationDispatcher(channel=channel, gate=governor)
    report = await dispatcher.deliver(recipient, Payload(text="Power is back"))
"""

from infrastructure.notifications.admission import (
    CHANNEL_CONCURRENT_OPERATIONS,
    CHANNEL_PUBLISH_PER_MINUTE,
    MESSAGES_PER_DESTINATION,
    MESSAGES_PER_MINUTE,
    AdmissionGate,
    OpenGate,
)
from infrastructure.notifications.channels import NotificationChannel, TelegramChannel
from infrastructure.notifications.dispatcher import (
    CHANNEL_BLOCKED_NOTICE,
    NotificationDispatcher,
)
from infrastructure.notifications.models import (
    DeliveryAttempt,
    DeliveryOutcome,
    DeliveryReport,
    DeliveryStatus,
    Destination,
    NotifyTarget,
    Payload,
    Recipient,
    SendMode,
)

__all__ = [
    # Dispatcher
    "NotificationDispatcher",
    "CHANNEL_BLOCKED_NOTICE",
    # Channels
    "NotificationChannel",
    "TelegramChannel",
    # Admission
    "AdmissionGate",
    "OpenGate",
    "MESSAGES_PER_MINUTE",
    "MESSAGES_PER_DESTINATION",
    "CHANNEL_PUBLISH_PER_MINUTE",
    "CHANNEL_CONCURRENT_OPERATIONS",
    # Models
    "DeliveryAttempt",
    "DeliveryOutcome",
    "DeliveryReport",
    "DeliveryStatus",
    "Destination",
    "NotifyTarget",
    "Payload",
    "Recipient",
    "SendMode",
]
