"""Notification system core models.

Platform-agnostic models for dispatch. Feature modules build a Payload,
the dispatcher turns it into sends on the recipient's destinations and
reports what happened in a DeliveryReport.

Uses Pydantic BaseModel for runtime validation and type safety.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from infrastructure.operations import ErrorKind


class NotifyTarget(str, Enum):
    """Which destinations a recipient wants notifications on."""

    PERSONAL = "personal"
    BROADCAST = "broadcast"
    BOTH = "both"


class Destination(str, Enum):
    """Destination kinds a notification can be delivered to.

    PERSONAL is the recipient's private chat with the bot, BROADCAST the
    channel the recipient connected and the bot publishes to.
    """

    PERSONAL = "personal"
    BROADCAST = "broadcast"


class DeliveryStatus(Enum):
    """Outcome of the attempt sequence on one destination."""

    SENT = "sent"
    FAILED = "failed"
    BLOCKED = "blocked"
    THROTTLED = "throttled"
    SKIPPED = "skipped"


class SendMode(str, Enum):
    """Shape of a single send."""

    MEDIA_WITH_CAPTION = "media_with_caption"
    MEDIA_ONLY = "media_only"
    TEXT = "text"


class Recipient(BaseModel):
    """Delivery view of a recipient.

    Attributes:
        recipient_id: Stable recipient identifier
        personal_chat_id: Private chat with the bot (None if unknown)
        broadcast_chat_id: Connected broadcast channel (None if not connected)
        notify_target: Destinations the recipient wants notifications on
        personal_blocked: The personal chat rejected the bot permanently
        broadcast_paused: Publishing to the broadcast channel is paused
        broadcast_blocked: The broadcast channel rejected the bot permanently
        delete_previous_message: Remove the previous schedule post before
            publishing a new one
        last_broadcast_message_id: Message id of the previous schedule post
        media_only: Publish the schedule image without a caption
        caption_template: Optional caption template for broadcast posts;
            ``{text}`` and the payload's variables are substituted
    """

    recipient_id: str
    personal_chat_id: Optional[str] = None
    broadcast_chat_id: Optional[str] = None
    notify_target: NotifyTarget = NotifyTarget.BOTH
    personal_blocked: bool = False
    broadcast_paused: bool = False
    broadcast_blocked: bool = False
    delete_previous_message: bool = False
    last_broadcast_message_id: Optional[int] = None
    media_only: bool = False
    caption_template: Optional[str] = None

    @property
    def wants_personal(self) -> bool:
        return self.notify_target in (NotifyTarget.PERSONAL, NotifyTarget.BOTH)

    @property
    def wants_broadcast(self) -> bool:
        return self.notify_target in (NotifyTarget.BROADCAST, NotifyTarget.BOTH)

    @property
    def has_reachable_destination(self) -> bool:
        """True if at least one wanted destination can still receive messages."""
        personal = (
            self.wants_personal
            and self.personal_chat_id is not None
            and not self.personal_blocked
        )
        broadcast = (
            self.wants_broadcast
            and self.broadcast_chat_id is not None
            and not self.broadcast_blocked
        )
        return personal or broadcast


class Payload(BaseModel):
    """Notification content.

    Three shapes are supported: media with a caption (``media`` and ``text``),
    text only (no ``media``), and media only (broadcast destinations with
    ``media_only`` set). ``text`` is always required because it is the
    plain-text fallback for every shape.

    Attributes:
        kind: Notification kind, used in logs ("schedule", "power")
        text: HTML message text, also used as the media caption
        media: Optional image bytes
        media_filename: File name sent with the image
        replace_previous: Schedule posts replace the previous post on the
            broadcast destination (delete-previous and message id tracking)
        variables: Values available to broadcast caption templates
    """

    kind: str = "schedule"
    text: str
    media: Optional[bytes] = None
    media_filename: str = "schedule.png"
    replace_previous: bool = False
    variables: Dict[str, str] = Field(default_factory=dict)

    @field_validator("text")
    @classmethod
    def validate_text(cls, v: str) -> str:
        """Ensure text is not empty."""
        if not v or not v.strip():
            raise ValueError("Notification text cannot be empty")
        return v

    @property
    def has_media(self) -> bool:
        return bool(self.media)


class DeliveryAttempt(BaseModel):
    """One send on one destination. Never persisted."""

    recipient_id: str
    destination: Destination
    attempt_number: int
    mode: SendMode
    success: bool
    error_kind: Optional[ErrorKind] = None
    message: str = ""
    timestamp: datetime


class DeliveryOutcome(BaseModel):
    """Result of the attempt sequence on one destination.

    Attributes:
        destination: Destination kind
        chat_id: Chat the sequence targeted
        status: Final status
        message_id: Id of the delivered message when status is SENT
        error_kind: Classification of the last error, if any
        message: Human-readable summary
        attempts: Every send made, in order
    """

    destination: Destination
    chat_id: Optional[str] = None
    status: DeliveryStatus = DeliveryStatus.SKIPPED
    message_id: Optional[int] = None
    error_kind: Optional[ErrorKind] = None
    message: str = ""
    attempts: List[DeliveryAttempt] = Field(default_factory=list)

    @property
    def is_success(self) -> bool:
        return self.status == DeliveryStatus.SENT

    @property
    def attempted(self) -> bool:
        return bool(self.attempts)


class DeliveryReport(BaseModel):
    """Per-destination outcomes plus the recipient state changes they imply.

    ``updates`` maps recipient field names to new values (blocked flags,
    last broadcast message id). Callers write them together with the
    fingerprint or presence value in a single commit.
    """

    recipient_id: str
    outcomes: Dict[Destination, DeliveryOutcome] = Field(default_factory=dict)
    updates: Dict[str, Any] = Field(default_factory=dict)

    @property
    def any_success(self) -> bool:
        return any(o.is_success for o in self.outcomes.values())

    @property
    def attempted(self) -> bool:
        return any(o.attempted for o in self.outcomes.values())

    @property
    def deferred(self) -> bool:
        """True when capacity denied every destination before any send.

        A deferred report must not be committed, so the change is picked up
        again on the next cycle.
        """
        throttled = any(
            o.status == DeliveryStatus.THROTTLED for o in self.outcomes.values()
        )
        return throttled and not self.attempted
