"""Persisted per-recipient state."""

from typing import Any, Optional

from pydantic import BaseModel, Field, model_validator

from infrastructure.notifications import NotifyTarget, Recipient
from modules.presence.models import PresenceState
from modules.presence.probe import parse_probe_address
from modules.schedules.models import DayFingerprints


class RecipientState(BaseModel):
    """Everything the pipeline reads before, and writes after, a decision.

    Attributes:
        recipient_id: Stable recipient identifier
        region: Schedule region the recipient follows
        queue: Queue within the region (e.g. "3.1")
        personal_chat_id: Private chat with the bot
        broadcast_chat_id: Connected broadcast channel, if any
        notify_target: Destinations the recipient wants notifications on
        probe_host: Router address probed for presence, if configured. A
            ``host:port`` value is split into host and port.
        probe_port: Router port, if not the default
        schedule_fingerprint: Fingerprint of the last schedule observed
        published_fingerprint: Fingerprint of the last schedule delivered
        day_fingerprints: Today/tomorrow fingerprints of the last schedule
            observed, used to label updates
        presence: Debounce state of the presence signal
        last_broadcast_message_id: Id of the last schedule post on the
            broadcast destination
        broadcast_paused: Publishing to the broadcast destination is paused
        broadcast_blocked: The broadcast destination rejected the bot
        personal_blocked: The personal chat rejected the bot
        delete_previous_message: Remove the previous schedule post first
        media_only: Publish the schedule image without a caption
        caption_template: Caption template for broadcast posts
        active: Recipient takes part in monitoring
    """

    recipient_id: str
    region: Optional[str] = None
    queue: Optional[str] = None
    personal_chat_id: Optional[str] = None
    broadcast_chat_id: Optional[str] = None
    notify_target: NotifyTarget = NotifyTarget.BOTH
    probe_host: Optional[str] = None
    probe_port: Optional[int] = Field(default=None, ge=1, le=65535)
    schedule_fingerprint: Optional[str] = None
    published_fingerprint: Optional[str] = None
    day_fingerprints: Optional[DayFingerprints] = None
    presence: PresenceState = Field(default_factory=PresenceState)
    last_broadcast_message_id: Optional[int] = None
    broadcast_paused: bool = False
    broadcast_blocked: bool = False
    personal_blocked: bool = False
    delete_previous_message: bool = False
    media_only: bool = False
    caption_template: Optional[str] = None
    active: bool = True

    @model_validator(mode="before")
    @classmethod
    def validate_probe_address(cls, data: Any) -> Any:
        """Reject malformed router addresses before they reach the probe."""
        if not isinstance(data, dict) or not data.get("probe_host"):
            return data
        address = parse_probe_address(str(data["probe_host"]))
        data = {**data, "probe_host": address.host}
        if address.port is not None and data.get("probe_port") is None:
            data["probe_port"] = address.port
        return data

    @property
    def has_probe(self) -> bool:
        return bool(self.probe_host)

    @property
    def has_broadcast(self) -> bool:
        return self.broadcast_chat_id is not None

    def to_delivery_recipient(self) -> Recipient:
        """Project the fields the notification dispatcher needs."""
        return Recipient(
            recipient_id=self.recipient_id,
            personal_chat_id=self.personal_chat_id,
            broadcast_chat_id=self.broadcast_chat_id,
            notify_target=self.notify_target,
            personal_blocked=self.personal_blocked,
            broadcast_paused=self.broadcast_paused,
            broadcast_blocked=self.broadcast_blocked,
            delete_previous_message=self.delete_previous_message,
            last_broadcast_message_id=self.last_broadcast_message_id,
            media_only=self.media_only,
            caption_template=self.caption_template,
        )
