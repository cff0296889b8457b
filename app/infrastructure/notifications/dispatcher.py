"""Notification dispatcher with retry, fallback and destination blocking.

Centralized delivery for every notification the service sends:
- Delivers to the recipient's personal chat and/or broadcast channel
- Retries transient failures with bounded exponential backoff
- Falls back from media to plain text after the rich attempts are exhausted
- Marks destinations that rejected the bot permanently as blocked
- Re-checks capacity admission immediately before every send

Usage Example:
    from infrastructure.notifications import (
        NotificationDispatcher,
        Payload,
        Recipient,
    )

    dispatcher = NotificationDispatcher(channel=telegram_channel, gate=governor)

    report = await dispatcher.deliver(
        Recipient(recipient_id="42", personal_chat_id="42"),
        Payload(kind="power", text="Power is back"),
    )
    if not report.deferred:
        store.commit("42", **report.updates)
"""

from typing import Awaitable, Callable, Dict, Optional

import structlog

from infrastructure.events import CHANNEL_BLOCKED, PERSONAL_BLOCKED, Event, EventBus
from infrastructure.notifications.admission import (
    CHANNEL_CONCURRENT_OPERATIONS,
    CHANNEL_PUBLISH_PER_MINUTE,
    MESSAGES_PER_DESTINATION,
    MESSAGES_PER_MINUTE,
    AdmissionGate,
    OpenGate,
)
from infrastructure.notifications.channels.base import NotificationChannel
from infrastructure.notifications.models import (
    DeliveryAttempt,
    DeliveryOutcome,
    DeliveryReport,
    DeliveryStatus,
    Destination,
    Payload,
    Recipient,
    SendMode,
)
from infrastructure.operations import (
    CapacityExceeded,
    DeliveryError,
    OperationResult,
)
from infrastructure.resilience import Clock, RetryConfig, SystemClock, retry_async

logger = structlog.get_logger()

CHANNEL_BLOCKED_NOTICE = (
    "⚠️ <b>Lost access to your channel</b>\n\n"
    "The schedule could not be published to your channel.\n"
    "Possible reasons:\n"
    "• the bot was removed from the channel\n"
    "• the bot lost its administrator rights\n\n"
    "Check the channel settings in the menu."
)

# Plain-text fallback gets exactly one attempt
FALLBACK_CONFIG = RetryConfig(
    max_attempts=1,
    base_delay_seconds=0,
    max_delay_seconds=0,
    max_total_delay_seconds=0,
)


class _SafeFormatDict(dict):
    def __missing__(self, key: str) -> str:
        return "{" + key + "}"


def _is_retryable(exc: Exception) -> bool:
    return isinstance(exc, DeliveryError) and exc.kind.is_retryable


def _retry_after_hint(exc: Exception) -> Optional[float]:
    return getattr(exc, "retry_after", None)


class NotificationDispatcher:
    """Personal and broadcast delivery with bounded retry.

    Personal destination:
        Rich (media + caption) attempts with exponential backoff; once they
        are exhausted, or the request is rejected, exactly one plain-text
        attempt. Text-only payloads get the backoff sequence on text.

    Broadcast destination:
        Skipped while paused or blocked. Optionally deletes the previous
        schedule post first (failures ignored). Supports media-only posts and
        caption templates. Same retry and fallback rules as personal.

    A destination answering with PERMISSION_REVOKED or NOT_FOUND stops all
    further attempts and is reported as blocked; the matching ``*_blocked``
    flag is placed in ``DeliveryReport.updates`` and an event is published.

    The dispatcher never writes recipient state. Callers commit
    ``report.updates`` together with their own state after the sequence has
    settled, unless ``report.deferred`` is set.

    Attributes:
        channel: Delivery transport
        retry_config: Backoff policy for rich attempts and text-only payloads
        gate: Capacity admission gate
        clock: Time source for backoff sleeps and attempt timestamps
        event_bus: Optional bus receiving blocked-destination events
    """

    def __init__(
        self,
        channel: NotificationChannel,
        retry_config: Optional[RetryConfig] = None,
        gate: Optional[AdmissionGate] = None,
        clock: Optional[Clock] = None,
        event_bus: Optional[EventBus] = None,
    ):
        self.channel = channel
        self.retry_config = retry_config or RetryConfig()
        self.gate = gate or OpenGate()
        self.clock = clock or SystemClock()
        self.event_bus = event_bus

        logger.info(
            "initialized_notification_dispatcher",
            channel=channel.channel_name,
            max_attempts=self.retry_config.max_attempts,
            max_total_delay_seconds=self.retry_config.max_total_delay_seconds,
        )

    async def deliver(self, recipient: Recipient, payload: Payload) -> DeliveryReport:
        """Deliver ``payload`` to every destination the recipient wants.

        Args:
            recipient: Delivery view of the recipient
            payload: Content to deliver

        Returns:
            DeliveryReport with one outcome per destination considered and
            the state updates to commit.
        """
        report = DeliveryReport(recipient_id=recipient.recipient_id)

        if recipient.wants_personal and recipient.personal_chat_id:
            report.outcomes[Destination.PERSONAL] = await self._deliver_personal(
                recipient, payload, report
            )

        if recipient.wants_broadcast and recipient.broadcast_chat_id:
            report.outcomes[Destination.BROADCAST] = await self._deliver_broadcast(
                recipient, payload, report
            )

        logger.info(
            "notification_dispatched",
            recipient_id=recipient.recipient_id,
            kind=payload.kind,
            outcomes={
                destination.value: outcome.status.value
                for destination, outcome in report.outcomes.items()
            },
            total_attempts=sum(len(o.attempts) for o in report.outcomes.values()),
            deferred=report.deferred,
        )
        return report

    async def _deliver_personal(
        self, recipient: Recipient, payload: Payload, report: DeliveryReport
    ) -> DeliveryOutcome:
        chat_id = recipient.personal_chat_id
        outcome = DeliveryOutcome(destination=Destination.PERSONAL, chat_id=chat_id)

        if recipient.personal_blocked:
            outcome.message = "Personal chat is blocked"
            return outcome

        if payload.has_media:
            await self._run_sequence(
                recipient,
                outcome,
                SendMode.MEDIA_WITH_CAPTION,
                lambda: self.channel.send_media(
                    chat_id, payload.media, payload.text, payload.media_filename
                ),
                self.retry_config,
            )
            if outcome.status == DeliveryStatus.FAILED:
                await self._run_sequence(
                    recipient,
                    outcome,
                    SendMode.TEXT,
                    lambda: self.channel.send_text(chat_id, payload.text),
                    FALLBACK_CONFIG,
                )
        else:
            await self._run_sequence(
                recipient,
                outcome,
                SendMode.TEXT,
                lambda: self.channel.send_text(chat_id, payload.text),
                self.retry_config,
            )

        if outcome.status == DeliveryStatus.BLOCKED:
            report.updates["personal_blocked"] = True
            await self._publish(PERSONAL_BLOCKED, recipient, outcome)

        return outcome

    async def _deliver_broadcast(
        self, recipient: Recipient, payload: Payload, report: DeliveryReport
    ) -> DeliveryOutcome:
        chat_id = recipient.broadcast_chat_id
        outcome = DeliveryOutcome(destination=Destination.BROADCAST, chat_id=chat_id)

        if recipient.broadcast_blocked:
            outcome.message = "Broadcast channel is blocked"
            return outcome

        if recipient.broadcast_paused:
            outcome.message = "Broadcast channel is paused"
            logger.debug(
                "broadcast_paused", recipient_id=recipient.recipient_id, chat_id=chat_id
            )
            return outcome

        denied = self._denied_dimension(chat_id, broadcast=True) or (
            None
            if self.gate.admit(CHANNEL_CONCURRENT_OPERATIONS)
            else CHANNEL_CONCURRENT_OPERATIONS
        )
        if denied:
            outcome.status = DeliveryStatus.THROTTLED
            outcome.message = f"Capacity exceeded for {denied}"
            logger.info(
                "delivery_throttled",
                recipient_id=recipient.recipient_id,
                destination=Destination.BROADCAST.value,
                dimension=denied,
            )
            return outcome

        caption = self._render_caption(recipient, payload)

        self.gate.record(CHANNEL_CONCURRENT_OPERATIONS)
        try:
            if (
                payload.replace_previous
                and recipient.delete_previous_message
                and recipient.last_broadcast_message_id is not None
            ):
                await self._delete_previous(recipient, chat_id)

            if payload.has_media:
                mode = (
                    SendMode.MEDIA_ONLY
                    if recipient.media_only
                    else SendMode.MEDIA_WITH_CAPTION
                )
                await self._run_sequence(
                    recipient,
                    outcome,
                    mode,
                    lambda: self.channel.send_media(
                        chat_id,
                        payload.media,
                        None if recipient.media_only else caption,
                        payload.media_filename,
                    ),
                    self.retry_config,
                    broadcast=True,
                )
                if outcome.status == DeliveryStatus.FAILED:
                    await self._run_sequence(
                        recipient,
                        outcome,
                        SendMode.TEXT,
                        lambda: self.channel.send_text(chat_id, caption),
                        FALLBACK_CONFIG,
                        broadcast=True,
                    )
            else:
                await self._run_sequence(
                    recipient,
                    outcome,
                    SendMode.TEXT,
                    lambda: self.channel.send_text(chat_id, caption),
                    self.retry_config,
                    broadcast=True,
                )
        finally:
            self.gate.release(CHANNEL_CONCURRENT_OPERATIONS)

        if outcome.status == DeliveryStatus.SENT:
            if payload.replace_previous and outcome.message_id is not None:
                report.updates["last_broadcast_message_id"] = outcome.message_id
        elif outcome.status == DeliveryStatus.BLOCKED:
            report.updates["broadcast_blocked"] = True
            await self._publish(CHANNEL_BLOCKED, recipient, outcome)
            await self._notify_channel_blocked(recipient, report)

        return outcome

    async def _run_sequence(
        self,
        recipient: Recipient,
        outcome: DeliveryOutcome,
        mode: SendMode,
        send: Callable[[], Awaitable[OperationResult]],
        config: RetryConfig,
        broadcast: bool = False,
    ) -> None:
        """Run one retry sequence and fold its result into ``outcome``."""
        destination = outcome.destination
        chat_id = outcome.chat_id

        async def attempt(_: int) -> OperationResult:
            denied = self._denied_dimension(chat_id, broadcast=broadcast)
            if denied:
                raise CapacityExceeded(denied, key=chat_id)

            self._record_send(chat_id, broadcast=broadcast)
            try:
                result = await send()
            except Exception as e:
                logger.error(
                    "channel_exception",
                    recipient_id=recipient.recipient_id,
                    destination=destination.value,
                    error=str(e),
                    exc_info=True,
                )
                result = OperationResult.transient_error(
                    f"Channel exception: {str(e)}", error_code="CHANNEL_EXCEPTION"
                )

            attempt_number = len(outcome.attempts) + 1
            outcome.attempts.append(
                DeliveryAttempt(
                    recipient_id=recipient.recipient_id,
                    destination=destination,
                    attempt_number=attempt_number,
                    mode=mode,
                    success=result.is_success,
                    error_kind=result.error_kind,
                    message=result.message,
                    timestamp=self.clock.now(),
                )
            )

            if not result.is_success:
                logger.warning(
                    "delivery_attempt_failed",
                    recipient_id=recipient.recipient_id,
                    destination=destination.value,
                    attempt=attempt_number,
                    mode=mode.value,
                    error_kind=result.error_kind.value,
                    error=result.message,
                )
                raise DeliveryError(
                    result.message,
                    kind=result.error_kind,
                    retry_after=result.retry_after,
                    response=result,
                )
            return result

        try:
            result = await retry_async(
                attempt,
                config,
                self.clock,
                is_retryable=_is_retryable,
                retry_after=_retry_after_hint,
                operation_name=f"{destination.value}_{mode.value}",
            )
        except CapacityExceeded as e:
            outcome.status = DeliveryStatus.THROTTLED
            outcome.message = str(e)
            logger.info(
                "delivery_throttled",
                recipient_id=recipient.recipient_id,
                destination=destination.value,
                dimension=e.dimension,
                attempts=len(outcome.attempts),
            )
            return
        except DeliveryError as e:
            outcome.error_kind = e.kind
            outcome.message = str(e)
            if e.kind.is_permanent_for_destination:
                outcome.status = DeliveryStatus.BLOCKED
                logger.warning(
                    "destination_blocked",
                    recipient_id=recipient.recipient_id,
                    destination=destination.value,
                    chat_id=chat_id,
                    error_kind=e.kind.value,
                )
            else:
                outcome.status = DeliveryStatus.FAILED
            return

        outcome.status = DeliveryStatus.SENT
        outcome.error_kind = None
        outcome.message = f"Sent as {mode.value}"
        outcome.message_id = (result.data or {}).get("message_id")
        logger.info(
            "delivery_succeeded",
            recipient_id=recipient.recipient_id,
            destination=destination.value,
            mode=mode.value,
            attempts=len(outcome.attempts),
            message_id=outcome.message_id,
        )

    def _denied_dimension(self, chat_id: Optional[str], broadcast: bool) -> Optional[str]:
        """Return the first dimension denying a send, or None if admitted."""
        if not self.gate.admit(MESSAGES_PER_MINUTE):
            return MESSAGES_PER_MINUTE
        if not self.gate.admit(MESSAGES_PER_DESTINATION, key=chat_id):
            return MESSAGES_PER_DESTINATION
        if broadcast and not self.gate.admit(CHANNEL_PUBLISH_PER_MINUTE):
            return CHANNEL_PUBLISH_PER_MINUTE
        return None

    def _record_send(self, chat_id: Optional[str], broadcast: bool) -> None:
        self.gate.record(MESSAGES_PER_MINUTE)
        self.gate.record(MESSAGES_PER_DESTINATION, key=chat_id)
        if broadcast:
            self.gate.record(CHANNEL_PUBLISH_PER_MINUTE)

    def _render_caption(self, recipient: Recipient, payload: Payload) -> str:
        if not recipient.caption_template:
            return payload.text
        values = _SafeFormatDict(payload.variables)
        values["text"] = payload.text
        try:
            rendered = recipient.caption_template.format_map(values)
        except (ValueError, IndexError) as e:
            logger.warning(
                "caption_template_invalid",
                recipient_id=recipient.recipient_id,
                error=str(e),
            )
            return payload.text
        return rendered if rendered.strip() else payload.text

    async def _delete_previous(self, recipient: Recipient, chat_id: str) -> None:
        """Best-effort removal of the previous schedule post."""
        message_id = recipient.last_broadcast_message_id
        try:
            result = await self.channel.delete_message(chat_id, message_id)
        except Exception as e:
            result = OperationResult.transient_error(str(e))

        if result.is_success:
            logger.debug(
                "previous_message_deleted",
                recipient_id=recipient.recipient_id,
                message_id=message_id,
            )
        else:
            logger.warning(
                "previous_message_delete_failed",
                recipient_id=recipient.recipient_id,
                message_id=message_id,
                error=result.message,
            )

    async def _notify_channel_blocked(
        self, recipient: Recipient, report: DeliveryReport
    ) -> None:
        """Tell the recipient privately that their channel stopped accepting posts."""
        personal = report.outcomes.get(Destination.PERSONAL)
        personal_blocked = recipient.personal_blocked or (
            personal is not None and personal.status == DeliveryStatus.BLOCKED
        )
        if (
            not recipient.wants_personal
            or not recipient.personal_chat_id
            or personal_blocked
        ):
            return

        chat_id = recipient.personal_chat_id
        if self._denied_dimension(chat_id, broadcast=False):
            logger.info(
                "channel_blocked_notice_throttled", recipient_id=recipient.recipient_id
            )
            return

        self._record_send(chat_id, broadcast=False)
        try:
            result = await self.channel.send_text(chat_id, CHANNEL_BLOCKED_NOTICE)
        except Exception as e:
            result = OperationResult.transient_error(str(e))

        if not result.is_success:
            logger.error(
                "channel_blocked_notice_failed",
                recipient_id=recipient.recipient_id,
                error=result.message,
            )

    async def _publish(
        self, event_type: str, recipient: Recipient, outcome: DeliveryOutcome
    ) -> None:
        if self.event_bus is None:
            return
        await self.event_bus.publish(
            Event(
                event_type=event_type,
                recipient_id=recipient.recipient_id,
                metadata={
                    "chat_id": outcome.chat_id,
                    "error_kind": outcome.error_kind.value if outcome.error_kind else None,
                },
            )
        )

    async def health_check(self) -> Dict[str, bool]:
        """Check health of the delivery transport.

        Returns:
            Dict mapping channel name to health status (True=healthy)
        """
        try:
            result = await self.channel.health_check()
            healthy = result.is_success
        except Exception as e:
            logger.error(
                "channel_health_check_failed",
                channel_name=self.channel.channel_name,
                error=str(e),
                exc_info=True,
            )
            healthy = False
        return {self.channel.channel_name: healthy}
