"""Unit tests for NotificationDispatcher.

Tests cover:
- Personal and broadcast routing by notify target
- Bounded retry with backoff and retry-after hints
- Media to plain-text fallback
- Blocking of destinations that rejected the bot
- Capacity admission before every send
- Broadcast options (pause, delete previous, media only, caption templates)
"""

import pytest

from infrastructure.events import CHANNEL_BLOCKED, PERSONAL_BLOCKED
from infrastructure.notifications import (
    MESSAGES_PER_MINUTE,
    CHANNEL_PUBLISH_PER_MINUTE,
    DeliveryStatus,
    Destination,
    NotificationDispatcher,
    NotifyTarget,
    SendMode,
)
from infrastructure.notifications.dispatcher import CHANNEL_BLOCKED_NOTICE
from infrastructure.operations import ErrorKind, OperationResult
from tests.factories.notifications import (
    DenyGate,
    make_payload,
    make_recipient,
    not_found,
    rate_limited,
    rejected,
    revoked,
    transient,
)

IMAGE = b"\x89PNG"


@pytest.mark.unit
class TestPersonalDelivery:
    @pytest.mark.asyncio
    async def test_text_payload_is_sent_once(self, dispatcher, fake_channel):
        report = await dispatcher.deliver(make_recipient(), make_payload())

        outcome = report.outcomes[Destination.PERSONAL]
        assert outcome.status == DeliveryStatus.SENT
        assert outcome.message_id == 101
        assert fake_channel.calls_to("send_text") == [
            {"chat_id": "42", "text": "<b>Schedule</b>"}
        ]
        assert report.any_success
        assert report.updates == {}

    @pytest.mark.asyncio
    async def test_media_payload_is_sent_with_caption(self, dispatcher, fake_channel):
        await dispatcher.deliver(make_recipient(), make_payload(media=IMAGE))

        (call,) = fake_channel.calls_to("send_media")
        assert call["caption"] == "<b>Schedule</b>"
        assert fake_channel.calls_to("send_text") == []

    @pytest.mark.asyncio
    async def test_transient_failures_are_retried_with_backoff(
        self, dispatcher, fake_channel, clock
    ):
        fake_channel.script("send_text", transient(), transient())

        report = await dispatcher.deliver(make_recipient(), make_payload())

        outcome = report.outcomes[Destination.PERSONAL]
        assert outcome.status == DeliveryStatus.SENT
        assert len(outcome.attempts) == 3
        assert clock.sleeps == [1, 2]

    @pytest.mark.asyncio
    async def test_retry_after_hint_sets_the_delay(self, dispatcher, fake_channel, clock):
        fake_channel.script("send_text", rate_limited(retry_after=3))

        await dispatcher.deliver(make_recipient(), make_payload())

        assert clock.sleeps == [3]

    @pytest.mark.asyncio
    async def test_exhausted_media_falls_back_to_text_once(
        self, dispatcher, fake_channel
    ):
        fake_channel.script("send_media", transient(), transient(), transient())

        report = await dispatcher.deliver(make_recipient(), make_payload(media=IMAGE))

        outcome = report.outcomes[Destination.PERSONAL]
        assert outcome.status == DeliveryStatus.SENT
        assert [a.mode for a in outcome.attempts] == [
            SendMode.MEDIA_WITH_CAPTION,
            SendMode.MEDIA_WITH_CAPTION,
            SendMode.MEDIA_WITH_CAPTION,
            SendMode.TEXT,
        ]

    @pytest.mark.asyncio
    async def test_rejected_media_falls_back_without_retry(
        self, dispatcher, fake_channel, clock
    ):
        fake_channel.script("send_media", rejected())

        report = await dispatcher.deliver(make_recipient(), make_payload(media=IMAGE))

        assert len(fake_channel.calls_to("send_media")) == 1
        assert len(fake_channel.calls_to("send_text")) == 1
        assert report.outcomes[Destination.PERSONAL].status == DeliveryStatus.SENT
        assert clock.sleeps == []

    @pytest.mark.asyncio
    async def test_text_fallback_gets_a_single_attempt(self, dispatcher, fake_channel):
        fake_channel.script("send_media", rejected())
        fake_channel.script("send_text", transient(), transient())

        report = await dispatcher.deliver(make_recipient(), make_payload(media=IMAGE))

        outcome = report.outcomes[Destination.PERSONAL]
        assert outcome.status == DeliveryStatus.FAILED
        assert outcome.error_kind == ErrorKind.TRANSIENT
        assert len(fake_channel.calls_to("send_text")) == 1
        assert report.updates == {}

    @pytest.mark.asyncio
    async def test_channel_exception_is_treated_as_transient(
        self, dispatcher, fake_channel
    ):
        fake_channel.script("send_text", RuntimeError("socket closed"))

        report = await dispatcher.deliver(make_recipient(), make_payload())

        outcome = report.outcomes[Destination.PERSONAL]
        assert outcome.status == DeliveryStatus.SENT
        assert outcome.attempts[0].error_kind == ErrorKind.TRANSIENT

    @pytest.mark.asyncio
    async def test_revoked_permission_blocks_personal_chat(
        self, dispatcher, fake_channel, event_bus
    ):
        events = []
        event_bus.register(PERSONAL_BLOCKED, events.append)
        fake_channel.script("send_media", revoked())

        report = await dispatcher.deliver(make_recipient(), make_payload(media=IMAGE))

        outcome = report.outcomes[Destination.PERSONAL]
        assert outcome.status == DeliveryStatus.BLOCKED
        assert report.updates == {"personal_blocked": True}
        assert fake_channel.calls_to("send_text") == []
        assert [e.recipient_id for e in events] == ["42"]

    @pytest.mark.asyncio
    async def test_blocked_personal_chat_is_skipped(self, dispatcher, fake_channel):
        report = await dispatcher.deliver(
            make_recipient(personal_blocked=True), make_payload()
        )

        assert report.outcomes[Destination.PERSONAL].status == DeliveryStatus.SKIPPED
        assert fake_channel.calls == []


@pytest.mark.unit
class TestBroadcastDelivery:
    @pytest.mark.asyncio
    async def test_both_destinations_receive_the_payload(self, dispatcher, fake_channel):
        report = await dispatcher.deliver(
            make_recipient(broadcast_chat_id="-100"), make_payload(media=IMAGE)
        )

        assert [c["chat_id"] for c in fake_channel.calls_to("send_media")] == [
            "42",
            "-100",
        ]
        assert report.outcomes[Destination.BROADCAST].status == DeliveryStatus.SENT

    @pytest.mark.asyncio
    async def test_notify_target_broadcast_only(self, dispatcher, fake_channel):
        report = await dispatcher.deliver(
            make_recipient(
                broadcast_chat_id="-100", notify_target=NotifyTarget.BROADCAST
            ),
            make_payload(),
        )

        assert list(report.outcomes) == [Destination.BROADCAST]
        assert [c["chat_id"] for c in fake_channel.calls_to("send_text")] == ["-100"]

    @pytest.mark.asyncio
    async def test_paused_broadcast_is_skipped(self, dispatcher, fake_channel):
        report = await dispatcher.deliver(
            make_recipient(
                personal_chat_id=None, broadcast_chat_id="-100", broadcast_paused=True
            ),
            make_payload(),
        )

        assert report.outcomes[Destination.BROADCAST].status == DeliveryStatus.SKIPPED
        assert fake_channel.calls == []

    @pytest.mark.asyncio
    async def test_previous_post_is_deleted_and_replaced(
        self, dispatcher, fake_channel
    ):
        recipient = make_recipient(
            personal_chat_id=None,
            broadcast_chat_id="-100",
            delete_previous_message=True,
            last_broadcast_message_id=55,
        )

        report = await dispatcher.deliver(
            recipient, make_payload(media=IMAGE, replace_previous=True)
        )

        assert fake_channel.calls_to("delete_message") == [
            {"chat_id": "-100", "message_id": 55}
        ]
        assert report.updates == {"last_broadcast_message_id": 102}

    @pytest.mark.asyncio
    async def test_failed_delete_does_not_stop_publishing(
        self, dispatcher, fake_channel
    ):
        fake_channel.script("delete_message", not_found())
        recipient = make_recipient(
            personal_chat_id=None,
            broadcast_chat_id="-100",
            delete_previous_message=True,
            last_broadcast_message_id=55,
        )

        report = await dispatcher.deliver(recipient, make_payload(replace_previous=True))

        assert report.outcomes[Destination.BROADCAST].status == DeliveryStatus.SENT
        assert "broadcast_blocked" not in report.updates

    @pytest.mark.asyncio
    async def test_message_id_not_tracked_for_non_replacing_payloads(
        self, dispatcher
    ):
        report = await dispatcher.deliver(
            make_recipient(personal_chat_id=None, broadcast_chat_id="-100"),
            make_payload(kind="power"),
        )

        assert report.updates == {}

    @pytest.mark.asyncio
    async def test_media_only_posts_without_caption(self, dispatcher, fake_channel):
        await dispatcher.deliver(
            make_recipient(
                personal_chat_id=None, broadcast_chat_id="-100", media_only=True
            ),
            make_payload(media=IMAGE),
        )

        (call,) = fake_channel.calls_to("send_media")
        assert call["caption"] is None

    @pytest.mark.asyncio
    async def test_caption_template_is_rendered(self, dispatcher, fake_channel):
        await dispatcher.deliver(
            make_recipient(
                personal_chat_id=None,
                broadcast_chat_id="-100",
                caption_template="{text}\n#queue{queue} {unknown}",
            ),
            make_payload(media=IMAGE, variables={"queue": "1.1"}),
        )

        (call,) = fake_channel.calls_to("send_media")
        assert call["caption"] == "<b>Schedule</b>\n#queue1.1 {unknown}"

    @pytest.mark.asyncio
    async def test_broken_caption_template_falls_back_to_text(
        self, dispatcher, fake_channel
    ):
        await dispatcher.deliver(
            make_recipient(
                personal_chat_id=None, broadcast_chat_id="-100", caption_template="{0"
            ),
            make_payload(),
        )

        assert fake_channel.calls_to("send_text")[0]["text"] == "<b>Schedule</b>"

    @pytest.mark.asyncio
    async def test_lost_channel_is_blocked_and_recipient_told(
        self, dispatcher, fake_channel, event_bus
    ):
        events = []
        event_bus.register(CHANNEL_BLOCKED, events.append)
        fake_channel.script(
            "send_media", OperationResult.success(data={"message_id": 1}), revoked()
        )

        report = await dispatcher.deliver(
            make_recipient(broadcast_chat_id="-100"), make_payload(media=IMAGE)
        )

        assert report.outcomes[Destination.PERSONAL].status == DeliveryStatus.SENT
        assert report.outcomes[Destination.BROADCAST].status == DeliveryStatus.BLOCKED
        assert report.updates == {"broadcast_blocked": True}
        assert fake_channel.calls_to("send_text") == [
            {"chat_id": "42", "text": CHANNEL_BLOCKED_NOTICE}
        ]
        assert events[0].metadata["chat_id"] == "-100"

    @pytest.mark.asyncio
    async def test_concurrent_operation_hold_is_released(self, dispatcher, gate):
        await dispatcher.deliver(
            make_recipient(personal_chat_id=None, broadcast_chat_id="-100"),
            make_payload(),
        )

        assert gate.recorded["channels.concurrent_operations"] == 1
        assert gate.released["channels.concurrent_operations"] == 1
        assert gate.recorded[CHANNEL_PUBLISH_PER_MINUTE] == 1


@pytest.mark.unit
class TestAdmission:
    @pytest.mark.asyncio
    async def test_denied_admission_defers_without_sending(
        self, fake_channel, clock
    ):
        dispatcher = NotificationDispatcher(
            channel=fake_channel, gate=DenyGate({MESSAGES_PER_MINUTE}), clock=clock
        )

        report = await dispatcher.deliver(
            make_recipient(broadcast_chat_id="-100"), make_payload()
        )

        assert fake_channel.calls == []
        assert report.deferred
        assert not report.attempted
        assert {o.status for o in report.outcomes.values()} == {DeliveryStatus.THROTTLED}

    @pytest.mark.asyncio
    async def test_every_send_is_recorded(self, dispatcher, gate, fake_channel):
        fake_channel.script("send_text", transient())

        await dispatcher.deliver(make_recipient(), make_payload())

        assert gate.recorded[MESSAGES_PER_MINUTE] == 2

    @pytest.mark.asyncio
    async def test_broadcast_throttled_after_personal_sent_is_not_deferred(
        self, fake_channel, clock
    ):
        dispatcher = NotificationDispatcher(
            channel=fake_channel,
            gate=DenyGate({CHANNEL_PUBLISH_PER_MINUTE}),
            clock=clock,
        )

        report = await dispatcher.deliver(
            make_recipient(broadcast_chat_id="-100"), make_payload()
        )

        assert report.outcomes[Destination.PERSONAL].status == DeliveryStatus.SENT
        assert report.outcomes[Destination.BROADCAST].status == DeliveryStatus.THROTTLED
        assert not report.deferred


@pytest.mark.unit
class TestHealthCheck:
    @pytest.mark.asyncio
    async def test_reports_channel_health(self, dispatcher):
        assert await dispatcher.health_check() == {"fake": True}

    @pytest.mark.asyncio
    async def test_exception_reports_unhealthy(self, dispatcher, fake_channel):
        fake_channel.script("health_check", RuntimeError("down"))
        assert await dispatcher.health_check() == {"fake": False}

