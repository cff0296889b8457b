"""Unit tests for PresenceMonitor.

Tests cover:
- Baseline and pending states committed without messages
- Confirmed transitions notified and committed in one write
- Capacity denial leaving state uncommitted for the next cycle
- Probes beyond the concurrency limit waiting for a slot instead of skipping
- Per-recipient failure isolation
"""

import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from infrastructure.configuration.features import CapacitySettings
from infrastructure.notifications import (
    MESSAGES_PER_DESTINATION,
    MESSAGES_PER_MINUTE,
    NotificationDispatcher,
)
from modules.capacity import build_governor, probe_slots
from modules.capacity.limits import (
    PROBE_CONCURRENT,
    PROBE_PER_MINUTE,
    USERS_ACTIONS_PER_MINUTE,
    USERS_CONCURRENT,
)
from modules.presence import PowerState, PresenceState, SignalDebouncer
from modules.presence.monitor import PresenceMonitor
from tests.factories import make_feed_payload, make_snapshot
from tests.factories.notifications import DenyGate


class FakeProbe:
    def __init__(self, readings=None):
        self.readings = readings or {}
        self.calls = []
        self.in_flight = 0
        self.peak_in_flight = 0

    async def check(self, host, port=None):
        self.calls.append((host, port))
        self.in_flight += 1
        self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0)
        finally:
            self.in_flight -= 1
        reading = self.readings.get(host, PowerState.ON)
        if isinstance(reading, Exception):
            raise reading
        return reading


@pytest.fixture
def probe():
    return FakeProbe()


@pytest.fixture
def gate():
    return DenyGate()


@pytest.fixture
def build_monitor(probe, store, fake_channel, gate, clock):
    def _build(gate=gate, alerts=None, fetcher=None, max_concurrency=50):
        dispatcher = NotificationDispatcher(channel=fake_channel, gate=gate, clock=clock)
        return PresenceMonitor(
            probe,
            store,
            dispatcher,
            debouncer=SignalDebouncer(window_minutes=5),
            gate=gate,
            alerts=alerts,
            clock=clock,
            fetcher=fetcher,
            max_concurrency=max_concurrency,
        )

    return _build


@pytest.fixture
def online_recipient(recipient_factory, store, clock):
    recipient = recipient_factory(
        probe_host="10.0.0.1",
        presence=PresenceState(
            current_confirmed=PowerState.ON,
            confirmed_since=clock.now() - timedelta(hours=1),
        ),
    )
    store.upsert(recipient)
    return recipient


@pytest.mark.unit
class TestPresenceMonitor:
    @pytest.mark.asyncio
    async def test_first_reading_sets_baseline_without_message(
        self, build_monitor, recipient_factory, store, probe, fake_channel
    ):
        store.upsert(recipient_factory(probe_host="10.0.0.1"))
        probe.readings["10.0.0.1"] = PowerState.OFF

        transitions = await build_monitor().check_all()

        assert transitions == []
        assert fake_channel.calls == []
        assert store.get("42").presence.current_confirmed == PowerState.OFF

    @pytest.mark.asyncio
    async def test_recipients_without_probe_are_skipped(
        self, build_monitor, recipient_factory, store, probe
    ):
        store.upsert(recipient_factory())

        await build_monitor().check_all()

        assert probe.calls == []

    @pytest.mark.asyncio
    async def test_confirmed_transition_is_notified_and_committed(
        self, build_monitor, online_recipient, store, probe, fake_channel, clock
    ):
        monitor = build_monitor()
        probe.readings["10.0.0.1"] = PowerState.OFF

        assert await monitor.check_all() == []
        pending = store.get("42").presence
        assert pending.pending_candidate == PowerState.OFF
        assert fake_channel.calls == []

        clock.advance(minutes=5)
        (event,) = await monitor.check_all()

        assert event.current == PowerState.OFF
        (call,) = fake_channel.calls_to("send_text")
        assert call["text"].startswith("🔴 10:00 Power is out")
        assert "It was on for 1 h 0 min" in call["text"]
        presence = store.get("42").presence
        assert presence.current_confirmed == PowerState.OFF
        assert presence.transition_count == 1

    @pytest.mark.asyncio
    async def test_flap_within_window_sends_nothing(
        self, build_monitor, online_recipient, store, probe, fake_channel, clock
    ):
        monitor = build_monitor()
        probe.readings["10.0.0.1"] = PowerState.OFF
        await monitor.check_all()

        clock.advance(minutes=2)
        probe.readings["10.0.0.1"] = PowerState.ON
        await monitor.check_all()

        assert fake_channel.calls == []
        assert store.get("42").presence.pending_candidate is None

    @pytest.mark.asyncio
    async def test_transition_without_reachable_destination_is_committed(
        self, build_monitor, recipient_factory, store, probe, fake_channel, clock
    ):
        store.upsert(
            recipient_factory(
                probe_host="10.0.0.1",
                personal_blocked=True,
                presence=PresenceState(
                    current_confirmed=PowerState.ON,
                    pending_candidate=PowerState.OFF,
                    pending_since=clock.now() - timedelta(minutes=5),
                ),
            )
        )
        probe.readings["10.0.0.1"] = PowerState.OFF

        transitions = await build_monitor().check_all()

        assert len(transitions) == 1
        assert fake_channel.calls == []
        assert store.get("42").presence.current_confirmed == PowerState.OFF

    @pytest.mark.asyncio
    async def test_denied_message_admission_leaves_state_uncommitted(
        self, build_monitor, recipient_factory, store, probe, fake_channel, clock
    ):
        pending = PresenceState(
            current_confirmed=PowerState.ON,
            pending_candidate=PowerState.OFF,
            pending_since=clock.now() - timedelta(minutes=5),
        )
        store.upsert(recipient_factory(probe_host="10.0.0.1", presence=pending))
        probe.readings["10.0.0.1"] = PowerState.OFF

        transitions = await build_monitor(gate=DenyGate({MESSAGES_PER_MINUTE})).check_all()

        assert transitions == []
        assert fake_channel.calls == []
        assert store.get("42").presence == pending

    @pytest.mark.asyncio
    async def test_deferred_delivery_leaves_state_uncommitted(
        self, build_monitor, recipient_factory, store, probe, fake_channel, clock
    ):
        pending = PresenceState(
            current_confirmed=PowerState.ON,
            pending_candidate=PowerState.OFF,
            pending_since=clock.now() - timedelta(minutes=5),
        )
        store.upsert(recipient_factory(probe_host="10.0.0.1", presence=pending))
        probe.readings["10.0.0.1"] = PowerState.OFF

        await build_monitor(gate=DenyGate({MESSAGES_PER_DESTINATION})).check_all()

        assert fake_channel.calls == []
        assert store.get("42").presence == pending

    @pytest.mark.asyncio
    async def test_probe_admission_denied_skips_probe(
        self, build_monitor, online_recipient, probe
    ):
        await build_monitor(gate=DenyGate({PROBE_PER_MINUTE})).check_all()

        assert probe.calls == []

    @pytest.mark.asyncio
    async def test_concurrent_probe_hold_is_released(
        self, build_monitor, online_recipient, gate
    ):
        await build_monitor().check_all()

        assert gate.recorded[PROBE_CONCURRENT] == 1
        assert gate.released[PROBE_CONCURRENT] == 1
        assert gate.recorded[PROBE_PER_MINUTE] == 1

    @pytest.mark.asyncio
    async def test_probes_beyond_concurrency_limit_wait_for_a_slot(
        self, build_monitor, recipient_factory, store, probe, clock
    ):
        settings = CapacitySettings()
        governor = build_governor(settings, clock)
        for i in range(500):
            store.upsert(
                recipient_factory(str(i), probe_host=f"10.0.{i // 250}.{i % 250 + 1}")
            )

        await build_monitor(
            gate=governor, max_concurrency=probe_slots(settings)
        ).check_all()

        assert len(probe.calls) == 500
        assert probe.peak_in_flight == probe_slots(settings)
        assert governor.status(PROBE_CONCURRENT).current == 0
        assert governor.status(PROBE_PER_MINUTE).current == 500
        assert all(
            store.get(str(i)).presence.current_confirmed == PowerState.ON
            for i in range(500)
        )

    @pytest.mark.asyncio
    async def test_failing_recipient_does_not_stop_others(
        self, build_monitor, recipient_factory, store, probe
    ):
        store.upsert(recipient_factory("1", probe_host="10.0.0.1"))
        store.upsert(recipient_factory("2", probe_host="10.0.0.2"))
        probe.readings["10.0.0.1"] = RuntimeError("boom")
        alerts = MagicMock()
        alerts.record_error = AsyncMock()

        await build_monitor(alerts=alerts).check_all()

        assert store.get("2").presence.current_confirmed == PowerState.ON
        alerts.record_error.assert_awaited_once()
        assert alerts.record_error.await_args.args[0] == "presence_monitor"

    @pytest.mark.asyncio
    async def test_power_message_mentions_expected_return(
        self, build_monitor, recipient_factory, store, probe, fake_channel, clock
    ):
        now = clock.now()
        fetcher = MagicMock()
        fetcher.fetch = AsyncMock(
            return_value=make_snapshot(
                make_feed_payload(
                    q1_1=[(now - timedelta(minutes=10), now + timedelta(hours=2))]
                )
            )
        )
        store.upsert(
            recipient_factory(
                probe_host="10.0.0.1",
                presence=PresenceState(
                    current_confirmed=PowerState.ON,
                    pending_candidate=PowerState.OFF,
                    pending_since=now - timedelta(minutes=5),
                ),
            )
        )
        probe.readings["10.0.0.1"] = PowerState.OFF

        await build_monitor(fetcher=fetcher).check_all()

        (call,) = fake_channel.calls_to("send_text")
        assert "Expected back at 12:00" in call["text"]
        fetcher.fetch.assert_awaited_once_with("kyiv")


@pytest.mark.unit
class TestPresenceMonitorUserLimits:
    @pytest.fixture
    def pending(self, clock):
        return PresenceState(
            current_confirmed=PowerState.ON,
            pending_candidate=PowerState.OFF,
            pending_since=clock.now() - timedelta(minutes=5),
        )

    @pytest.fixture
    def confirming_recipient(self, recipient_factory, store, probe, pending):
        store.upsert(recipient_factory(probe_host="10.0.0.1", presence=pending))
        probe.readings["10.0.0.1"] = PowerState.OFF

    @pytest.mark.asyncio
    @pytest.mark.parametrize("dimension", [USERS_CONCURRENT, USERS_ACTIONS_PER_MINUTE])
    async def test_denied_user_limit_leaves_state_uncommitted(
        self, build_monitor, confirming_recipient, store, fake_channel, pending, dimension
    ):
        transitions = await build_monitor(gate=DenyGate({dimension})).check_all()

        assert transitions == []
        assert fake_channel.calls == []
        assert store.get("42").presence == pending

    @pytest.mark.asyncio
    async def test_delivery_counts_as_a_user_action(
        self, build_monitor, confirming_recipient, gate
    ):
        await build_monitor().check_all()

        assert gate.recorded[USERS_ACTIONS_PER_MINUTE] == 1
        assert gate.recorded[USERS_CONCURRENT] == 1
        assert gate.released[USERS_CONCURRENT] == 1

    @pytest.mark.asyncio
    async def test_busy_recipient_is_deferred_by_real_governor(
        self, build_monitor, confirming_recipient, store, fake_channel, clock
    ):
        governor = build_governor(CapacitySettings(), clock)
        governor.record(USERS_ACTIONS_PER_MINUTE, 18, key="42")

        await build_monitor(gate=governor).check_all()

        assert fake_channel.calls == []
        assert store.get("42").presence.pending_candidate == PowerState.OFF
