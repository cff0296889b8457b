"""Unit tests for the operator alert dispatcher.

Tests cover:
- Cooldown suppression per (type, title)
- The global hourly cap
- Escalation of repeated signatures
- Error burst detection
- History sweeping and summaries
"""

from datetime import timedelta

import pytest

from infrastructure.configuration.features import AlertSettings
from modules.alerts import AlertDispatcher, AlertLevel, AlertType


@pytest.fixture
def delivered():
    return []


@pytest.fixture
def build_alerts(clock, delivered):
    async def deliver(text, alert):
        delivered.append((text, alert))

    def _build(**kwargs):
        return AlertDispatcher(delivery=deliver, clock=clock, **kwargs)

    return _build


async def fire(alerts, title="Disk full", level=AlertLevel.WARN):
    return await alerts.generate(AlertType.SYSTEM, level, title, "details")


@pytest.mark.unit
class TestGenerate:
    @pytest.mark.asyncio
    async def test_fires_and_delivers(self, build_alerts, delivered, clock):
        alert = await build_alerts().generate(
            AlertType.CHANNEL,
            AlertLevel.CRITICAL,
            "Channel lost",
            "Bot removed <admin>",
            data={"chat_id": "-100"},
            action="Re-add the bot",
        )

        assert alert.timestamp == clock.now()
        assert alert.occurrence_count == 1
        ((text, sent),) = delivered
        assert sent is alert
        assert text.startswith("🚨 <b>CRITICAL</b> 📺 <b>Channel lost</b>")
        assert "Bot removed &lt;admin&gt;" in text
        assert "• chat_id: -100" in text
        assert "💡 <b>Action:</b> Re-add the bot" in text

    @pytest.mark.asyncio
    async def test_same_signature_suppressed_within_cooldown(self, build_alerts, clock):
        alerts = build_alerts(debounce_minutes=15)

        assert await fire(alerts) is not None
        clock.advance(minutes=14)
        assert await fire(alerts) is None
        clock.advance(minutes=1)
        assert await fire(alerts) is not None

    @pytest.mark.asyncio
    async def test_different_titles_are_independent(self, build_alerts):
        alerts = build_alerts()

        assert await fire(alerts, "A") is not None
        assert await fire(alerts, "B") is not None

    @pytest.mark.asyncio
    async def test_hourly_cap(self, build_alerts, clock):
        alerts = build_alerts(max_per_hour=2)

        await fire(alerts, "A")
        await fire(alerts, "B")
        assert await fire(alerts, "C") is None

        clock.advance(hours=1)
        assert await fire(alerts, "C") is not None

    @pytest.mark.asyncio
    async def test_repeated_signature_escalates(self, build_alerts, clock):
        alerts = build_alerts(debounce_minutes=1, escalation_threshold=2)

        levels = []
        for _ in range(4):
            alert = await fire(alerts, level=AlertLevel.INFO)
            levels.append(alert.level)
            clock.advance(minutes=1)

        assert levels == [AlertLevel.INFO, AlertLevel.INFO, AlertLevel.WARN, AlertLevel.WARN]
        assert alert.occurrence_count == 4

    def test_escalation_caps_at_critical(self):
        assert AlertLevel.INFO.escalated() == AlertLevel.WARN
        assert AlertLevel.WARN.escalated() == AlertLevel.CRITICAL
        assert AlertLevel.CRITICAL.escalated() == AlertLevel.CRITICAL

    @pytest.mark.asyncio
    async def test_delivery_failure_is_contained(self, clock):
        async def broken(text, alert):
            raise RuntimeError("chat unavailable")

        alerts = AlertDispatcher(delivery=broken, clock=clock)

        assert await fire(alerts) is not None

    @pytest.mark.asyncio
    async def test_no_delivery_configured(self, clock):
        alerts = AlertDispatcher(clock=clock)

        assert await fire(alerts) is not None
        assert len(alerts.recent()) == 1


@pytest.mark.unit
class TestRecordError:
    @pytest.mark.asyncio
    async def test_burst_raises_alert(self, build_alerts, delivered):
        alerts = build_alerts(error_burst_threshold=3)

        assert await alerts.record_error("feed:kyiv", "timeout") is None
        assert await alerts.record_error("feed:kyiv", "timeout") is None
        alert = await alerts.record_error("feed:kyiv", ValueError("bad"))

        assert alert.type == AlertType.APPLICATION
        assert alert.title == "Repeated errors: feed:kyiv"
        assert alert.data["count"] == 3
        assert alert.data["last_error"] == "bad"

    @pytest.mark.asyncio
    async def test_errors_outside_window_are_forgotten(self, build_alerts, clock):
        alerts = build_alerts(error_burst_threshold=2, error_window_minutes=10)

        await alerts.record_error("probe", "x")
        clock.advance(minutes=11)

        assert await alerts.record_error("probe", "x") is None

    @pytest.mark.asyncio
    async def test_sources_are_counted_separately(self, build_alerts):
        alerts = build_alerts(error_burst_threshold=2)

        await alerts.record_error("a", "x")

        assert await alerts.record_error("b", "x") is None


@pytest.mark.unit
class TestHistory:
    @pytest.mark.asyncio
    async def test_sweep_removes_expired_alerts(self, build_alerts, clock):
        alerts = build_alerts(retention_days=7)
        await fire(alerts, "old")
        clock.advance(days=8)
        await fire(alerts, "new")

        assert alerts.sweep() == 1
        assert [a.title for a in alerts.recent()] == ["new"]

    @pytest.mark.asyncio
    async def test_sweep_forgets_expired_signatures(self, build_alerts, clock):
        alerts = build_alerts(retention_days=1, debounce_minutes=60 * 48)
        await fire(alerts)
        clock.advance(days=1)

        alerts.sweep()

        assert await fire(alerts) is not None

    @pytest.mark.asyncio
    async def test_recent_filters_by_level(self, build_alerts):
        alerts = build_alerts()
        await fire(alerts, "a", AlertLevel.WARN)
        await fire(alerts, "b", AlertLevel.CRITICAL)

        assert [a.title for a in alerts.recent(level=AlertLevel.CRITICAL)] == ["b"]
        assert alerts.recent(0) == []

    @pytest.mark.asyncio
    async def test_summary(self, build_alerts, clock):
        alerts = build_alerts()
        await fire(alerts, "a", AlertLevel.CRITICAL)
        clock.advance(hours=2)
        await fire(alerts, "b", AlertLevel.WARN)

        summary = alerts.summary()

        assert summary["total"] == 2
        assert summary["last_hour"] == 1
        assert summary["last_day"] == 2
        assert summary["by_level"] == {"INFO": 0, "WARN": 1, "CRITICAL": 1}
        assert summary["recent_critical"] == ["a"]

    @pytest.mark.asyncio
    async def test_history_size_is_bounded(self, build_alerts):
        alerts = build_alerts(history_size=2)
        for title in ("a", "b", "c"):
            await fire(alerts, title)

        assert [a.title for a in alerts.recent()] == ["b", "c"]

    def test_from_settings(self, monkeypatch, clock):
        monkeypatch.setenv("ALERT_MAX_PER_HOUR", "7")
        monkeypatch.setenv("ALERT_DEBOUNCE_MINUTES", "5")

        alerts = AlertDispatcher.from_settings(AlertSettings(), clock=clock)

        assert alerts.max_per_hour == 7
        assert alerts.cooldown == timedelta(minutes=5)
