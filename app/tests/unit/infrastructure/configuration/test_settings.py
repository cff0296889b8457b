"""Unit tests for infrastructure.configuration settings.

Tests cover:
- Defaults and environment overrides of the sub-settings
- Capacity limit and threshold validation
- Settings aggregation and get_settings caching
"""

import pytest
from pydantic import ValidationError

from infrastructure.configuration import (
    AlertSettings,
    CapacitySettings,
    DeliverySettings,
    FeedSettings,
    PresenceSettings,
    Settings,
    TelegramSettings,
)
from infrastructure.services.providers import get_settings


@pytest.mark.unit
class TestFeedSettings:
    def test_defaults(self):
        feed = FeedSettings()

        assert feed.cache_ttl_seconds == 120
        assert feed.retry_delays == [5.0, 15.0, 45.0]
        assert feed.max_attempts == 3
        assert feed.timezone == "Europe/Kyiv"
        assert "{region}" in feed.data_url_template

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("FEED_CACHE_TTL_SECONDS", "30")
        monkeypatch.setenv("FEED_RETRY_DELAYS", "[1, 2]")
        monkeypatch.setenv("FEED_REGIONS", '["odesa"]')

        feed = FeedSettings()

        assert feed.cache_ttl_seconds == 30
        assert feed.retry_delays == [1.0, 2.0]
        assert feed.regions == ["odesa"]

    def test_empty_retry_ladder_rejected(self, monkeypatch):
        monkeypatch.setenv("FEED_RETRY_DELAYS", "[]")
        with pytest.raises(ValidationError):
            FeedSettings()

    def test_negative_retry_delay_rejected(self, monkeypatch):
        monkeypatch.setenv("FEED_RETRY_DELAYS", "[5, -1]")
        with pytest.raises(ValidationError):
            FeedSettings()


@pytest.mark.unit
class TestCapacitySettings:
    def test_defaults(self):
        capacity = CapacitySettings()

        assert capacity.max_messages_per_minute == 1000
        assert capacity.warning_threshold == 0.8
        assert capacity.critical_threshold == 0.9
        assert capacity.emergency_threshold == 1.0
        assert capacity.emergency_slowdown == 2.0

    def test_limits_lists_every_max_field(self):
        limits = CapacitySettings().limits()

        assert limits["max_total_users"] == 10000
        assert limits["max_msg_per_destination_per_min"] == 20
        assert limits["max_concurrent_users"] == 500
        assert limits["max_actions_per_user_per_min"] == 20
        assert all(name.startswith("max_") for name in limits)

    def test_non_positive_limit_rejected(self, monkeypatch):
        monkeypatch.setenv("MAX_MESSAGES_PER_MINUTE", "0")
        with pytest.raises(ValidationError, match="max_messages_per_minute"):
            CapacitySettings()

    @pytest.mark.parametrize(
        "env", ["MAX_CONCURRENT_USERS", "MAX_ACTIONS_PER_USER_PER_MIN"]
    )
    def test_non_positive_user_limit_rejected(self, monkeypatch, env):
        monkeypatch.setenv(env, "-1")
        with pytest.raises(ValidationError, match=env.lower()):
            CapacitySettings()

    def test_out_of_order_thresholds_rejected(self, monkeypatch):
        monkeypatch.setenv("ALERT_WARNING_THRESHOLD", "0.95")
        with pytest.raises(ValidationError, match="warning < critical < emergency"):
            CapacitySettings()

    def test_slowdown_below_one_rejected(self, monkeypatch):
        monkeypatch.setenv("EMERGENCY_SCHEDULER_SLOWDOWN", "0.5")
        with pytest.raises(ValidationError):
            CapacitySettings()


@pytest.mark.unit
class TestOtherSettings:
    def test_presence_defaults(self):
        presence = PresenceSettings()
        assert presence.debounce_minutes == 5
        assert presence.default_port == 80

    def test_alert_defaults(self, monkeypatch):
        monkeypatch.delenv("ALERT_CHAT_ID", raising=False)
        alerts = AlertSettings()
        assert alerts.debounce_minutes == 15
        assert alerts.max_per_hour == 20
        assert alerts.chat_id is None

    def test_delivery_defaults(self):
        delivery = DeliverySettings()
        assert delivery.max_attempts == 3
        assert delivery.max_total_delay_seconds == 30.0

    def test_telegram_token_from_environment(self, monkeypatch):
        monkeypatch.setenv("TELEGRAM_BOT_TOKEN", "123:abc")
        assert TelegramSettings().TELEGRAM_BOT_TOKEN == "123:abc"


@pytest.mark.unit
class TestSettings:
    def test_sub_settings_are_instantiated(self):
        settings = Settings()

        assert isinstance(settings.feed, FeedSettings)
        assert isinstance(settings.presence, PresenceSettings)
        assert isinstance(settings.capacity, CapacitySettings)
        assert isinstance(settings.alerts, AlertSettings)
        assert isinstance(settings.delivery, DeliverySettings)
        assert isinstance(settings.telegram, TelegramSettings)

    def test_explicit_sub_settings_are_kept(self):
        feed = FeedSettings()
        assert Settings(feed=feed).feed is feed

    def test_is_production(self, monkeypatch):
        monkeypatch.setenv("PREFIX", "")
        assert Settings().is_production is True

        monkeypatch.setenv("PREFIX", "dev-")
        assert Settings().is_production is False

    def test_get_settings_is_cached(self):
        get_settings.cache_clear()
        try:
            assert get_settings() is get_settings()
        finally:
            get_settings.cache_clear()
