"""Outage watch configuration settings - main aggregator."""

from pydantic_settings import BaseSettings, SettingsConfigDict

# Integration settings
from infrastructure.configuration.integrations import TelegramSettings

# Feature settings
from infrastructure.configuration.features import (
    AlertSettings,
    CapacitySettings,
    FeedSettings,
    PresenceSettings,
)

# Infrastructure settings
from infrastructure.configuration.infrastructure import DeliverySettings


class Settings(BaseSettings):
    """Outage watch configuration settings - main aggregator.

    Aggregates all domain-specific settings into a single configuration object.
    Settings are organized by concern:

    - **Integrations**: External service configurations (Telegram)
    - **Features**: Feature module configurations (feed, presence, capacity, alerts)
    - **Infrastructure**: Core system configurations (delivery retries)

    Environment Variables:
        PREFIX: Environment prefix, empty in production
        LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR)
        GIT_SHA: Git commit SHA for deployment tracking
        RECIPIENTS_FILE: Optional JSON file seeding the in-memory recipient store

    Example:
        ```python
        from infrastructure.services import get_settings

        settings = get_settings()

        ttl = settings.feed.cache_ttl_seconds
        window = settings.presence.debounce_minutes

        if settings.is_production:
            # Production-specific logic...
        ```
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    # Application-level settings
    PREFIX: str = ""
    LOG_LEVEL: str = "INFO"
    GIT_SHA: str = "Unknown"
    RECIPIENTS_FILE: str | None = None

    # Integration settings
    telegram: TelegramSettings

    # Feature settings
    feed: FeedSettings
    presence: PresenceSettings
    capacity: CapacitySettings
    alerts: AlertSettings

    # Infrastructure settings
    delivery: DeliverySettings

    @property
    def is_production(self) -> bool:
        """Check if the application is running in production.

        Returns:
            True if PREFIX is empty (production), False otherwise.
        """
        return not bool(self.PREFIX)

    def __init__(self, **kwargs):
        """Initialize Settings with automatic subsettings instantiation.

        Args:
            **kwargs: Optional overrides for specific settings sections.
        """
        settings_map = {
            # Integrations
            "telegram": TelegramSettings,
            # Features
            "feed": FeedSettings,
            "presence": PresenceSettings,
            "capacity": CapacitySettings,
            "alerts": AlertSettings,
            # Infrastructure
            "delivery": DeliverySettings,
        }

        for setting_name, setting_class in settings_map.items():
            if setting_name not in kwargs:
                kwargs[setting_name] = setting_class()

        super().__init__(**kwargs)
