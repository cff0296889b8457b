"""Infrastructure configuration module - public API.

Centralized configuration management using Pydantic BaseSettings with
domain-based organization.

Exports:
    Settings: Main settings class (for testing/overrides)
    CapacitySettings, DeliverySettings, FeedSettings: Sub-settings used
        directly by tests and wiring code

Example:
    ```python
    from infrastructure.services import get_settings

    settings = get_settings()

    regions = settings.feed.regions
    token = settings.telegram.TELEGRAM_BOT_TOKEN
    ```
"""

from infrastructure.configuration.settings import Settings
from infrastructure.configuration.features import (
    AlertSettings,
    CapacitySettings,
    FeedSettings,
    PresenceSettings,
)
from infrastructure.configuration.infrastructure import DeliverySettings
from infrastructure.configuration.integrations import TelegramSettings

__all__ = [
    "Settings",
    "AlertSettings",
    "CapacitySettings",
    "DeliverySettings",
    "FeedSettings",
    "PresenceSettings",
    "TelegramSettings",
]
