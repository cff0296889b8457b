"""Feature settings __init__ - exports all feature settings."""

from infrastructure.configuration.features.alerts import AlertSettings
from infrastructure.configuration.features.capacity import CapacitySettings
from infrastructure.configuration.features.feed import FeedSettings
from infrastructure.configuration.features.presence import PresenceSettings

__all__ = [
    "AlertSettings",
    "CapacitySettings",
    "FeedSettings",
    "PresenceSettings",
]
