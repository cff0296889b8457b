"""Integration settings __init__ - exports all integration settings."""

from infrastructure.configuration.integrations.telegram import TelegramSettings

__all__ = [
    "TelegramSettings",
]
