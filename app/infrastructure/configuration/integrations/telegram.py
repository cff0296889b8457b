"""Telegram Bot API integration settings."""

from pydantic import Field

from infrastructure.configuration.base import IntegrationSettings


class TelegramSettings(IntegrationSettings):
    """Telegram Bot API configuration.

    Environment Variables:
        TELEGRAM_BOT_TOKEN: Bot token issued by BotFather
        TELEGRAM_API_URL: Bot API base URL

    Example:
        ```python
        from infrastructure.services import get_settings

        settings = get_settings()

        token = settings.telegram.TELEGRAM_BOT_TOKEN
        ```
    """

    TELEGRAM_BOT_TOKEN: str | None = Field(default=None, alias="TELEGRAM_BOT_TOKEN")
    TELEGRAM_API_URL: str = Field(
        default="https://api.telegram.org", alias="TELEGRAM_API_URL"
    )
