"""Telegram Bot API delivery transport."""

from typing import Any, Dict, Optional

import httpx
import structlog

from infrastructure.notifications.channels.base import NotificationChannel
from infrastructure.operations import (
    OperationResult,
    classify_http_error,
    classify_telegram_error,
)

logger = structlog.get_logger()

PARSE_MODE = "HTML"


class TelegramChannel(NotificationChannel):
    """Delivers messages through the Telegram Bot API.

    Uses ``sendPhoto`` for media, ``sendMessage`` for text and
    ``deleteMessage`` for removing a previous schedule post. Bot API error
    bodies and httpx exceptions are classified into OperationResult so the
    dispatcher can decide between retrying, falling back and blocking the
    destination.

    Args:
        token: Bot token
        api_url: Bot API base URL
        timeout_seconds: Per-request timeout
        client: Optional preconfigured httpx.AsyncClient (tests pass one
            built on httpx.MockTransport)
    """

    def __init__(
        self,
        token: str,
        api_url: str = "https://api.telegram.org",
        timeout_seconds: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self._base_url = f"{api_url.rstrip('/')}/bot{token}"
        self._client = client or httpx.AsyncClient(timeout=timeout_seconds)
        logger.info("initialized_telegram_channel", api_url=api_url)

    @property
    def channel_name(self) -> str:
        """Channel identifier."""
        return "telegram"

    async def aclose(self) -> None:
        await self._client.aclose()

    async def send_media(
        self,
        chat_id: str,
        media: bytes,
        caption: Optional[str] = None,
        filename: str = "schedule.png",
    ) -> OperationResult:
        data: Dict[str, Any] = {"chat_id": chat_id}
        if caption:
            data["caption"] = caption
            data["parse_mode"] = PARSE_MODE
        files = {"photo": (filename, media, "image/png")}
        return await self._call("sendPhoto", data=data, files=files)

    async def send_text(self, chat_id: str, text: str) -> OperationResult:
        return await self._call(
            "sendMessage",
            json={"chat_id": chat_id, "text": text, "parse_mode": PARSE_MODE},
        )

    async def delete_message(self, chat_id: str, message_id: int) -> OperationResult:
        return await self._call(
            "deleteMessage", json={"chat_id": chat_id, "message_id": message_id}
        )

    async def health_check(self) -> OperationResult:
        result = await self._call("getMe", json={})
        if result.is_success:
            return OperationResult.success(data=result.data, message="Bot API reachable")
        return result

    async def _call(self, method: str, **request_kwargs: Any) -> OperationResult:
        """Invoke a Bot API method and classify the response."""
        try:
            response = await self._client.post(
                f"{self._base_url}/{method}", **request_kwargs
            )
        except httpx.HTTPError as e:
            result = classify_http_error(e)
            logger.warning(
                "telegram_request_failed",
                method=method,
                error=result.message,
                error_code=result.error_code,
            )
            return result

        try:
            body = response.json()
        except ValueError:
            body = None

        if response.is_success and isinstance(body, dict) and body.get("ok"):
            payload = body.get("result")
            data: Dict[str, Any] = dict(payload) if isinstance(payload, dict) else {}
            return OperationResult.success(data=data)

        result = classify_telegram_error(
            body if isinstance(body, dict) else None, response.status_code
        )
        logger.warning(
            "telegram_api_error",
            method=method,
            status_code=response.status_code,
            error=result.message,
            error_code=result.error_code,
            retry_after=result.retry_after,
        )
        return result
