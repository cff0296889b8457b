"""Error classifiers for provider exceptions and responses.

Converts httpx exceptions and Telegram Bot API error responses into
standardized OperationResult objects, so callers branch on
``OperationResult.error_kind`` instead of on error text.

Key Functions:
- classify_http_error(): httpx exceptions → OperationResult
- classify_telegram_error(): Bot API ``{"ok": false, ...}`` bodies → OperationResult

Usage:
    from infrastructure.operations.classifiers import classify_http_error

    try:
        response = await client.get(url)
        response.raise_for_status()
    except httpx.HTTPError as exc:
        return classify_http_error(exc)
"""

from typing import Any, Mapping, Optional

import httpx

from infrastructure.operations.result import OperationResult
from infrastructure.operations.status import OperationStatus

DEFAULT_RETRY_AFTER = 60

# Bot API reports these access problems as 400 Bad Request
_NOT_FOUND_MARKERS = ("chat not found", "user not found")
_NO_RIGHTS_MARKERS = (
    "not enough rights",
    "have no rights",
    "need administrator rights",
    "chat_write_forbidden",
)


def _parse_retry_after(value: Any) -> int:
    try:
        return int(value)
    except (ValueError, TypeError):
        return DEFAULT_RETRY_AFTER


def classify_http_error(exc: Exception) -> OperationResult:
    """Classify httpx errors into OperationResult.

    Status Code Mapping:
    - 429: Rate limiting → TRANSIENT_ERROR with retry_after
    - 401: Unauthorized → PERMANENT_ERROR (our credentials are wrong)
    - 403: Forbidden → UNAUTHORIZED
    - 404: Not found → NOT_FOUND
    - 5xx: Server error → TRANSIENT_ERROR
    - Other 4xx → PERMANENT_ERROR
    - Timeouts and transport errors → TRANSIENT_ERROR

    Args:
        exc: Exception raised by httpx (or any other exception)

    Returns:
        OperationResult with appropriate status, message, error_code, and
        retry_after (if applicable)
    """
    if isinstance(exc, httpx.TimeoutException):
        return OperationResult.transient_error(
            f"Request timed out: {type(exc).__name__}",
            error_code="TIMEOUT",
        )

    if not isinstance(exc, httpx.HTTPStatusError):
        return OperationResult.transient_error(
            f"Connection error: {type(exc).__name__}: {str(exc)}",
            error_code="CONNECTION_ERROR",
        )

    status_code = exc.response.status_code

    if status_code == 429:
        return OperationResult.error(
            OperationStatus.TRANSIENT_ERROR,
            "Rate limited",
            error_code="RATE_LIMITED",
            retry_after=_parse_retry_after(exc.response.headers.get("retry-after")),
        )

    if status_code == 401:
        return OperationResult.permanent_error(
            "Authentication failed",
            error_code="UNAUTHORIZED",
        )

    if status_code == 403:
        return OperationResult.error(
            OperationStatus.UNAUTHORIZED,
            "Access denied",
            error_code="FORBIDDEN",
        )

    if status_code == 404:
        return OperationResult.error(
            OperationStatus.NOT_FOUND,
            "Resource not found",
            error_code="NOT_FOUND",
        )

    if 500 <= status_code < 600:
        return OperationResult.transient_error(
            f"Server error ({status_code})",
            error_code="SERVER_ERROR",
        )

    return OperationResult.permanent_error(
        f"Client error ({status_code})",
        error_code="HTTP_ERROR",
    )


def classify_telegram_error(
    body: Optional[Mapping[str, Any]], status_code: Optional[int] = None
) -> OperationResult:
    """Classify a Telegram Bot API error response into OperationResult.

    The Bot API answers every failed call with
    ``{"ok": false, "error_code": int, "description": str,
    "parameters": {"retry_after": int}}``. Access problems arrive either as
    403 (bot blocked or kicked) or as 400 with a description naming the
    problem, so the description is inspected here and nowhere else.

    Mapping:
    - 429: TRANSIENT_ERROR, error_code RATE_LIMITED, retry_after from parameters
    - 403: UNAUTHORIZED (permission revoked)
    - 400 "chat not found": NOT_FOUND
    - 400 "not enough rights": UNAUTHORIZED
    - 401: PERMANENT_ERROR, error_code BOT_UNAUTHORIZED (bad token)
    - 5xx: TRANSIENT_ERROR
    - Other: PERMANENT_ERROR (request rejected)

    Args:
        body: Decoded JSON body, or None when the body was not JSON
        status_code: HTTP status code, used when the body has no error_code

    Returns:
        OperationResult describing the failure
    """
    body = body or {}
    error_code = body.get("error_code") or status_code
    description = str(body.get("description") or "")
    lowered = description.lower()

    if error_code == 429:
        parameters = body.get("parameters") or {}
        return OperationResult.error(
            OperationStatus.TRANSIENT_ERROR,
            f"Telegram rate limited: {description}",
            error_code="RATE_LIMITED",
            retry_after=_parse_retry_after(parameters.get("retry_after")),
        )

    if error_code == 403:
        return OperationResult.error(
            OperationStatus.UNAUTHORIZED,
            f"Telegram access revoked: {description}",
            error_code="FORBIDDEN",
        )

    if error_code == 400 and any(marker in lowered for marker in _NOT_FOUND_MARKERS):
        return OperationResult.error(
            OperationStatus.NOT_FOUND,
            f"Telegram destination not found: {description}",
            error_code="CHAT_NOT_FOUND",
        )

    if error_code == 400 and any(marker in lowered for marker in _NO_RIGHTS_MARKERS):
        return OperationResult.error(
            OperationStatus.UNAUTHORIZED,
            f"Telegram access revoked: {description}",
            error_code="NO_RIGHTS",
        )

    if error_code == 401:
        return OperationResult.permanent_error(
            "Telegram rejected the bot token",
            error_code="BOT_UNAUTHORIZED",
        )

    if isinstance(error_code, int) and 500 <= error_code < 600:
        return OperationResult.transient_error(
            f"Telegram server error ({error_code})",
            error_code="SERVER_ERROR",
        )

    return OperationResult.permanent_error(
        f"Telegram rejected the request ({error_code}): {description}",
        error_code="REQUEST_REJECTED",
    )
