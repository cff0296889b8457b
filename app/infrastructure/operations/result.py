"""Result type returned by notification channel calls.

Channels never raise for provider-side failures; they return an
OperationResult and the caller decides on retry, fallback or blocking from
``error_kind``.
"""

from typing import Optional, Any
from dataclasses import dataclass

from infrastructure.operations.status import ErrorKind, OperationStatus


@dataclass
class OperationResult:
    """Outcome of a single channel call.

    Attributes:
        status: OperationStatus -- high-level outcome
        message: str -- human-friendly message for logs/troubleshooting
        data: Optional[Any] -- optional payload (can be dict, list, or object)
        error_code: Optional[str] -- optional machine error code
        retry_after: Optional[int] -- seconds until retry when rate-limited
    """

    status: OperationStatus
    message: str
    data: Optional[Any] = None
    error_code: Optional[str] = None
    retry_after: Optional[int] = None

    @property
    def is_success(self) -> bool:
        return self.status == OperationStatus.SUCCESS

    @property
    def error_kind(self) -> Optional[ErrorKind]:
        """Map a failed result onto the delivery error taxonomy.

        Returns:
            None for successful results, otherwise the ErrorKind that tells
            callers whether to retry, wait, give up, or block the destination.
        """
        if self.status == OperationStatus.SUCCESS:
            return None
        if self.status == OperationStatus.TRANSIENT_ERROR:
            if self.error_code == "RATE_LIMITED":
                return ErrorKind.RATE_LIMITED
            return ErrorKind.TRANSIENT
        if self.status == OperationStatus.UNAUTHORIZED:
            return ErrorKind.PERMISSION_REVOKED
        if self.status == OperationStatus.NOT_FOUND:
            return ErrorKind.NOT_FOUND
        return ErrorKind.REJECTED

    @classmethod
    def success(
        cls, data: Optional[Any] = None, message: str = "ok"
    ) -> "OperationResult":
        return cls(status=OperationStatus.SUCCESS, message=message, data=data)

    @classmethod
    def error(
        cls,
        status: OperationStatus,
        message: str,
        error_code: Optional[str] = None,
        retry_after: Optional[int] = None,
        data: Optional[Any] = None,
    ) -> "OperationResult":
        """Create an error OperationResult.

        Args:
            status: OperationStatus indicating error type
            message: Human-friendly error message
            error_code: Optional machine error code
            retry_after: Optional seconds until retry (for rate limiting)
            data: Optional payload to include with the error

        Returns:
            OperationResult with specified error status
        """
        return cls(
            status=status,
            message=message,
            error_code=error_code,
            retry_after=retry_after,
            data=data,
        )

    @classmethod
    def transient_error(
        cls,
        message: str,
        error_code: Optional[str] = None,
        retry_after: Optional[int] = None,
    ) -> "OperationResult":
        """Create a retryable error result (timeouts, 5xx, 429).

        ``retry_after`` carries the wait the provider asked for, if any.
        """
        return cls.error(
            OperationStatus.TRANSIENT_ERROR, message, error_code, retry_after
        )

    @classmethod
    def permanent_error(
        cls, message: str, error_code: Optional[str] = None
    ) -> "OperationResult":
        """Create a result the caller must not retry (bad request, blocked chat)."""
        return cls.error(OperationStatus.PERMANENT_ERROR, message, error_code)
