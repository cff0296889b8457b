"""Operation status enumerations.

Status codes for operation results, used to classify outcomes of operations
across the application for appropriate error handling and retries.
"""

from enum import Enum


class OperationStatus(Enum):
    """Status codes for operation results.

    Attributes:
        SUCCESS: Operation completed successfully
        TRANSIENT_ERROR: Retryable error (network, timeout, rate limit)
        PERMANENT_ERROR: Non-retryable error (validation, rejected request)
        UNAUTHORIZED: Authentication or authorization failure
        NOT_FOUND: Resource not found
    """

    SUCCESS = "success"
    TRANSIENT_ERROR = "transient_error"
    PERMANENT_ERROR = "permanent_error"
    UNAUTHORIZED = "unauthorized"
    NOT_FOUND = "not_found"


class ErrorKind(Enum):
    """What a failed delivery means for the destination.

    Delivery code branches on this instead of on transport error text.

    Attributes:
        TRANSIENT: Worth retrying (timeouts, connection errors, 5xx)
        RATE_LIMITED: Worth retrying after the destination's retry-after hint
        PERMISSION_REVOKED: The bot lost access (blocked, kicked, no rights)
        NOT_FOUND: The destination no longer exists
        REJECTED: The request itself was refused; retrying the same request
            will not help, but the destination is still usable
    """

    TRANSIENT = "transient"
    RATE_LIMITED = "rate_limited"
    PERMISSION_REVOKED = "permission_revoked"
    NOT_FOUND = "not_found"
    REJECTED = "rejected"

    @property
    def is_retryable(self) -> bool:
        return self in (ErrorKind.TRANSIENT, ErrorKind.RATE_LIMITED)

    @property
    def is_permanent_for_destination(self) -> bool:
        return self in (ErrorKind.PERMISSION_REVOKED, ErrorKind.NOT_FOUND)
