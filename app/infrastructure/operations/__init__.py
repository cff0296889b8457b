"""Operation result types, status enums and error types.

This module contains standardized result types for operations across
the application, including status enums, result dataclasses, error
classifiers for provider failures and the pipeline exception types.
"""

from infrastructure.operations.classifiers import (
    classify_http_error,
    classify_telegram_error,
)
from infrastructure.operations.errors import (
    CapacityExceeded,
    ConfigInvalid,
    DeliveryError,
    FeedMalformed,
    FetchFailed,
    OutageWatchError,
)
from infrastructure.operations.result import OperationResult
from infrastructure.operations.status import ErrorKind, OperationStatus

__all__ = [
    "OperationResult",
    "OperationStatus",
    "ErrorKind",
    "classify_http_error",
    "classify_telegram_error",
    "OutageWatchError",
    "FetchFailed",
    "FeedMalformed",
    "DeliveryError",
    "CapacityExceeded",
    "ConfigInvalid",
]
