"""Exceptions raised across the pipeline.

Recoverable conditions are handled where they occur; these types cross module
seams so callers can tell them apart without inspecting messages.
"""

from typing import Any, Optional

from infrastructure.operations.status import ErrorKind


class OutageWatchError(Exception):
    """Base class for all pipeline errors."""


class FetchFailed(OutageWatchError):
    """Raised when a feed fetch failed and no cached snapshot exists.

    Attributes:
        region: Region whose feed could not be fetched
        attempts: Attempts made before giving up
    """

    def __init__(self, message: str, region: str, attempts: int = 0):
        super().__init__(message)
        self.region = region
        self.attempts = attempts


class FeedMalformed(FetchFailed):
    """Raised when the feed answered with a payload that cannot be parsed.

    Not retried: the same bytes will not parse on the next attempt.
    """


class DeliveryError(OutageWatchError):
    """Raised by delivery transports when a send fails.

    Attributes:
        kind: ErrorKind classification of the failure
        retry_after: Seconds the destination asked us to wait, if any
        response: OperationResult the classification came from
    """

    def __init__(
        self,
        message: str,
        kind: ErrorKind,
        retry_after: Optional[int] = None,
        response: Any = None,
    ):
        super().__init__(message)
        self.kind = kind
        self.retry_after = retry_after
        self.response = response


class CapacityExceeded(OutageWatchError):
    """Raised when admission is denied for a throttled dimension.

    Attributes:
        dimension: Dimension that denied admission
        key: Per-recipient or per-destination key, if the dimension is keyed
    """

    def __init__(self, dimension: str, key: Optional[str] = None):
        super().__init__(f"Capacity exceeded for {dimension}" + (f" ({key})" if key else ""))
        self.dimension = dimension
        self.key = key


class ConfigInvalid(OutageWatchError):
    """Raised at startup when limits or thresholds are inconsistent."""
