"""Schedule feed settings."""

from typing import List

from pydantic import Field, field_validator

from infrastructure.configuration.base import FeatureSettings


class FeedSettings(FeatureSettings):
    """Outage schedule feed configuration.

    Environment Variables:
        FEED_DATA_URL_TEMPLATE: JSON feed URL, ``{region}`` is substituted
        FEED_IMAGE_URL_TEMPLATE: Rendered schedule image URL, ``{region}`` and
            ``{queue}`` are substituted
        FEED_REGIONS: Regions polled on every schedule check
        FEED_CACHE_TTL_SECONDS: How long a fetched snapshot is served from cache
        FEED_RETRY_DELAYS: Delay ladder between fetch attempts (seconds)
        FEED_MAX_ATTEMPTS: Fetch attempts before falling back to stale cache
        FEED_TIMEOUT_SECONDS: Per-request timeout
        FEED_USER_AGENT: User-Agent header sent to the feed host
        FEED_TIMEZONE: Timezone of naive feed timestamps and of the
            today/tomorrow split
        SCHEDULE_CHECK_INTERVAL_SECONDS: Interval of the schedule re-check trigger

    Example:
        ```python
        from infrastructure.services import get_settings

        settings = get_settings()

        ttl = settings.feed.cache_ttl_seconds
        url = settings.feed.data_url_template.format(region="kyiv")
        ```
    """

    data_url_template: str = Field(
        default="https://raw.githubusercontent.com/Baskerville42/outage-data-ua/main/data/{region}.json",
        alias="FEED_DATA_URL_TEMPLATE",
        description="Schedule feed URL template",
    )
    image_url_template: str = Field(
        default="https://raw.githubusercontent.com/Baskerville42/outage-data-ua/main/images/{region}/gpv-{queue}-emergency.png",
        alias="FEED_IMAGE_URL_TEMPLATE",
        description="Schedule image URL template",
    )
    regions: List[str] = Field(
        default_factory=lambda: ["kyiv", "kyiv-region", "dnipro", "odesa"],
        alias="FEED_REGIONS",
        description="Regions polled on every schedule check",
    )
    cache_ttl_seconds: int = Field(
        default=120,
        alias="FEED_CACHE_TTL_SECONDS",
        description="Snapshot cache time-to-live (seconds)",
    )
    retry_delays: List[float] = Field(
        default_factory=lambda: [5.0, 15.0, 45.0],
        alias="FEED_RETRY_DELAYS",
        description="Delays between fetch attempts (seconds)",
    )
    max_attempts: int = Field(
        default=3,
        alias="FEED_MAX_ATTEMPTS",
        description="Fetch attempts per cycle",
    )
    timeout_seconds: float = Field(
        default=30.0,
        alias="FEED_TIMEOUT_SECONDS",
        description="Per-request timeout (seconds)",
    )
    user_agent: str = Field(
        default="outage-watch/1.0",
        alias="FEED_USER_AGENT",
        description="User-Agent sent to the feed host",
    )
    timezone: str = Field(
        default="Europe/Kyiv",
        alias="FEED_TIMEZONE",
        description="IANA timezone of the feed",
    )
    check_interval_seconds: int = Field(
        default=60,
        alias="SCHEDULE_CHECK_INTERVAL_SECONDS",
        description="Schedule re-check interval (seconds)",
    )

    @field_validator("retry_delays")
    @classmethod
    def validate_retry_delays(cls, v: List[float]) -> List[float]:
        """Require a non-empty ladder of non-negative delays."""
        if not v:
            raise ValueError("FEED_RETRY_DELAYS must contain at least one delay")
        if any(delay < 0 for delay in v):
            raise ValueError("FEED_RETRY_DELAYS must not contain negative delays")
        return v
