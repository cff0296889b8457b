"""Schedule feed fetcher.

Fetches one region's schedule feed over HTTP with a per-region TTL cache and a
fixed retry ladder. When every attempt fails, the last cached snapshot is
served again flagged ``stale``; with nothing cached the fetch raises
``FetchFailed``. A payload that does not decode to a JSON object raises
``FeedMalformed`` immediately.

Usage:
    from modules.schedules.feed import FeedFetcher

    fetcher = FeedFetcher.from_settings(settings.feed)
    snapshot = await fetcher.fetch("kyiv")
    if snapshot.stale:
        ...
"""

import dataclasses
from typing import Any, Dict, Optional, Tuple

import httpx

from infrastructure.configuration.features import FeedSettings
from infrastructure.logging import get_module_logger
from infrastructure.operations import FeedMalformed, FetchFailed
from infrastructure.resilience import Clock, RetryConfig, SystemClock, retry_async
from modules.schedules.models import ScheduleSnapshot

logger = get_module_logger()


def _is_retryable(exc: Exception) -> bool:
    return not isinstance(exc, FeedMalformed)


class FeedFetcher:
    """Cached, retrying fetcher for the outage schedule feed.

    Args:
        data_url_template: Feed URL, ``{region}`` is substituted
        image_url_template: Image URL, ``{region}`` and ``{queue}`` are
            substituted
        cache_ttl_seconds: How long a snapshot is served without network I/O
        retry_config: Policy between fetch attempts
        timeout_seconds: Per-request timeout
        user_agent: User-Agent header
        clock: Time source for the cache and retry sleeps
        client: Optional preconfigured httpx.AsyncClient
    """

    def __init__(
        self,
        data_url_template: str,
        image_url_template: Optional[str] = None,
        cache_ttl_seconds: float = 120,
        retry_config: Optional[RetryConfig] = None,
        timeout_seconds: float = 30.0,
        user_agent: str = "outage-watch/1.0",
        clock: Optional[Clock] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.data_url_template = data_url_template
        self.image_url_template = image_url_template
        self.cache_ttl_seconds = cache_ttl_seconds
        self.retry_config = retry_config or RetryConfig.from_ladder(
            [5, 15, 45], max_attempts=3
        )
        self.timeout_seconds = timeout_seconds
        self.clock = clock or SystemClock()
        self._client = client or httpx.AsyncClient(
            timeout=timeout_seconds,
            headers={"User-Agent": user_agent},
            follow_redirects=True,
        )
        self._cache: Dict[str, ScheduleSnapshot] = {}
        self._image_cache: Dict[Tuple[str, str], Tuple[Any, bytes]] = {}

    @classmethod
    def from_settings(
        cls,
        settings: FeedSettings,
        clock: Optional[Clock] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> "FeedFetcher":
        return cls(
            data_url_template=settings.data_url_template,
            image_url_template=settings.image_url_template,
            cache_ttl_seconds=settings.cache_ttl_seconds,
            retry_config=RetryConfig.from_ladder(
                settings.retry_delays, max_attempts=settings.max_attempts
            ),
            timeout_seconds=settings.timeout_seconds,
            user_agent=settings.user_agent,
            clock=clock,
            client=client,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    def _is_fresh(self, fetched_at) -> bool:
        age = (self.clock.now() - fetched_at).total_seconds()
        return age < self.cache_ttl_seconds

    async def fetch(self, region: str) -> ScheduleSnapshot:
        """Return the current snapshot for ``region``.

        Raises:
            FeedMalformed: The feed answered with something that is not a JSON
                object.
            FetchFailed: Every attempt failed and no cached snapshot exists.
        """
        cached = self._cache.get(region)
        if cached is not None and self._is_fresh(cached.fetched_at):
            logger.debug("feed_cache_hit", region=region)
            return cached

        url = self.data_url_template.format(region=region)
        attempts = 0

        async def attempt(attempt_no: int) -> Dict[str, Any]:
            nonlocal attempts
            attempts = attempt_no
            response = await self._client.get(url, timeout=self.timeout_seconds)
            response.raise_for_status()
            try:
                payload = response.json()
            except ValueError as e:
                raise FeedMalformed(
                    f"Feed for {region} is not valid JSON", region, attempt_no
                ) from e
            if not isinstance(payload, dict):
                raise FeedMalformed(
                    f"Feed for {region} is not a JSON object", region, attempt_no
                )
            return payload

        try:
            payload = await retry_async(
                attempt,
                self.retry_config,
                self.clock,
                is_retryable=_is_retryable,
                operation_name=f"feed_fetch:{region}",
            )
        except FeedMalformed:
            logger.error("feed_malformed", region=region, url=url)
            raise
        except httpx.HTTPError as e:
            if cached is not None:
                logger.warning(
                    "stale_data_served",
                    region=region,
                    attempts=attempts,
                    fetched_at=cached.fetched_at.isoformat(),
                    error=str(e),
                )
                return dataclasses.replace(cached, stale=True)
            logger.error(
                "feed_fetch_failed", region=region, attempts=attempts, error=str(e)
            )
            raise FetchFailed(
                f"Failed to fetch feed for {region}: {e}", region, attempts
            ) from e

        snapshot = ScheduleSnapshot(
            region=region, fetched_at=self.clock.now(), raw_payload=payload
        )
        self._cache[region] = snapshot
        logger.info(
            "feed_fetched", region=region, attempts=attempts, keys=len(payload)
        )
        return snapshot

    async def fetch_image(self, region: str, queue: str) -> bytes:
        """Fetch the rendered schedule image for ``region``/``queue``.

        Raises:
            FetchFailed: No image URL is configured or every attempt failed.
        """
        if not self.image_url_template:
            raise FetchFailed("No schedule image URL configured", region)

        key = (region, queue)
        cached = self._image_cache.get(key)
        if cached is not None and self._is_fresh(cached[0]):
            return cached[1]

        url = self.image_url_template.format(
            region=region, queue=queue.replace(".", "-")
        )
        params = {"t": str(int(self.clock.now().timestamp()))}

        async def attempt(_: int) -> bytes:
            response = await self._client.get(
                url, params=params, timeout=self.timeout_seconds
            )
            response.raise_for_status()
            return response.content

        try:
            content = await retry_async(
                attempt,
                self.retry_config,
                self.clock,
                operation_name=f"image_fetch:{region}:{queue}",
            )
        except httpx.HTTPError as e:
            logger.warning(
                "schedule_image_fetch_failed", region=region, queue=queue, error=str(e)
            )
            raise FetchFailed(
                f"Failed to fetch schedule image for {region}/{queue}: {e}", region
            ) from e

        self._image_cache[key] = (self.clock.now(), content)
        return content
