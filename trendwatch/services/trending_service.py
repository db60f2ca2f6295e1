"""Trending service: cache lookup, bounded scrape, ranking, cache store.

One request runs one scrape. Results are cached per (region, limit) for
``cache_ttl_seconds``; empty results are returned but never cached.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from pydantic import BaseModel, Field

from trendwatch.config import Settings, get_settings
from trendwatch.crawler.base import BaseCrawler, VideoRecord
from trendwatch.crawler.errors import CrawlerError, ScrapeFailedError, ScrapeTimeoutError
from trendwatch.crawler.registry import get_crawler
from trendwatch.crawler.stealth import REGION_PROFILES
from trendwatch.utils.ttl_cache import TTLCache

from .ranking import rank_records

logger = logging.getLogger(__name__)

PLATFORM = "tiktok"

CrawlerFactory = Callable[[str], BaseCrawler]


class InvalidRegionError(ValueError):
    """Requested region has no fingerprint profile."""

    def __init__(self, region: str) -> None:
        self.region = region
        super().__init__(
            f"Unknown region {region!r}, expected one of {sorted(REGION_PROFILES)}"
        )


class TrendingResult(BaseModel):
    """One ranked result set, as cached and served."""

    videos: list[VideoRecord] = Field(default_factory=list)
    scraped_at: str
    total_found: int = 0
    returned: int = 0
    window_hours: Optional[float] = None
    region: str


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _registry_factory(settings: Settings) -> CrawlerFactory:
    # Importing the package registers the crawler
    import trendwatch.crawler.tiktok  # noqa: F401

    crawler_class = get_crawler(PLATFORM)
    if crawler_class is None:
        raise RuntimeError(f"No crawler registered for {PLATFORM!r}")

    def factory(region: str) -> BaseCrawler:
        return crawler_class(region, settings=settings)

    return factory


class TrendingService:
    """Serves ranked trending videos, scraping on cache miss.

    Usage:
        service = TrendingService(TTLCache(ttl_seconds=900))
        result, cached = await service.get_trending(limit=50, region="it")
    """

    def __init__(
        self,
        cache: TTLCache,
        settings: Optional[Settings] = None,
        crawler_factory: Optional[CrawlerFactory] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.cache = cache
        self.settings = settings or get_settings()
        self.trending_settings = self.settings.trending
        self._crawler_factory = crawler_factory
        self._clock = clock

    @property
    def crawler_factory(self) -> CrawlerFactory:
        if self._crawler_factory is None:
            self._crawler_factory = _registry_factory(self.settings)
        return self._crawler_factory

    @staticmethod
    def cache_key(region: str, limit: int) -> str:
        return f"trending:{region}:{limit}"

    def clamp_limit(self, limit: Optional[int]) -> int:
        """Clamp ``limit`` to [1, max_limit]; None means the configured default."""
        ts = self.trending_settings
        if limit is None:
            limit = ts.default_limit
        return max(1, min(int(limit), ts.max_limit))

    def resolve_region(self, region: Optional[str]) -> str:
        if not region:
            return self.trending_settings.region
        region = region.strip().lower()
        if region not in REGION_PROFILES:
            raise InvalidRegionError(region)
        return region

    async def get_trending(
        self, limit: Optional[int] = None, region: Optional[str] = None
    ) -> tuple[TrendingResult, bool]:
        """Return ``(result, cached)`` for the clamped limit and region.

        Raises:
            InvalidRegionError: Unknown region.
            ScrapeTimeoutError: The scrape exceeded ``request_timeout_seconds``.
            CrawlerError: Any other scrape failure (unexpected errors are
                wrapped in ``ScrapeFailedError``).
        """
        limit = self.clamp_limit(limit)
        region = self.resolve_region(region)
        key = self.cache_key(region, limit)

        cached = self.cache.get(key)
        if cached is not None:
            logger.info("Cache hit for %s", key)
            return cached, True

        records = await self._scrape(region, limit)
        outcome = rank_records(records, limit, now=self._clock())

        result = TrendingResult(
            videos=outcome.videos,
            scraped_at=self._clock().isoformat(),
            total_found=outcome.total_found,
            returned=len(outcome.videos),
            window_hours=outcome.window_hours,
            region=region,
        )

        if result.videos:
            self.cache.set(key, result)
        else:
            logger.warning("Scrape for %s returned no videos, not caching", key)
        return result, False

    async def run_debug(self, region: Optional[str] = None) -> dict[str, Any]:
        """Run one diagnostic page load. Failures are reported, not raised."""
        region = self.resolve_region(region)
        timeout = self.trending_settings.request_timeout_seconds
        crawler = self.crawler_factory(region)
        try:
            return await asyncio.wait_for(crawler.diagnose(), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning("Diagnostic run exceeded %.0fs", timeout)
            return {"region": region, "error": str(ScrapeTimeoutError(timeout))}

    async def _scrape(self, region: str, limit: int) -> list[VideoRecord]:
        timeout = self.trending_settings.request_timeout_seconds
        try:
            crawler = self.crawler_factory(region)
            # Cancellation on timeout unwinds the crawler's session context
            return await asyncio.wait_for(crawler.scrape(limit), timeout=timeout)
        except asyncio.TimeoutError as e:
            logger.error("Scrape for region=%s limit=%d timed out after %.0fs", region, limit, timeout)
            raise ScrapeTimeoutError(timeout) from e
        except CrawlerError:
            raise
        except Exception as e:
            logger.exception("Scrape for region=%s limit=%d failed", region, limit)
            raise ScrapeFailedError(f"{type(e).__name__}: {e}") from e
