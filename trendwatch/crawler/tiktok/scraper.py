"""TikTok trending crawler.

Binds one stealth browser session to the navigation orchestrator:

    BrowserSessionManager.session()          # launch with retry, always closed
      └─ NavigationOrchestrator.run(urls)    # explore → foryou → home
           └─ StrategyChain.run(page)        # state → network → DOM

Also provides ``diagnose()``, a single instrumented page load used by the
/debug endpoint.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from trendwatch.config import Settings, get_settings
from trendwatch.crawler.base import BaseCrawler, VideoRecord
from trendwatch.crawler.stealth import RegionProfile, get_region_profile

from .browser import BrowserSessionManager, TikTokBrowserSession, make_session_factory
from .constants import BASE_URL, CANDIDATE_PATHS, DEBUG_FIRST_LINKS, DEBUG_SETTLE_MS
from .navigator import NavigationOrchestrator, NavigationReport, detect_challenge, dismiss_consent
from .strategies import (
    DomScrapeStrategy,
    NetworkInterceptStrategy,
    StrategyChain,
    StructuredStateStrategy,
)

logger = logging.getLogger(__name__)


class TikTokCrawler(BaseCrawler):
    """TikTok explore/trending crawler.

    Usage:
        crawler = TikTokCrawler(region="it")
        records = await crawler.scrape(limit=50)
        report = crawler.last_report
    """

    platform = "tiktok"

    def __init__(
        self,
        region: Optional[str] = None,
        *,
        settings: Optional[Settings] = None,
        session_manager: Optional[BrowserSessionManager] = None,
    ):
        self.settings = settings or get_settings()
        self.crawler_settings = self.settings.crawler
        self.profile: RegionProfile = get_region_profile(region or self.settings.trending.region)

        cs = self.crawler_settings
        self.session_manager = session_manager or BrowserSessionManager(
            make_session_factory(
                self.profile,
                headless=cs.headless,
                navigation_timeout_ms=cs.navigation_timeout_ms,
                scroll_steps=cs.scroll_steps,
                scroll_wait_ms=cs.scroll_wait_ms,
            ),
            max_attempts=cs.max_retries,
            retry_delay=cs.retry_delay,
        )
        self.last_report: Optional[NavigationReport] = None

    def candidate_urls(self) -> list[str]:
        return [BASE_URL + path.format(lang=self.profile.lang) for path in CANDIDATE_PATHS]

    def build_chain(self, session: TikTokBrowserSession) -> StrategyChain:
        timeout = self.crawler_settings.evaluate_timeout_s
        return StrategyChain([
            StructuredStateStrategy(timeout),
            NetworkInterceptStrategy(session.interceptor),
            DomScrapeStrategy(timeout),
        ])

    async def scrape(self, limit: int) -> list[VideoRecord]:
        """Collect candidate videos from every reachable candidate URL.

        Raises:
            BrowserLaunchError: If the browser could not be started.
        """
        cs = self.crawler_settings
        logger.info("Scraping TikTok trending (region=%s, limit=%d)", self.profile.region, limit)

        async with self.session_manager.session() as session:
            orchestrator = NavigationOrchestrator(
                session,
                self.build_chain(session),
                stop_threshold=max(cs.stop_threshold, limit),
                inter_url_delay=(cs.inter_url_delay_min, cs.inter_url_delay_max),
                enrich_batch_size=cs.enrich_batch_size,
                enrich_max_pages=cs.enrich_max_pages,
                evaluate_timeout=cs.evaluate_timeout_s,
            )
            report = await orchestrator.run(self.candidate_urls(), limit=limit)

        self.last_report = report
        return report.records

    async def diagnose(self) -> dict[str, Any]:
        """Load the explore page once and report what the extractors see.

        Never raises; any failure is reported in the ``error`` field.
        """
        url = self.candidate_urls()[0]
        timeout = self.crawler_settings.evaluate_timeout_s
        info: dict[str, Any] = {
            "url": url,
            "region": self.profile.region,
            "title": None,
            "page_loaded": False,
            "has_structured_state": False,
            "challenge": False,
            "link_count": 0,
            "first_links": [],
            "error": None,
        }

        try:
            async with self.session_manager.session() as session:
                await session.goto(url)
                info["page_loaded"] = True
                await dismiss_consent(session.page)
                await session.page.wait_for_timeout(DEBUG_SETTLE_MS)

                info["title"] = await session.get_page_title()
                info["challenge"] = detect_challenge(info["title"], await session.get_page_url()) is not None
                info["has_structured_state"] = await StructuredStateStrategy(timeout).has_state(session.page)

                links = await DomScrapeStrategy(timeout).collect_links(session.page)
                hrefs = [link.get("href") for link in links if link.get("href")]
                info["link_count"] = len(hrefs)
                info["first_links"] = hrefs[:DEBUG_FIRST_LINKS]
        except Exception as e:
            # The debug endpoint reports failures instead of raising them
            logger.warning("Diagnostic scrape failed: %s", e)
            info["error"] = f"{type(e).__name__}: {e}"

        return info
