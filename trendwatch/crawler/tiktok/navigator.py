"""Navigation orchestrator: drives one browser session across candidate URLs.

Per URL:

    IDLE → LOADING → CONSENT_CHECK → CHALLENGE_CHECK → EXTRACTING → ACCUMULATED
                ↘ FAILED            ↘ CHALLENGED

and the whole run ends in DONE once enough unique videos are accumulated or
the URLs run out. A failed or challenged URL never aborts the run.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Sequence

from playwright.async_api import Error as PlaywrightError

from trendwatch.crawler.base import ExtractionSource, VideoRecord
from trendwatch.crawler.errors import ChallengeDetectedError, NavigationError

from .browser import TikTokBrowserSession
from .constants import (
    CHALLENGE_KEYWORDS,
    CONSENT_BUTTON_LABELS,
    CONSENT_CLICK_TIMEOUT_MS,
    CONSENT_FALLBACK_SELECTOR,
    CONSENT_SETTLE_MS,
)
from .strategies import StrategyChain, StructuredStateStrategy

logger = logging.getLogger(__name__)


class NavState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    CONSENT_CHECK = "consent_check"
    CHALLENGE_CHECK = "challenge_check"
    EXTRACTING = "extracting"
    ACCUMULATED = "accumulated"
    FAILED = "failed"
    CHALLENGED = "challenged"
    DONE = "done"


@dataclass
class UrlOutcome:
    """What happened on one candidate URL."""

    url: str
    state: NavState = NavState.IDLE
    records: int = 0
    source: Optional[ExtractionSource] = None
    consent_dismissed: bool = False
    error: Optional[str] = None
    error_kind: Optional[str] = None


@dataclass
class NavigationReport:
    """Accumulated records plus per-URL diagnostics."""

    records: list[VideoRecord] = field(default_factory=list)
    outcomes: list[UrlOutcome] = field(default_factory=list)
    enriched: int = 0
    state: NavState = NavState.IDLE


def detect_challenge(title: str, url: str) -> Optional[str]:
    """Return the matched bot-verification keyword, or None."""
    haystack = f"{title or ''} {url or ''}".lower()
    for keyword in CHALLENGE_KEYWORDS:
        if keyword in haystack:
            return keyword
    return None


async def dismiss_consent(page: Any) -> bool:
    """Click a cookie/consent button in the main document or any frame.

    Best effort: returns False when nothing was found.
    """
    for frame in page.frames:
        for label in CONSENT_BUTTON_LABELS:
            if await _click_if_visible(frame.locator(f'button:has-text("{label}")').first):
                logger.info("Dismissed consent prompt (%s)", label)
                await page.wait_for_timeout(CONSENT_SETTLE_MS)
                return True
        if await _click_if_visible(frame.locator(CONSENT_FALLBACK_SELECTOR).first):
            logger.info("Dismissed consent prompt (fallback selector)")
            await page.wait_for_timeout(CONSENT_SETTLE_MS)
            return True
    return False


async def _click_if_visible(locator: Any) -> bool:
    try:
        if not await locator.is_visible():
            return False
        await locator.click(delay=50, timeout=CONSENT_CLICK_TIMEOUT_MS)
        return True
    except (PlaywrightError, asyncio.TimeoutError):
        return False


class NavigationOrchestrator:
    """Visits candidate URLs and accumulates unique records.

    Usage:
        orchestrator = NavigationOrchestrator(session, chain, stop_threshold=120)
        report = await orchestrator.run(urls, limit=50)
    """

    def __init__(
        self,
        session: TikTokBrowserSession,
        chain: StrategyChain,
        *,
        stop_threshold: int = 120,
        inter_url_delay: tuple[float, float] = (1.0, 3.0),
        enrich_batch_size: int = 6,
        enrich_max_pages: int = 120,
        evaluate_timeout: float = 15.0,
    ) -> None:
        self.session = session
        self.chain = chain
        self.stop_threshold = stop_threshold
        self.inter_url_delay = inter_url_delay
        self.enrich_batch_size = max(enrich_batch_size, 1)
        self.enrich_max_pages = enrich_max_pages
        self._detail_strategy = StructuredStateStrategy(evaluate_timeout)

    async def run(self, urls: Sequence[str], *, limit: int) -> NavigationReport:
        """Visit URLs in order until ``stop_threshold`` unique videos are found."""
        report = NavigationReport()
        # Duplicates are kept; the ranking engine resolves them by source priority
        collected: list[VideoRecord] = []
        seen_ids: set[str] = set()

        for index, url in enumerate(urls):
            if index > 0:
                await self.session.random_delay(*self.inter_url_delay)

            outcome = await self.visit(url)
            report.outcomes.append(outcome.outcome)
            collected.extend(outcome.records)
            seen_ids.update(r.video_id for r in outcome.records)

            if len(seen_ids) >= self.stop_threshold:
                logger.info("Stop threshold reached (%d videos), skipping remaining URLs", len(seen_ids))
                break

        records = collected
        if records and all(r.source is ExtractionSource.DOM_SCRAPE for r in records):
            records, report.enriched = await self.enrich(records, limit=limit)

        report.records = records
        report.state = NavState.DONE
        logger.info(
            "Navigation done: %d videos from %d URL(s), %d enriched",
            len(records), len(report.outcomes), report.enriched,
        )
        return report

    async def visit(self, url: str) -> _Visit:
        """Run one URL through the state machine."""
        outcome = UrlOutcome(url=url)
        session = self.session
        session.interceptor.clear()

        outcome.state = NavState.LOADING
        try:
            await session.goto(url)
        except (PlaywrightError, asyncio.TimeoutError) as e:
            outcome.state = NavState.FAILED
            failure = NavigationError(f"{url}: {type(e).__name__}: {e}")
            outcome.error, outcome.error_kind = str(failure), failure.kind
            logger.warning("Navigation to %s failed: %s", url, e)
            return _Visit(outcome)

        outcome.state = NavState.CONSENT_CHECK
        try:
            outcome.consent_dismissed = await dismiss_consent(session.page)
        except PlaywrightError as e:
            logger.debug("Consent check failed on %s: %s", url, e)

        outcome.state = NavState.CHALLENGE_CHECK
        try:
            title = await session.get_page_title()
            current_url = await session.get_page_url()
        except PlaywrightError as e:
            outcome.state = NavState.FAILED
            outcome.error = f"{type(e).__name__}: {e}"
            logger.warning("Could not read page state of %s: %s", url, e)
            return _Visit(outcome)

        indicator = detect_challenge(title, current_url)
        if indicator:
            challenge = ChallengeDetectedError(url, indicator)
            outcome.state = NavState.CHALLENGED
            outcome.error, outcome.error_kind = str(challenge), challenge.kind
            logger.warning("%s (title=%r), skipping", challenge, title)
            return _Visit(outcome)

        outcome.state = NavState.EXTRACTING
        result = await self.chain.run(session.page, load_more=session.scroll_to_load)

        outcome.state = NavState.ACCUMULATED
        outcome.records = len(result.records)
        outcome.source = result.source
        return _Visit(outcome, result.records)

    async def enrich(
        self, records: list[VideoRecord], *, limit: int
    ) -> tuple[list[VideoRecord], int]:
        """Upgrade DOM-scraped records by reading each video page's state.

        Pages are opened in fixed-size concurrent batches and the loop stops
        once ``2 * limit`` records were enriched or the page cap is reached.
        """
        unique: dict[str, VideoRecord] = {}
        for record in records:
            unique.setdefault(record.video_id, record)
        targets = list(unique.values())[: self.enrich_max_pages]
        upgraded: dict[str, VideoRecord] = {}

        for start in range(0, len(targets), self.enrich_batch_size):
            batch = targets[start:start + self.enrich_batch_size]
            results = await asyncio.gather(*(self._enrich_one(r) for r in batch))
            for record in results:
                if record is not None:
                    upgraded[record.video_id] = record
            if len(upgraded) >= limit * 2:
                break

        merged = [upgraded.get(r.video_id, r) for r in records]
        return merged, len(upgraded)

    async def _enrich_one(self, record: VideoRecord) -> Optional[VideoRecord]:
        try:
            async with self.session.light_page() as page:
                await page.goto(record.video_url, wait_until="domcontentloaded")
                try:
                    await dismiss_consent(page)
                except PlaywrightError as e:
                    logger.debug("Consent check failed on %s: %s", record.video_url, e)
                found = await self._detail_strategy.extract(page)
        except (PlaywrightError, asyncio.TimeoutError) as e:
            logger.debug("Enrichment of %s failed: %s", record.video_url, e)
            return None

        for candidate in found:
            if candidate.video_id != record.video_id:
                continue
            if not candidate.video_url:
                return candidate.model_copy(
                    update={"video_url": record.video_url, "author_username": record.author_username}
                )
            return candidate
        return None


@dataclass
class _Visit:
    outcome: UrlOutcome
    records: list[VideoRecord] = field(default_factory=list)
