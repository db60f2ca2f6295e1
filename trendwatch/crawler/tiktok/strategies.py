"""Extraction strategy chain.

Three independent ways of getting VideoRecords out of a loaded page, tried in
a fixed priority order:

1. StructuredStateStrategy  - JSON state blobs embedded in the page
                              (full counters and captions)
2. NetworkInterceptStrategy - feed API responses captured while loading
3. DomScrapeStrategy        - video anchors in the rendered DOM
                              (ids, captions, thumbnails; counters mostly 0)

The chain stops at the first strategy that yields records. Parse problems
never escape a strategy: it logs and returns what it has.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional, Sequence

from playwright.async_api import Error as PlaywrightError

from trendwatch.crawler.base import ExtractionSource, VideoRecord

from .interceptor import FeedInterceptor
from .mapper import map_items
from .normalize import (
    canonical_video_url,
    extract_hashtags,
    parse_count_with_suffix,
    parse_video_url,
)

logger = logging.getLogger(__name__)

LoadMoreFn = Callable[[], Awaitable[None]]

# Collects every JSON document that may hold an item collection: known
# globals first, then inline scripts mentioning an item key.
JS_COLLECT_STATE = r"""() => {
    const markers = ['"ItemModule"', '"itemModule"', '"itemList"', '"itemStruct"'];
    const found = [];
    const clone = (value) => {
        try { return JSON.parse(JSON.stringify(value)); } catch (e) { return null; }
    };
    for (const name of ['SIGI_STATE', '__NEXT_DATA__', '__UNIVERSAL_DATA_FOR_REHYDRATION__']) {
        const value = window[name];
        if (value && typeof value === 'object') {
            const copy = clone(value);
            if (copy) { found.push(copy); }
        }
    }
    for (const script of Array.from(document.scripts)) {
        const text = script.textContent || '';
        if (!markers.some((m) => text.includes(m))) { continue; }
        try { found.push(JSON.parse(text)); } catch (e) {}
    }
    return found;
}"""

# Video anchors with whatever the surrounding card exposes
JS_COLLECT_VIDEO_LINKS = r"""() => {
    const anchors = Array.from(document.querySelectorAll('a[href*="/video/"]'));
    return anchors.map((a) => {
        const card = a.closest('[data-e2e*="item"], [class*="ItemContainer"], [class*="DivContainer"]')
            || a.parentElement;
        const img = a.querySelector('img') || (card ? card.querySelector('img') : null);
        const captionEl = card ? card.querySelector('[data-e2e*="desc"], [data-e2e*="caption"]') : null;
        const viewsEl = card ? card.querySelector('[data-e2e="video-views"], strong[data-e2e*="views"]') : null;
        return {
            href: a.href,
            caption: (captionEl && captionEl.textContent) || (img && img.alt) || '',
            thumbnail: img ? (img.currentSrc || img.src || null) : null,
            views: viewsEl ? viewsEl.textContent : '',
        };
    });
}"""


async def evaluate_bounded(page: Any, script: str, timeout: float) -> Any:
    """page.evaluate with a hard timeout. Returns None on timeout or JS error."""
    try:
        return await asyncio.wait_for(page.evaluate(script), timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning("Page evaluation timed out after %.1fs", timeout)
    except PlaywrightError as e:
        logger.warning("Page evaluation failed: %s", e)
    return None


def _unique(records: Sequence[VideoRecord]) -> list[VideoRecord]:
    seen: set[str] = set()
    unique: list[VideoRecord] = []
    for record in records:
        if record.video_id in seen:
            continue
        seen.add(record.video_id)
        unique.append(record)
    return unique


class ExtractionStrategy(ABC):
    """One self-contained way of getting VideoRecords from a loaded page."""

    source: ExtractionSource

    @property
    def name(self) -> str:
        return self.source.value

    @abstractmethod
    async def extract(self, page: Any) -> list[VideoRecord]:
        """Return records found on the page (possibly empty). Must not raise
        for malformed data."""
        ...


class StructuredStateStrategy(ExtractionStrategy):
    """Parse JSON state embedded in the page via globals or inline scripts."""

    source = ExtractionSource.STRUCTURED_STATE

    def __init__(self, evaluate_timeout: float = 15.0) -> None:
        self.evaluate_timeout = evaluate_timeout

    async def extract(self, page: Any) -> list[VideoRecord]:
        candidates = await evaluate_bounded(page, JS_COLLECT_STATE, self.evaluate_timeout)
        if not isinstance(candidates, list):
            return []

        for candidate in candidates:
            records = map_items(candidate, source=self.source)
            if records:
                logger.debug("Structured state yielded %d records", len(records))
                return _unique(records)
        return []

    async def has_state(self, page: Any) -> bool:
        """True if the page exposes any state document with items."""
        return bool(await self.extract(page))


class NetworkInterceptStrategy(ExtractionStrategy):
    """Map feed API payloads captured by the interceptor."""

    source = ExtractionSource.NETWORK_INTERCEPT

    def __init__(self, interceptor: FeedInterceptor) -> None:
        self.interceptor = interceptor

    async def extract(self, page: Any) -> list[VideoRecord]:
        records: list[VideoRecord] = []
        for payload in self.interceptor.payloads:
            records.extend(map_items(payload, source=self.source))
        return _unique(records)


class DomScrapeStrategy(ExtractionStrategy):
    """Last resort: read video anchors from the rendered DOM."""

    source = ExtractionSource.DOM_SCRAPE

    def __init__(self, evaluate_timeout: float = 15.0) -> None:
        self.evaluate_timeout = evaluate_timeout

    async def collect_links(self, page: Any) -> list[dict[str, Any]]:
        links = await evaluate_bounded(page, JS_COLLECT_VIDEO_LINKS, self.evaluate_timeout)
        if not isinstance(links, list):
            return []
        return [link for link in links if isinstance(link, dict)]

    async def extract(self, page: Any) -> list[VideoRecord]:
        records: list[VideoRecord] = []
        for link in await self.collect_links(page):
            parsed = parse_video_url(link.get("href"))
            if parsed is None:
                continue
            author, video_id = parsed
            caption = (link.get("caption") or "").strip()
            records.append(
                VideoRecord(
                    video_id=video_id,
                    video_url=canonical_video_url(author, video_id),
                    author_username=author,
                    caption=caption,
                    hashtags=extract_hashtags(caption),
                    views=parse_count_with_suffix(link.get("views")),
                    thumbnail_url=link.get("thumbnail") or None,
                    source=self.source,
                )
            )
        return _unique(records)


@dataclass
class ChainResult:
    """Records from the first productive strategy."""

    records: list[VideoRecord] = field(default_factory=list)
    source: Optional[ExtractionSource] = None
    attempted: list[str] = field(default_factory=list)


class StrategyChain:
    """Runs strategies in priority order until one yields records.

    Usage:
        chain = StrategyChain([StructuredStateStrategy(), NetworkInterceptStrategy(i), DomScrapeStrategy()])
        result = await chain.run(page, load_more=session.scroll_to_load)
    """

    def __init__(self, strategies: Sequence[ExtractionStrategy]) -> None:
        self.strategies = list(strategies)

    async def run(self, page: Any, load_more: Optional[LoadMoreFn] = None) -> ChainResult:
        """Extract from the page.

        After the first productive strategy, ``load_more`` (scroll/paginate)
        is awaited and the same strategy re-run once; the larger result set
        is kept.
        """
        result = ChainResult()
        for strategy in self.strategies:
            result.attempted.append(strategy.name)
            records = await self._safe_extract(strategy, page)
            if not records:
                continue

            if load_more is not None:
                try:
                    await load_more()
                except (PlaywrightError, asyncio.TimeoutError) as e:
                    logger.warning("Load-more failed after %s: %s", strategy.name, e)
                else:
                    again = await self._safe_extract(strategy, page)
                    if len(again) > len(records):
                        records = again

            logger.info("Strategy %s yielded %d records", strategy.name, len(records))
            result.records = records
            result.source = strategy.source
            return result

        logger.info("No strategy yielded records (tried %s)", ", ".join(result.attempted))
        return result

    @staticmethod
    async def _safe_extract(strategy: ExtractionStrategy, page: Any) -> list[VideoRecord]:
        try:
            return await strategy.extract(page)
        except (PlaywrightError, ValueError, TypeError, KeyError, ArithmeticError) as e:
            logger.warning("Strategy %s failed: %s", strategy.name, e)
            return []
