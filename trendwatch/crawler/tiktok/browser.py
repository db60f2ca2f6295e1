"""Stealth Playwright browser session for TikTok.

One session = one Chromium process + one isolated context + one main page,
owned by exactly one scrape and closed when it ends:
1. Launches Chromium with anti-detection args
2. Creates a context matching the region profile (UA, locale, timezone,
   geolocation, Sec-CH-UA headers)
3. Injects stealth JS before any page script runs
4. Attaches the feed API interceptor to the main page
"""

from __future__ import annotations

import asyncio
import logging
import random
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable, Optional

from playwright.async_api import (
    Browser,
    BrowserContext,
    Page,
    Playwright,
    Route,
    async_playwright,
)
from playwright.async_api import Error as PlaywrightError

from trendwatch.crawler.errors import BrowserLaunchError
from trendwatch.crawler.stealth import RegionProfile, build_stealth_js
from trendwatch.utils.retry import RetryConfig, retry_call

from .constants import (
    BLOCKED_RESOURCE_TYPES,
    CHROMIUM_ARGS,
    CLOSE_TIMEOUT_S,
    SCROLL_JITTER_MS,
    SCROLL_STEP_PX,
)
from .interceptor import FeedInterceptor

logger = logging.getLogger(__name__)


class TikTokBrowserSession:
    """Async context manager for a stealth Playwright session on TikTok.

    Usage:
        async with TikTokBrowserSession(profile) as session:
            await session.goto("https://www.tiktok.com/explore?lang=en")
            payloads = session.interceptor.payloads
    """

    def __init__(
        self,
        profile: RegionProfile,
        *,
        headless: bool = True,
        navigation_timeout_ms: int = 45000,
        scroll_steps: int = 12,
        scroll_wait_ms: int = 900,
    ) -> None:
        self.profile = profile
        self.headless = headless
        self.navigation_timeout_ms = navigation_timeout_ms
        self.scroll_steps = scroll_steps
        self.scroll_wait_ms = scroll_wait_ms

        # Set by start()
        self.browser: Browser | None = None
        self.context: BrowserContext | None = None
        self.page: Page | None = None
        self.interceptor = FeedInterceptor()

        self._pw: Playwright | None = None
        self._closed = False

    async def __aenter__(self) -> TikTokBrowserSession:
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def start(self) -> None:
        """Launch browser, context and main page.

        A partially started session is torn down before the error propagates.
        """
        try:
            self._pw = await async_playwright().start()
            self.browser = await self._pw.chromium.launch(
                headless=self.headless,
                args=[
                    *CHROMIUM_ARGS,
                    f"--window-size={self.profile.viewport_width},{self.profile.viewport_height}",
                ],
            )

            # Every field must be consistent with the region profile.
            self.context = await self.browser.new_context(
                viewport={"width": self.profile.viewport_width, "height": self.profile.viewport_height},
                user_agent=self.profile.ua.user_agent,
                locale=self.profile.locale,
                timezone_id=self.profile.timezone_id,
                geolocation=self.profile.geolocation,
                permissions=["geolocation"],
                has_touch=True,
                device_scale_factor=1,
                extra_http_headers={
                    "Accept-Language": self.profile.accept_language,
                    "Sec-CH-UA": self.profile.ua.sec_ch_ua,
                    "Sec-CH-UA-Mobile": self.profile.ua.sec_ch_ua_mobile,
                    "Sec-CH-UA-Platform": self.profile.ua.sec_ch_ua_platform,
                },
            )
            self.context.set_default_navigation_timeout(self.navigation_timeout_ms)
            await self.context.add_init_script(build_stealth_js(self.profile))

            self.page = await self.context.new_page()
            self.page.set_default_timeout(self.navigation_timeout_ms)
            self.page.on("response", self.interceptor.on_response)
        except BaseException:
            await self.close()
            raise

        logger.info(
            "Browser session opened (region=%s, locale=%s, ua=%s)",
            self.profile.region,
            self.profile.locale,
            self.profile.ua.user_agent[:50] + "...",
        )

    async def close(self) -> None:
        """Close page, context, browser and Playwright. Idempotent, never raises."""
        if self._closed:
            return
        self._closed = True

        for name, closer in (
            ("context", self.context.close if self.context else None),
            ("browser", self.browser.close if self.browser else None),
            ("playwright", self._pw.stop if self._pw else None),
        ):
            if closer is None:
                continue
            try:
                await asyncio.wait_for(closer(), timeout=CLOSE_TIMEOUT_S)
            except (PlaywrightError, asyncio.TimeoutError, OSError) as e:
                logger.warning("Failed to close %s: %s", name, e)

        logger.info("Browser session closed")

    @property
    def closed(self) -> bool:
        return self._closed

    # ──────────────────────────────────────
    # Navigation helpers
    # ──────────────────────────────────────

    async def goto(self, url: str) -> None:
        """Navigate the main page; bounded by the navigation timeout."""
        assert self.page is not None
        await self.page.goto(url, wait_until="domcontentloaded", timeout=self.navigation_timeout_ms)

    async def scroll_to_load(self) -> None:
        """Wheel down in steps with jittered waits to trigger lazy loading."""
        assert self.page is not None
        for _ in range(self.scroll_steps):
            await self.page.mouse.wheel(0, SCROLL_STEP_PX)
            await self.page.wait_for_timeout(self.scroll_wait_ms + random.random() * SCROLL_JITTER_MS)

    async def random_delay(self, min_s: float, max_s: float) -> None:
        """Wait a random duration to break up request bursts."""
        await asyncio.sleep(random.uniform(min_s, max_s))

    async def get_page_title(self) -> str:
        assert self.page is not None
        return await self.page.title()

    async def get_page_url(self) -> str:
        """Current page URL (useful to detect redirects to a challenge)."""
        assert self.page is not None
        return self.page.url

    @asynccontextmanager
    async def light_page(self) -> AsyncIterator[Page]:
        """A short-lived extra page that skips images, media, fonts and CSS."""
        assert self.context is not None
        page = await self.context.new_page()
        try:
            page.set_default_timeout(self.navigation_timeout_ms)
            await page.route("**/*", _block_heavy_resources)
            yield page
        finally:
            try:
                await page.close()
            except PlaywrightError as e:
                logger.debug("Failed to close enrichment page: %s", e)


async def _block_heavy_resources(route: Route) -> None:
    if route.request.resource_type in BLOCKED_RESOURCE_TYPES:
        await route.abort()
    else:
        await route.continue_()


SessionFactory = Callable[[], TikTokBrowserSession]


class BrowserSessionManager:
    """Opens sessions with bounded retry and guarantees they are closed.

    Usage:
        manager = BrowserSessionManager(lambda: TikTokBrowserSession(profile))
        async with manager.session() as session:
            ...
    """

    def __init__(
        self,
        factory: SessionFactory,
        *,
        max_attempts: int = 3,
        retry_delay: float = 2.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.factory = factory
        self.retry = RetryConfig(
            max_attempts=max_attempts,
            delay=retry_delay,
            backoff="linear",
            exceptions=(PlaywrightError, asyncio.TimeoutError, OSError),
        )
        self._sleep = sleep

    async def _start_one(self) -> TikTokBrowserSession:
        session = self.factory()
        await session.start()
        return session

    async def open(self) -> TikTokBrowserSession:
        """Start a session, retrying with linear backoff.

        Raises:
            BrowserLaunchError: If every attempt failed.
        """
        try:
            return await retry_call(self._start_one, config=self.retry, sleep=self._sleep)
        except self.retry.exceptions as e:
            raise BrowserLaunchError(
                f"Browser failed to start after {self.retry.max_attempts} attempts: {e}"
            ) from e

    async def close(self, session: Optional[TikTokBrowserSession]) -> None:
        if session is not None:
            await session.close()

    @asynccontextmanager
    async def session(self) -> AsyncIterator[TikTokBrowserSession]:
        """Open a session and close it on every exit path, cancellation included."""
        session = await self.open()
        try:
            yield session
        finally:
            await self.close(session)


def make_session_factory(profile: RegionProfile, **options: Any) -> SessionFactory:
    """Bind a region profile and crawler options into a session factory."""
    return lambda: TikTokBrowserSession(profile, **options)
