import asyncio

import pytest
from playwright.async_api import Error as PlaywrightError

from trendwatch.crawler.errors import BrowserLaunchError
from trendwatch.crawler.stealth import get_region_profile
from trendwatch.crawler.tiktok import browser as browser_module
from trendwatch.crawler.tiktok.browser import (
    BrowserSessionManager,
    TikTokBrowserSession,
    _block_heavy_resources,
    make_session_factory,
)


class StubSession:
    def __init__(self, fail=False):
        self.fail = fail
        self.close_calls = 0

    async def start(self):
        if self.fail:
            raise PlaywrightError("Browser closed unexpectedly")

    async def close(self):
        self.close_calls += 1


class Factory:
    """Hands out sessions whose start() fails for the first ``failures`` calls."""

    def __init__(self, failures):
        self.failures = failures
        self.created = []

    def __call__(self):
        session = StubSession(fail=len(self.created) < self.failures)
        self.created.append(session)
        return session


class Sleeps:
    def __init__(self):
        self.calls = []

    async def __call__(self, seconds):
        self.calls.append(seconds)


@pytest.mark.asyncio
async def test_launch_retried_with_linear_backoff():
    factory, sleep = Factory(failures=2), Sleeps()
    manager = BrowserSessionManager(factory, max_attempts=3, retry_delay=2.0, sleep=sleep)

    session = await manager.open()

    assert session is factory.created[-1]
    assert len(factory.created) == 3
    assert sleep.calls == [2.0, 4.0]


@pytest.mark.asyncio
async def test_launch_error_after_max_attempts():
    factory, sleep = Factory(failures=10), Sleeps()
    manager = BrowserSessionManager(factory, max_attempts=3, retry_delay=1.0, sleep=sleep)

    with pytest.raises(BrowserLaunchError, match="after 3 attempts") as exc_info:
        await manager.open()

    assert exc_info.value.kind == "browser_launch_failed"
    assert len(factory.created) == 3
    assert sleep.calls == [1.0, 2.0]


@pytest.mark.asyncio
async def test_session_closed_once_on_success():
    factory = Factory(failures=0)
    manager = BrowserSessionManager(factory, sleep=Sleeps())

    async with manager.session():
        pass

    assert factory.created[0].close_calls == 1


@pytest.mark.asyncio
async def test_session_closed_once_on_error():
    factory = Factory(failures=0)
    manager = BrowserSessionManager(factory, sleep=Sleeps())

    with pytest.raises(RuntimeError):
        async with manager.session():
            raise RuntimeError("extraction blew up")

    assert factory.created[0].close_calls == 1


@pytest.mark.asyncio
async def test_session_closed_once_on_cancellation():
    factory = Factory(failures=0)
    manager = BrowserSessionManager(factory, sleep=Sleeps())

    async def long_scrape():
        async with manager.session():
            await asyncio.sleep(10)

    with pytest.raises(asyncio.TimeoutError):
        await asyncio.wait_for(long_scrape(), timeout=0.01)

    assert factory.created[0].close_calls == 1


class FakeBrowser:
    def __init__(self):
        self.closed = 0

    async def new_context(self, **kwargs):
        await asyncio.sleep(10)

    async def close(self):
        self.closed += 1


class FakeDriver:
    """Stands in for async_playwright(): launches a browser whose context never comes up."""

    def __init__(self):
        self.browser = FakeBrowser()
        self.chromium = self
        self.stopped = 0

    async def start(self):
        return self

    async def launch(self, **kwargs):
        return self.browser

    async def stop(self):
        self.stopped += 1


@pytest.mark.asyncio
async def test_timeout_during_start_closes_browser_and_driver(monkeypatch):
    driver = FakeDriver()
    monkeypatch.setattr(browser_module, "async_playwright", lambda: driver)
    manager = BrowserSessionManager(make_session_factory(get_region_profile("it")), sleep=Sleeps())

    async def scrape():
        async with manager.session():
            pass

    with pytest.raises(asyncio.TimeoutError):
        await asyncio.wait_for(scrape(), timeout=0.05)

    assert driver.browser.closed == 1
    assert driver.stopped == 1


@pytest.mark.asyncio
async def test_unstarted_session_close_is_idempotent():
    session = TikTokBrowserSession(get_region_profile("it"))

    await session.close()
    await session.close()

    assert session.closed is True


class FakeRoute:
    def __init__(self, resource_type):
        self.request = type("Request", (), {"resource_type": resource_type})()
        self.action = None

    async def abort(self):
        self.action = "abort"

    async def continue_(self):
        self.action = "continue"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "resource_type, action",
    [("image", "abort"), ("media", "abort"), ("font", "abort"), ("stylesheet", "abort"),
     ("document", "continue"), ("script", "continue"), ("xhr", "continue")],
)
async def test_light_pages_block_heavy_resources(resource_type, action):
    route = FakeRoute(resource_type)

    await _block_heavy_resources(route)

    assert route.action == action


class UnroutablePage:
    def __init__(self):
        self.closed = 0

    def set_default_timeout(self, ms):
        pass

    async def route(self, pattern, handler):
        raise PlaywrightError("Target page, context or browser has been closed")

    async def close(self):
        self.closed += 1


class OnePageContext:
    def __init__(self, page):
        self.page = page

    async def new_page(self):
        return self.page


@pytest.mark.asyncio
async def test_light_page_closed_when_routing_fails():
    page = UnroutablePage()
    session = TikTokBrowserSession(get_region_profile("it"))
    session.context = OnePageContext(page)

    with pytest.raises(PlaywrightError):
        async with session.light_page():
            pass

    assert page.closed == 1
