"""Shared fixtures and Playwright stand-ins. No browser is started in tests."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import pytest
from playwright.async_api import Error as PlaywrightError

from trendwatch.config import reload_settings
from trendwatch.crawler.base import ExtractionSource, VideoRecord
from trendwatch.crawler.tiktok.interceptor import FeedInterceptor

NOW = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)


def make_record(
    video_id: str,
    *,
    source: ExtractionSource = ExtractionSource.STRUCTURED_STATE,
    author: str = "creator",
    hours_ago: Optional[float] = 2.0,
    **fields: Any,
) -> VideoRecord:
    fields.setdefault("video_url", f"https://www.tiktok.com/@{author}/video/{video_id}")
    if hours_ago is not None:
        fields.setdefault("published_at", (NOW - timedelta(hours=hours_ago)).isoformat())
    return VideoRecord(video_id=video_id, author_username=author, source=source, **fields)


def sigi_state(*items: dict[str, Any], music: Optional[dict[str, Any]] = None) -> dict[str, Any]:
    state: dict[str, Any] = {"ItemModule": {item["id"]: item for item in items}}
    if music:
        state["MusicModule"] = music
    return state


def raw_item(video_id: str, *, author: str = "creator", plays: int = 1000, likes: int = 100,
             create_time: Optional[int] = None, desc: str = "clip #fyp") -> dict[str, Any]:
    return {
        "id": video_id,
        "desc": desc,
        "createTime": create_time if create_time is not None else int((NOW - timedelta(hours=3)).timestamp()),
        "author": {"uniqueId": author},
        "stats": {"playCount": plays, "diggCount": likes, "commentCount": 10, "shareCount": 5},
        "video": {"duration": 15, "cover": f"https://p16.tiktokcdn.com/{video_id}.jpeg"},
        "music": {"title": "original sound", "authorName": author},
    }


class FakeClock:
    def __init__(self, now: datetime = NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class FakeLocator:
    def __init__(self, visible: bool = False, fail: bool = False) -> None:
        self.visible = visible
        self.fail = fail
        self.clicks = 0

    @property
    def first(self) -> FakeLocator:
        return self

    async def is_visible(self) -> bool:
        return self.visible

    async def click(self, **kwargs: Any) -> None:
        if self.fail:
            raise PlaywrightError("Element is not attached to the DOM")
        self.clicks += 1


class FakeFrame:
    def __init__(self, buttons: Optional[dict[str, FakeLocator]] = None) -> None:
        self.buttons = buttons or {}

    def locator(self, selector: str) -> FakeLocator:
        return self.buttons.setdefault(selector, FakeLocator())


class FakeMouse:
    def __init__(self) -> None:
        self.wheels: list[tuple[int, int]] = []

    async def wheel(self, dx: int, dy: int) -> None:
        self.wheels.append((dx, dy))


class FakePage:
    """Answers page.evaluate() by script kind: "state" or "links".

    Each kind holds a queue of results; the last one is repeated. An
    Exception in the queue is raised instead of returned.
    """

    def __init__(
        self,
        *,
        url: str = "https://www.tiktok.com/explore?lang=en",
        title: str = "Explore | TikTok",
        state: Optional[list[Any]] = None,
        links: Optional[list[Any]] = None,
        frames: Optional[list[FakeFrame]] = None,
    ) -> None:
        self.url = url
        self._title = title
        self.results: dict[str, list[Any]] = {"state": list(state or []), "links": list(links or [])}
        self.frames = frames if frames is not None else [FakeFrame()]
        self.mouse = FakeMouse()
        self.evaluations: list[str] = []
        self.waits: list[float] = []
        self.gotos: list[str] = []

    async def title(self) -> str:
        return self._title

    async def evaluate(self, script: str) -> Any:
        kind = "state" if "SIGI_STATE" in script else "links"
        self.evaluations.append(kind)
        queue = self.results[kind]
        if not queue:
            return None
        result = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(result, Exception):
            raise result
        return result

    async def wait_for_timeout(self, ms: float) -> None:
        self.waits.append(ms)

    async def goto(self, url: str, **kwargs: Any) -> None:
        self.gotos.append(url)
        self.url = url


class FakeSession:
    """Stands in for TikTokBrowserSession.

    ``pages`` maps URL → page shown after goto; URLs in ``failing`` raise a
    Playwright error. ``detail_states`` maps video URL → state documents
    served on enrichment pages; with ``detail_consent`` each enrichment page
    shows a consent button.
    """

    def __init__(
        self,
        pages: Optional[dict[str, FakePage]] = None,
        *,
        failing: tuple[str, ...] = (),
        detail_states: Optional[dict[str, list[Any]]] = None,
        detail_consent: bool = False,
    ) -> None:
        self.pages = pages or {}
        self.failing = set(failing)
        self.detail_states = detail_states or {}
        self.detail_consent = detail_consent
        self.consent_buttons: list[FakeLocator] = []
        self.page = FakePage(url="about:blank")
        self.interceptor = FeedInterceptor()
        self.visited: list[str] = []
        self.delays: list[tuple[float, float]] = []
        self.scrolls = 0
        self.light_pages = 0
        self.max_open_light_pages = 0
        self._open_light_pages = 0
        self.close_calls = 0

    async def start(self) -> None:
        pass

    async def close(self) -> None:
        self.close_calls += 1

    async def goto(self, url: str) -> None:
        self.visited.append(url)
        if url in self.failing:
            raise PlaywrightError("net::ERR_CONNECTION_RESET")
        self.page = self.pages.get(url) or FakePage(url=url)

    async def get_page_title(self) -> str:
        return await self.page.title()

    async def get_page_url(self) -> str:
        return self.page.url

    async def random_delay(self, min_s: float, max_s: float) -> None:
        self.delays.append((min_s, max_s))

    async def scroll_to_load(self) -> None:
        self.scrolls += 1

    @asynccontextmanager
    async def light_page(self):
        self.light_pages += 1
        self._open_light_pages += 1
        self.max_open_light_pages = max(self.max_open_light_pages, self._open_light_pages)
        page = _DetailPage(self.detail_states)
        if self.detail_consent:
            button = FakeLocator(visible=True)
            self.consent_buttons.append(button)
            page.frames = [FakeFrame({'button:has-text("Accept all")': button})]
        try:
            # let sibling enrichment tasks open their pages
            await asyncio.sleep(0)
            yield page
        finally:
            self._open_light_pages -= 1


class _DetailPage(FakePage):
    def __init__(self, detail_states: dict[str, list[Any]]) -> None:
        super().__init__(url="about:blank")
        self.detail_states = detail_states

    async def goto(self, url: str, **kwargs: Any) -> None:
        await super().goto(url)
        self.results["state"] = [self.detail_states.get(url, [])]


class FakeSessionManager:
    """Yields a prepared session; records how often it was closed."""

    def __init__(self, session: Any = None, error: Optional[Exception] = None) -> None:
        self._session = session
        self._error = error
        self.opened = 0

    @asynccontextmanager
    async def session(self):
        if self._error is not None:
            raise self._error
        self.opened += 1
        try:
            yield self._session
        finally:
            await self._session.close()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Isolate tests from the developer's environment and cached settings."""
    for name in ("API_KEY", "API_KEY_HEADER", "TRENDING_REGION", "TRENDING_REQUEST_TIMEOUT_SECONDS", "LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)
    reload_settings()
    yield
    reload_settings()
