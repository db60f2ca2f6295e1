import pytest
from conftest import FakeClock, make_record
from fastapi.testclient import TestClient

from trendwatch.api.deps import get_cache, get_service
from trendwatch.api.main import app
from trendwatch.config import Settings
from trendwatch.crawler.base import BaseCrawler
from trendwatch.crawler.errors import BrowserLaunchError
from trendwatch.services.trending_service import TrendingService
from trendwatch.utils.ttl_cache import TTLCache


class CannedCrawler(BaseCrawler):
    platform = "fake"

    def __init__(self, records=None, error=None):
        self.records = records or []
        self.error = error
        self.limits = []

    async def scrape(self, limit):
        self.limits.append(limit)
        if self.error is not None:
            raise self.error
        return list(self.records)

    async def diagnose(self):
        return {
            "url": "https://www.tiktok.com/explore?lang=en",
            "title": "Explore | TikTok",
            "page_loaded": True,
            "has_structured_state": True,
            "challenge": False,
            "link_count": 2,
            "first_links": ["https://www.tiktok.com/@a/video/1"],
            "error": None,
        }


@pytest.fixture
def crawler():
    return CannedCrawler([make_record(str(i), likes=i) for i in range(3)])


@pytest.fixture
def client(crawler):
    clock = FakeClock()
    cache = TTLCache(ttl_seconds=900, clock=clock)
    service = TrendingService(cache, settings=Settings(), crawler_factory=lambda region: crawler, clock=clock)
    app.dependency_overrides[get_service] = lambda: service
    app.dependency_overrides[get_cache] = lambda: cache
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def test_index(client):
    response = client.get("/")

    assert response.status_code == 200
    assert response.json()["ok"] is True
    assert "/health" in response.json()["routes"]


def test_trending_shape(client):
    response = client.get("/trending?limit=2")

    assert response.status_code == 200
    body = response.json()
    assert len(body["videos"]) == 2
    video = body["videos"][0]
    assert video["video_url"].startswith("https://www.tiktok.com/@")
    assert {"video_id", "author_username", "hashtags", "views", "likes", "comments", "shares",
            "published_at", "engagement_rate", "score", "hours_since_post", "source"} <= set(video)
    metadata = body["metadata"]
    assert metadata["limit"] == 2
    assert metadata["returned"] == 2
    assert metadata["total_found"] == 3
    assert metadata["cached"] is False
    assert metadata["region"] == "it"
    assert metadata["scraped_at"]


@pytest.mark.parametrize("query, expected", [("", 50), ("?limit=0", 1), ("?limit=-7", 1), ("?limit=1000", 100)])
def test_limit_is_clamped(client, crawler, query, expected):
    response = client.get(f"/trending{query}")

    assert response.status_code == 200
    assert response.json()["metadata"]["limit"] == expected
    assert crawler.limits == [expected]


def test_second_request_is_cached(client, crawler):
    client.get("/trending?limit=5")
    response = client.get("/trending?limit=5")

    assert response.json()["metadata"]["cached"] is True
    assert crawler.limits == [5]


def test_invalid_region(client):
    response = client.get("/trending?region=zz")

    assert response.status_code == 400
    assert response.json()["error"] == "invalid_region"


def test_scrape_failure_body(client, crawler):
    crawler.error = BrowserLaunchError("Browser failed to start after 3 attempts")

    response = client.get("/trending")

    assert response.status_code == 500
    assert response.json() == {
        "error": "browser_launch_failed",
        "message": "Browser failed to start after 3 attempts",
    }


def test_unexpected_failure_body(client, crawler):
    crawler.error = RuntimeError("boom")

    response = client.get("/trending")

    assert response.status_code == 500
    assert response.json()["error"] == "scrape_failed"
    assert "Traceback" not in response.text


def test_empty_result_is_ok(client, crawler):
    crawler.records = []

    response = client.get("/trending")

    assert response.status_code == 200
    assert response.json()["videos"] == []
    assert response.json()["metadata"]["total_found"] == 0


def test_health_reports_cache(client):
    client.get("/trending?limit=5")

    body = client.get("/health").json()

    assert body["status"] == "ok"
    assert body["cache_size"] == 1
    assert body["cache"]["ttl_seconds"] == 900.0


def test_debug(client):
    response = client.get("/debug")

    assert response.status_code == 200
    assert response.json()["page_loaded"] is True
    assert response.json()["link_count"] == 2


class TestApiKey:
    @pytest.fixture(autouse=True)
    def api_key(self, monkeypatch):
        monkeypatch.setenv("API_KEY", "s3cret")

    def test_missing_key_rejected(self, client, crawler):
        response = client.get("/trending")

        assert response.status_code == 401
        assert response.json()["error"] == "unauthorized"
        assert crawler.limits == []

    def test_wrong_key_rejected(self, client):
        assert client.get("/debug", headers={"X-API-Key": "nope"}).status_code == 401

    def test_correct_key_accepted(self, client):
        assert client.get("/trending", headers={"X-API-Key": "s3cret"}).status_code == 200

    def test_custom_header_name(self, client, monkeypatch):
        monkeypatch.setenv("API_KEY_HEADER", "X-Trend-Token")

        assert client.get("/trending", headers={"X-API-Key": "s3cret"}).status_code == 401
        assert client.get("/trending", headers={"X-Trend-Token": "s3cret"}).status_code == 200

    def test_health_and_index_stay_open(self, client):
        assert client.get("/health").status_code == 200
        assert client.get("/").status_code == 200
