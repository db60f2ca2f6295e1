import pytest
from pydantic import ValidationError

from trendwatch.config import CrawlerSettings, Settings, TrendingSettings, get_settings, reload_settings


def test_defaults():
    settings = Settings()

    assert settings.log_level == "INFO"
    assert settings.crawler.headless is True
    assert settings.crawler.navigation_timeout_ms == 45000
    assert settings.crawler.max_retries == 3
    assert settings.crawler.enrich_batch_size == 6
    assert settings.trending.default_limit == 50
    assert settings.trending.max_limit == 100
    assert settings.trending.cache_ttl_seconds == 900
    assert settings.trending.region == "it"
    assert settings.api.key is None
    assert settings.api.key_header == "X-API-Key"


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("CRAWLER_HEADLESS", "false")
    monkeypatch.setenv("TRENDING_CACHE_TTL_SECONDS", "60")
    monkeypatch.setenv("TRENDING_REGION", "US")
    monkeypatch.setenv("API_KEY", "s3cret")

    settings = Settings()

    assert settings.crawler.headless is False
    assert settings.trending.cache_ttl_seconds == 60
    assert settings.trending.region == "us"
    assert settings.api.key == "s3cret"


def test_unknown_region_rejected():
    with pytest.raises(ValidationError, match="Unknown region"):
        TrendingSettings(region="zz")


def test_delay_bounds_validated():
    with pytest.raises(ValidationError, match="inter_url_delay_max"):
        CrawlerSettings(inter_url_delay_min=5.0, inter_url_delay_max=1.0)


def test_reload_settings(monkeypatch):
    before = get_settings()
    assert get_settings() is before

    monkeypatch.setenv("LOG_LEVEL", "DEBUG")
    after = reload_settings()

    assert after is not before
    assert after.log_level == "DEBUG"
