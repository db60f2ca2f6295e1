"""Shared dependencies for API endpoints."""

import hmac
import logging

from fastapi import Request

from trendwatch.config import get_settings
from trendwatch.services.trending_service import TrendingService
from trendwatch.utils.ttl_cache import TTLCache

logger = logging.getLogger(__name__)

_cache: TTLCache | None = None
_service: TrendingService | None = None


class ApiKeyError(Exception):
    """Missing or wrong API key."""


async def init_deps() -> None:
    """Initialize shared dependencies (called on app startup)."""
    global _cache, _service
    settings = get_settings()
    _cache = TTLCache(ttl_seconds=settings.trending.cache_ttl_seconds)
    _service = TrendingService(_cache, settings=settings)
    logger.info(
        "API ready (region=%s, cache ttl=%ss, api key %s)",
        settings.trending.region,
        settings.trending.cache_ttl_seconds,
        "enabled" if settings.api.key else "disabled",
    )


async def close_deps() -> None:
    """Close shared dependencies (called on app shutdown)."""
    global _cache, _service
    if _cache is not None:
        _cache.clear()
    _cache = None
    _service = None


def get_cache() -> TTLCache:
    """Get the shared result cache."""
    assert _cache is not None, "Cache not initialized, call init_deps() first"
    return _cache


def get_service() -> TrendingService:
    """Get the shared TrendingService."""
    assert _service is not None, "TrendingService not initialized, call init_deps() first"
    return _service


async def require_api_key(request: Request) -> None:
    """Reject the request unless it carries the configured API key.

    A no-op when no key is configured.
    """
    api = get_settings().api
    if not api.key:
        return
    provided = request.headers.get(api.key_header, "")
    if not hmac.compare_digest(provided.encode(), api.key.encode()):
        raise ApiKeyError(f"Missing or invalid {api.key_header} header")
