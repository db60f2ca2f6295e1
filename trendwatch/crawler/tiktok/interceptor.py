"""Feed API response interceptor for TikTok.

While a page loads and scrolls, TikTok's web client fetches video batches
from endpoints like:
    /api/recommend/item_list/?aid=1988&count=30&...
    /api/explore/item_list/?...

This interceptor keeps the JSON bodies of those responses so the
network-intercept strategy can map them without touching the DOM.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol
from urllib.parse import urlsplit

from .constants import FEED_API_PATTERNS

logger = logging.getLogger(__name__)

# Bound memory when a page keeps paginating
MAX_CAPTURED_PAYLOADS = 200


class _Response(Protocol):
    url: str
    status: int

    async def json(self) -> Any: ...


def is_feed_api_url(url: str) -> bool:
    """True if the URL path matches a known feed/recommendation endpoint."""
    path = urlsplit(url).path
    return any(pattern in path for pattern in FEED_API_PATTERNS)


class FeedInterceptor:
    """Captures TikTok feed API responses from Playwright.

    Usage:
        interceptor = FeedInterceptor()
        page.on("response", interceptor.on_response)

        # Navigate / scroll...

        for payload in interceptor.payloads:
            ...
    """

    def __init__(self, max_payloads: int = MAX_CAPTURED_PAYLOADS) -> None:
        self._payloads: list[Any] = []
        self._max_payloads = max_payloads
        self.blocked_statuses: list[int] = []

    async def on_response(self, response: _Response) -> None:
        """Playwright response handler. Attach via page.on("response", ...).

        NOTE: Exceptions raised inside Playwright event handlers are swallowed,
        so every failure here is logged and ignored.
        """
        url = response.url
        if not is_feed_api_url(url):
            return

        status = response.status
        if status in (403, 429):
            logger.warning("Feed API returned %d for %s", status, urlsplit(url).path)
            self.blocked_statuses.append(status)
            return
        if status != 200:
            logger.debug("Ignoring feed API status %d for %s", status, urlsplit(url).path)
            return

        try:
            body = await response.json()
        except Exception:
            # Empty bodies and non-JSON anti-bot responses land here
            logger.debug("Failed to parse JSON from %s", urlsplit(url).path)
            return

        if len(self._payloads) >= self._max_payloads:
            logger.debug("Payload cap (%d) reached, dropping capture", self._max_payloads)
            return

        self._payloads.append(body)
        logger.debug("Captured feed payload from %s (%d total)", urlsplit(url).path, len(self._payloads))

    @property
    def payloads(self) -> list[Any]:
        """Captured JSON bodies, oldest first."""
        return list(self._payloads)

    def clear(self) -> None:
        """Forget captured payloads (called before each candidate URL)."""
        self._payloads.clear()
        self.blocked_statuses.clear()
