"""Crawler error hierarchy.

Every error carries a machine-readable ``kind`` that the API returns as the
``error`` field of a failure body.
"""


class CrawlerError(Exception):
    """Base error for crawler operations."""

    kind = "crawler_error"


class BrowserLaunchError(CrawlerError):
    """Browser process or context could not be started after retries."""

    kind = "browser_launch_failed"


class NavigationError(CrawlerError):
    """A page navigation failed or timed out."""

    kind = "navigation_failed"


class ChallengeDetectedError(CrawlerError):
    """The target served a bot-verification page instead of content."""

    kind = "challenge_detected"

    def __init__(self, url: str, indicator: str) -> None:
        self.url = url
        self.indicator = indicator
        super().__init__(f"Bot challenge on {url} (matched {indicator!r})")


class ParseError(CrawlerError):
    """Raw page state or payload could not be parsed."""

    kind = "parse_failed"


class ScrapeTimeoutError(CrawlerError):
    """The whole scrape exceeded the request timeout."""

    kind = "scrape_timeout"

    def __init__(self, timeout: float) -> None:
        self.timeout = timeout
        super().__init__(f"Scrape did not finish within {timeout:.0f}s")


class ScrapeFailedError(CrawlerError):
    """Unexpected failure while scraping."""

    kind = "scrape_failed"
