"""trendwatch: TikTok trending-video scraper with a small HTTP API."""

__version__ = "0.1.0"
