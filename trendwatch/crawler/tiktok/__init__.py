"""TikTok crawler. Importing this package registers it under "tiktok"."""

from trendwatch.crawler.registry import register_crawler

from .scraper import TikTokCrawler

register_crawler(TikTokCrawler.platform, TikTokCrawler)

__all__ = ["TikTokCrawler"]
