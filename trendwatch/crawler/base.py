"""Base crawler types and classes.

All crawler implementations should:
1. Return ``VideoRecord`` objects with the ``source`` tag of the strategy
   that produced them
2. Keep counters as non-negative integers (0 when unknown)
3. Derive ``video_url`` from author + id when the page does not expose it
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Optional, Self

from pydantic import BaseModel, Field, field_validator


class ExtractionSource(str, Enum):
    """Which extraction strategy produced a record."""

    STRUCTURED_STATE = "structured_state"
    NETWORK_INTERCEPT = "network_intercept"
    DOM_SCRAPE = "dom_scrape"

    @property
    def priority(self) -> int:
        """Higher wins when the same video is found by several strategies."""
        return _SOURCE_PRIORITY[self]


_SOURCE_PRIORITY = {
    ExtractionSource.STRUCTURED_STATE: 3,
    ExtractionSource.NETWORK_INTERCEPT: 2,
    ExtractionSource.DOM_SCRAPE: 1,
}

MAX_HASHTAGS = 10


class VideoRecord(BaseModel):
    """Canonical video metadata.

    Attributes:
        video_id: Platform video id, used as dedup key
        video_url: Canonical URL without query string
        author_username: Author handle without "@"
        caption: Video description (possibly empty)
        hashtags: Up to 10 hashtags from the caption, first-seen order
        sound_title: Sound/music title ("" when unknown)
        sound_artist: Sound/music author ("" when unknown)
        views: Play count
        likes: Like ("digg") count
        comments: Comment count
        shares: Share count
        duration_sec: Video duration in seconds
        published_at: ISO-8601 UTC publish time
        thumbnail_url: Cover image URL
        engagement_rate: (likes + comments + shares) / views * 100, informational
        source: Strategy that produced the record
        score: Ranking score, set by the ranking engine
        hours_since_post: Age at ranking time, set by the ranking engine
    """

    video_id: str = Field(min_length=1)
    video_url: str = ""
    author_username: str = ""
    caption: str = ""
    hashtags: list[str] = Field(default_factory=list, max_length=MAX_HASHTAGS)
    sound_title: str = ""
    sound_artist: str = ""
    views: int = Field(default=0, ge=0)
    likes: int = Field(default=0, ge=0)
    comments: int = Field(default=0, ge=0)
    shares: int = Field(default=0, ge=0)
    duration_sec: Optional[float] = Field(default=None, ge=0)
    published_at: Optional[str] = None
    thumbnail_url: Optional[str] = None
    engagement_rate: Optional[float] = None
    source: ExtractionSource
    score: Optional[float] = None
    hours_since_post: Optional[float] = None

    @field_validator("hashtags")
    @classmethod
    def unique_hashtags(cls, v: list[str]) -> list[str]:
        if len(set(v)) != len(v):
            raise ValueError("hashtags must be unique")
        return v

    @property
    def total_interactions(self) -> int:
        """Raw likes + comments + shares, used for backfill ordering."""
        return self.likes + self.comments + self.shares


class BaseCrawler(ABC):
    """Base class for all crawlers.

    All crawlers must set the `platform` attribute to identify the platform.
    """

    platform: str = "unknown"  # Subclasses must override

    @abstractmethod
    async def scrape(self, limit: int) -> list[VideoRecord]:
        """Collect candidate videos; ``limit`` is a hint for how many are wanted."""
        pass

    @abstractmethod
    async def diagnose(self) -> dict[str, Any]:
        """Run one diagnostic page load. Must not raise."""
        pass

    async def __aenter__(self) -> Self:
        """Default async context manager entry - subclasses can override."""
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object | None,
    ) -> None:
        """Default async context manager exit - subclasses can override."""
        pass
