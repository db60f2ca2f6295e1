"""Record mapper: turns raw TikTok state/payload JSON into VideoRecords.

TikTok ships item data in several shapes depending on page type, build and
API endpoint:

- SIGI state:        {"ItemModule": {"<id>": {...}}, "MusicModule": {...}}
- Next.js props:     {"props": {"pageProps": {"itemModule": {...}}}}
- Rehydration blob:  {"__DEFAULT_SCOPE__": {"webapp.video-detail":
                        {"itemInfo": {"itemStruct": {...}}}}}
- Web API payloads:  {"itemList": [...]} / {"items": [...]}
- Mobile payloads:   {"aweme_list": [...]} with snake_case fields

Nothing about the shape is assumed: every field is read through ``_get`` with
an explicit default and validated only when the VideoRecord is built.
"""

from __future__ import annotations

import logging
import math
from typing import Any

from pydantic import ValidationError

from trendwatch.crawler.base import ExtractionSource, VideoRecord
from trendwatch.crawler.errors import ParseError

from .constants import (
    ITEM_MODULE_KEYS,
    PAYLOAD_LIST_FIELDS,
    UNIVERSAL_SCOPE_KEY,
    VIDEO_DETAIL_KEY,
)
from .normalize import (
    canonical_video_url,
    extract_hashtags,
    parse_count_with_suffix,
    to_iso_timestamp,
)

logger = logging.getLogger(__name__)


def _get(obj: Any, *path: str, default: Any = None) -> Any:
    """Walk nested dicts; any missing or non-dict step yields ``default``."""
    current = obj
    for key in path:
        if not isinstance(current, dict):
            return default
        current = current.get(key)
        if current is None:
            return default
    return current


def _first(obj: Any, *keys: str, default: Any = None) -> Any:
    """First non-empty value among alternative key names."""
    if not isinstance(obj, dict):
        return default
    for key in keys:
        value = obj.get(key)
        if value not in (None, "", [], {}):
            return value
    return default


def _as_items(collection: Any) -> list[dict[str, Any]]:
    if isinstance(collection, dict):
        return [v for v in collection.values() if isinstance(v, dict)]
    if isinstance(collection, list):
        return [v for v in collection if isinstance(v, dict)]
    return []


def _to_count(value: Any) -> int:
    """Counter from int, float, numeric string or "1.2M"; never negative."""
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, float) and not math.isfinite(value):
        return 0
    if isinstance(value, (int, float)):
        return max(int(value), 0)
    if isinstance(value, str):
        stripped = value.strip()
        if stripped.isdigit():
            return int(stripped)
        return parse_count_with_suffix(stripped)
    return 0


def _to_duration(value: Any, *, milliseconds: bool = False) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        duration = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(duration) or duration < 0:
        return None
    if milliseconds:
        duration = duration / 1000
    return duration


def engagement_rate(likes: int, comments: int, shares: int, views: int) -> float:
    """(likes + comments + shares) / max(views, 1) * 100, rounded to 2 decimals."""
    return round((likes + comments + shares) / max(views, 1) * 100, 2)


def find_item_collection(raw: Any) -> list[dict[str, Any]]:
    """Locate the list of raw items inside a state document or payload.

    Resolution order, first non-empty match wins (no merging):
    top-level item module → page-props item module → rehydration detail item
    → bare array → payload list fields.
    """
    if raw is None:
        return []

    if isinstance(raw, dict):
        for key in ITEM_MODULE_KEYS:
            items = _as_items(raw.get(key))
            if items:
                return items

        page_props = _get(raw, "props", "pageProps", default={})
        for key in (*ITEM_MODULE_KEYS, "items"):
            items = _as_items(_get(page_props, key))
            if items:
                return items

        detail = _get(raw, UNIVERSAL_SCOPE_KEY, VIDEO_DETAIL_KEY, "itemInfo", "itemStruct")
        if isinstance(detail, dict) and detail:
            return [detail]

    if isinstance(raw, list):
        return _as_items(raw)

    if isinstance(raw, dict):
        for field in PAYLOAD_LIST_FIELDS:
            items = _as_items(raw.get(field))
            if items:
                return items

    return []


def _author_username(item: dict[str, Any]) -> str:
    author = item.get("author")
    if isinstance(author, str):
        return author.lstrip("@")
    username = _first(author, "uniqueId", "unique_id", "username")
    if username:
        return str(username).lstrip("@")
    return str(_first(item, "authorUniqueId", "author_unique_id", default="")).lstrip("@")


def _sound(item: dict[str, Any], music_module: dict[str, Any] | None) -> tuple[str, str]:
    music = item.get("music")
    if isinstance(music, str) and music_module:
        # SIGI items reference music by id
        music = music_module.get(music)
    if not isinstance(music, dict):
        music = {}

    title = _first(music, "title", "name", default="")
    artist = _first(music, "authorName", "author_name", "author", "owner_nickname", default="")
    if isinstance(artist, dict):
        artist = _first(artist, "nickname", "uniqueId", default="")
    return str(title), str(artist)


def _thumbnail(video: dict[str, Any]) -> str | None:
    cover = _first(video, "cover", "originCover", "origin_cover", "dynamicCover", "dynamic_cover")
    if isinstance(cover, dict):
        url_list = cover.get("url_list") or []
        cover = url_list[0] if url_list else None
    return str(cover) if cover else None


def map_item(
    item: dict[str, Any],
    *,
    source: ExtractionSource,
    music_module: dict[str, Any] | None = None,
) -> VideoRecord | None:
    """Map one raw item to a VideoRecord.

    Returns None when the item carries no id.

    Raises:
        ParseError: If the item is not a JSON object.
        ValidationError: If the assembled record violates the model.
    """
    if not isinstance(item, dict):
        raise ParseError(f"Expected an item object, got {type(item).__name__}")

    video = item.get("video") if isinstance(item.get("video"), dict) else {}

    video_id = _first(item, "id", "aweme_id", "video_id", "itemId") or _first(video, "id")
    if not video_id:
        return None
    video_id = str(video_id)

    author = _author_username(item)
    caption = str(_first(item, "desc", "description", "caption", default=""))

    stats = _first(item, "stats", "statistics", "stats_v2", "statsV2", default={})
    views = _to_count(_first(stats, "playCount", "play_count", "viewCount"))
    likes = _to_count(_first(stats, "diggCount", "digg_count", "likeCount"))
    comments = _to_count(_first(stats, "commentCount", "comment_count"))
    shares = _to_count(_first(stats, "shareCount", "share_count"))

    sound_title, sound_artist = _sound(item, music_module)

    observed_url = _first(item, "video_url", "share_url", "url", default="")
    video_url = canonical_video_url(author, video_id)
    if not video_url and isinstance(observed_url, str) and "/video/" in observed_url:
        video_url = observed_url.split("?")[0]

    return VideoRecord(
        video_id=video_id,
        video_url=video_url,
        author_username=author,
        caption=caption,
        hashtags=extract_hashtags(caption),
        sound_title=sound_title,
        sound_artist=sound_artist,
        views=views,
        likes=likes,
        comments=comments,
        shares=shares,
        duration_sec=_to_duration(
            _first(video, "duration"),
            # mobile (aweme) payloads report milliseconds
            milliseconds="aweme_id" in item,
        ),
        published_at=to_iso_timestamp(_first(item, "createTime", "create_time")),
        thumbnail_url=_thumbnail(video),
        engagement_rate=engagement_rate(likes, comments, shares, views),
        source=source,
    )


def map_items(raw: Any, *, source: ExtractionSource) -> list[VideoRecord]:
    """Map every item of a state document or payload.

    A malformed item is dropped on its own; the rest of the batch survives.
    """
    music_module = _get(raw, "MusicModule") if isinstance(raw, dict) else None
    if not isinstance(music_module, dict):
        music_module = None

    records: list[VideoRecord] = []
    for item in find_item_collection(raw):
        try:
            record = map_item(item, source=source, music_module=music_module)
        except (ParseError, ValidationError, TypeError, ValueError, AttributeError, ArithmeticError) as e:
            logger.debug("Dropping malformed item %r: %s", item.get("id") if isinstance(item, dict) else item, e)
            continue
        if record is not None:
            records.append(record)
    return records
