"""Pure text-to-field helpers for TikTok metadata."""

from __future__ import annotations

import math
import re
from datetime import datetime, timezone
from typing import Any
from urllib.parse import urlsplit, urlunsplit

from trendwatch.crawler.base import MAX_HASHTAGS

from .constants import BASE_URL

# "#" + Unicode letters/digits/underscore
_HASHTAG_RE = re.compile(r"#\w+", re.UNICODE)

_COUNT_RE = re.compile(r"(\d+(?:[.,]\d+)*)(?:\s*([kmb])(?![a-z]))?", re.IGNORECASE)
_SUFFIX_MULTIPLIER = {"k": 10**3, "m": 10**6, "b": 10**9}

_VIDEO_PATH_RE = re.compile(r"/@([^/?#]+)/video/(\d+)")


def extract_hashtags(text: str | None) -> list[str]:
    """Return up to 10 distinct hashtags in first-seen order.

    >>> extract_hashtags("new #dance #fyp #dance #città")
    ['#dance', '#fyp', '#città']
    """
    if not text:
        return []

    tags: list[str] = []
    seen: set[str] = set()
    for tag in _HASHTAG_RE.findall(text):
        if tag in seen:
            continue
        seen.add(tag)
        tags.append(tag)
        if len(tags) == MAX_HASHTAGS:
            break
    return tags


def _to_number(digits: str) -> float:
    # "1,234,567" -> thousands separators; "1,2" -> decimal comma
    if digits.count(".") > 1:
        return float(digits.replace(".", "").replace(",", "."))
    if "," in digits and "." not in digits:
        head, _, tail = digits.rpartition(",")
        if len(tail) == 3:
            return float(digits.replace(",", ""))
        return float(f"{head.replace(',', '')}.{tail}")
    return float(digits.replace(",", ""))


def parse_count_with_suffix(text: str | None) -> int:
    """Parse counters like "1.2M", "35K", "1,204" or "987".

    Only used when structured counters are unavailable. Returns 0 if the text
    holds no number.
    """
    if not text:
        return 0

    match = _COUNT_RE.search(str(text))
    if not match:
        return 0

    try:
        value = _to_number(match.group(1))
    except ValueError:
        return 0

    suffix = (match.group(2) or "").lower()
    value *= _SUFFIX_MULTIPLIER.get(suffix, 1)
    if not math.isfinite(value):
        return 0
    return max(int(round(value)), 0)


def to_iso_timestamp(epoch_seconds: Any) -> str | None:
    """Convert epoch seconds (int, float or numeric string) to ISO-8601 UTC."""
    if epoch_seconds is None or epoch_seconds == "":
        return None
    try:
        seconds = float(epoch_seconds)
    except (TypeError, ValueError):
        return None
    if seconds <= 0:
        return None
    try:
        return datetime.fromtimestamp(seconds, tz=timezone.utc).isoformat()
    except (OverflowError, OSError, ValueError):
        return None


def strip_query(url: str) -> str:
    """Drop query string and fragment."""
    parts = urlsplit(url)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, "", ""))


def canonical_video_url(author: str, video_id: str) -> str:
    """Build the canonical video URL, or "" when either part is missing."""
    author = (author or "").lstrip("@")
    if not author or not video_id:
        return ""
    return f"{BASE_URL}/@{author}/video/{video_id}"


def parse_video_url(href: str | None) -> tuple[str, str] | None:
    """Extract ``(author, video_id)`` from a ``/@{username}/video/{id}`` link."""
    if not href:
        return None
    match = _VIDEO_PATH_RE.search(href)
    if not match:
        return None
    return match.group(1), match.group(2)
