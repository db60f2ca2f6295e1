"""Deduplication and ranking of scraped videos.

Pipeline:
1. merge  : one record per video id, higher-fidelity source wins
2. window : keep videos published within 24h, widen to 48h when too few
3. score  : engagement velocity, comments and shares weighted over likes
4. select : top ``limit`` by score, then backfill by raw interactions

Given the same records and the same ``now`` the output is identical.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, Optional

from trendwatch.crawler.base import VideoRecord

logger = logging.getLogger(__name__)

RECENCY_WINDOWS_HOURS = (24.0, 48.0)

COMMENT_WEIGHT = 2
SHARE_WEIGHT = 3
RATIO_SCALE = 1000
RATIO_WEIGHT = 0.25


@dataclass
class RankingOutcome:
    videos: list[VideoRecord] = field(default_factory=list)
    total_found: int = 0
    window_hours: Optional[float] = None
    backfilled: int = 0


def merge_records(records: Iterable[VideoRecord]) -> list[VideoRecord]:
    """Deduplicate by video id.

    Records without ``video_url`` are rejected. A record from a higher
    priority source replaces an earlier one; on equal priority the first
    seen is kept. Output keeps first-seen order of ids.
    """
    merged: dict[str, VideoRecord] = {}
    rejected = 0
    for record in records:
        if not record.video_url or not record.video_id:
            rejected += 1
            continue
        current = merged.get(record.video_id)
        if current is None or record.source.priority > current.source.priority:
            merged[record.video_id] = record

    if rejected:
        logger.debug("Rejected %d records without video_url", rejected)
    return list(merged.values())


def hours_since(published_at: Optional[str], now: datetime) -> Optional[float]:
    """Hours between ``published_at`` (ISO-8601) and ``now``; None if unknown."""
    if not published_at:
        return None
    try:
        published = datetime.fromisoformat(published_at)
    except ValueError:
        return None
    if published.tzinfo is None and now.tzinfo is not None:
        published = published.replace(tzinfo=now.tzinfo)
    return (now - published).total_seconds() / 3600


def engagement_score(record: VideoRecord, hours: float) -> float:
    """Velocity of weighted interactions plus a scaled engagement ratio."""
    interactions = record.likes + COMMENT_WEIGHT * record.comments + SHARE_WEIGHT * record.shares
    per_hour = interactions / max(hours, 1.0)
    ratio = interactions / max(record.views, 1)
    return per_hour + ratio * RATIO_SCALE * RATIO_WEIGHT


def rank_records(
    records: Iterable[VideoRecord],
    limit: int,
    *,
    now: datetime,
    target: Optional[int] = None,
) -> RankingOutcome:
    """Merge, filter, score and select at most ``limit`` videos.

    Args:
        records: Raw records from every strategy and URL (duplicates allowed).
        limit: Number of videos to return.
        now: Reference time for recency; pass a fixed value for reproducible output.
        target: Pool size below which the recency window is widened
            (defaults to ``limit``).
    """
    target = limit if target is None else target
    merged = merge_records(records)
    ages = {r.video_id: hours_since(r.published_at, now) for r in merged}

    pool: list[VideoRecord] = []
    window_used: Optional[float] = None
    for window in RECENCY_WINDOWS_HOURS:
        pool = [
            r for r in merged
            if ages[r.video_id] is not None and ages[r.video_id] <= window
        ]
        window_used = window
        if len(pool) >= target:
            break

    scored = [
        r.model_copy(update={
            "score": round(engagement_score(r, ages[r.video_id]), 4),
            "hours_since_post": round(ages[r.video_id], 2),
        })
        for r in pool
    ]
    # sorted() is stable, so ties keep merge order
    selected = sorted(scored, key=lambda r: r.score, reverse=True)[:limit]

    backfilled = 0
    if len(selected) < limit:
        chosen = {r.video_id for r in selected}
        reserve = sorted(
            (r for r in merged if r.video_id not in chosen),
            key=lambda r: r.total_interactions,
            reverse=True,
        )
        for record in reserve[: limit - len(selected)]:
            age = ages[record.video_id]
            selected.append(
                record.model_copy(update={
                    "hours_since_post": round(age, 2) if age is not None else None,
                })
            )
            backfilled += 1

    if not pool:
        window_used = None

    logger.info(
        "Ranked %d unique videos: %d in %sh window, %d backfilled, returning %d",
        len(merged), len(pool), window_used, backfilled, len(selected),
    )
    return RankingOutcome(
        videos=selected,
        total_found=len(merged),
        window_hours=window_used,
        backfilled=backfilled,
    )
