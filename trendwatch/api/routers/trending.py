"""Trending videos endpoint."""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from trendwatch.api.deps import get_service, require_api_key
from trendwatch.services.trending_service import TrendingService

router = APIRouter(tags=["trending"], dependencies=[Depends(require_api_key)])


@router.get("/trending")
async def get_trending(
    limit: Optional[int] = Query(default=None, description="Number of videos, clamped to [1, max_limit]"),
    region: Optional[str] = Query(default=None, description="Region profile, e.g. it, us, gb"),
    service: TrendingService = Depends(get_service),
) -> dict:
    """Ranked trending videos, served from cache when fresh."""
    limit = service.clamp_limit(limit)
    result, cached = await service.get_trending(limit=limit, region=region)

    return {
        "videos": [v.model_dump(mode="json") for v in result.videos],
        "metadata": {
            "scraped_at": result.scraped_at,
            "total_found": result.total_found,
            "returned": result.returned,
            "cached": cached,
            "region": result.region,
            "limit": limit,
            "window_hours": result.window_hours,
        },
    }
