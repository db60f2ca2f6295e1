"""Health check endpoints."""

from fastapi import APIRouter, Depends

from trendwatch.api.deps import get_cache
from trendwatch.utils.ttl_cache import TTLCache

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(cache: TTLCache = Depends(get_cache)) -> dict:
    """Liveness plus cache occupancy."""
    return {
        "status": "ok",
        "cache_size": len(cache),
        "cache": cache.stats,
    }
