"""Diagnostic endpoint: one instrumented page load, nothing cached."""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from trendwatch.api.deps import get_service, require_api_key
from trendwatch.services.trending_service import TrendingService

router = APIRouter(tags=["debug"], dependencies=[Depends(require_api_key)])


@router.get("/debug")
async def debug(
    region: Optional[str] = Query(default=None),
    service: TrendingService = Depends(get_service),
) -> dict:
    return await service.run_debug(region)
