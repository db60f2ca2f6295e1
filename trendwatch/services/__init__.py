from trendwatch.services.ranking import RankingOutcome, merge_records, rank_records
from trendwatch.services.trending_service import InvalidRegionError, TrendingResult, TrendingService

__all__ = [
    "InvalidRegionError",
    "RankingOutcome",
    "TrendingResult",
    "TrendingService",
    "merge_records",
    "rank_records",
]
