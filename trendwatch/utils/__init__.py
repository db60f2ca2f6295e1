from trendwatch.utils.retry import RetryConfig, retry_call
from trendwatch.utils.ttl_cache import TTLCache

__all__ = [
    "RetryConfig",
    "TTLCache",
    "retry_call",
]
