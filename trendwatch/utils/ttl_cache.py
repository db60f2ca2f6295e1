"""In-memory cache with a fixed time-to-live per entry."""

from datetime import datetime, timedelta, timezone
from threading import Lock
from typing import Any, Callable, Optional


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TTLCache:
    """Thread-safe key/value cache whose entries expire after ``ttl_seconds``.

    Expired entries are removed lazily when read. There is no size bound:
    the service keeps one entry per distinct (region, limit) query.

    Example:
        cache = TTLCache(ttl_seconds=900)
        cache.set("trending:it:50", result)
        cached = cache.get("trending:it:50")  # None once 15 minutes passed
    """

    def __init__(
        self,
        ttl_seconds: float,
        clock: Callable[[], datetime] = _utcnow,
    ):
        """Initialize the cache.

        Args:
            ttl_seconds: Lifetime of each entry, counted from ``set``.
            clock: Returns the current time; injectable for tests.
        """
        self._ttl = timedelta(seconds=ttl_seconds)
        self._clock = clock
        self._entries: dict[str, tuple[Any, datetime]] = {}
        self._lock = Lock()

    def get(self, key: str) -> Optional[Any]:
        """Return the cached value, or None when absent or expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None

            value, expires_at = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                return None
            return value

    def set(self, key: str, value: Any) -> None:
        """Store value, replacing any previous entry. Last write wins."""
        with self._lock:
            self._entries[key] = (value, self._clock() + self._ttl)

    def clear(self) -> None:
        """Clear all entries."""
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        """Return number of entries (including possibly expired ones)."""
        return len(self._entries)

    @property
    def stats(self) -> dict:
        """Return cache statistics."""
        with self._lock:
            now = self._clock()
            expired_count = sum(
                1 for _, expires_at in self._entries.values() if now >= expires_at
            )
            return {
                "size": len(self._entries),
                "ttl_seconds": self._ttl.total_seconds(),
                "expired_count": expired_count,
            }

    def cleanup_expired(self) -> int:
        """Remove all expired entries. Returns number removed."""
        with self._lock:
            now = self._clock()
            expired_keys = [
                key for key, (_, expires_at) in self._entries.items()
                if now >= expires_at
            ]

            for key in expired_keys:
                del self._entries[key]

            return len(expired_keys)
