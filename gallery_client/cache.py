"""
In-memory TTL cache for slow-changing aggregates (follow status, follow counts)
"""
import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, Generic, Optional, TypeVar

from .config import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class CacheEntry(Generic[T]):
    """Cached value with its insertion and expiry times"""

    data: T
    inserted_at: float
    expires_at: float


class TTLCache(Generic[T]):
    """
    Key -> value map with lazy expiration

    Entries are only purged when an expired entry is read. There is no size
    bound; the key space is limited to what one session touches.
    """

    def __init__(
        self,
        ttl: float = settings.CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl = ttl
        self._clock = clock
        self._entries: Dict[str, CacheEntry[T]] = {}

    def set(self, key: str, value: T, ttl: Optional[float] = None) -> None:
        """Store value, expiring ttl (default: the cache ttl) seconds from now"""
        now = self._clock()
        expires_at = now + (self.ttl if ttl is None else ttl)
        self._entries[key] = CacheEntry(data=value, inserted_at=now, expires_at=expires_at)

    def get(self, key: str) -> Optional[T]:
        """Return the cached value, or None on a miss"""
        entry = self._entries.get(key)
        if entry is None:
            return None

        if self._clock() > entry.expires_at:
            del self._entries[key]
            logger.debug(f"Cache entry expired: {key}")
            return None

        return entry.data

    def invalidate(self, key: str) -> None:
        """Remove a key if present"""
        self._entries.pop(key, None)

    def invalidate_matching(self, fragment: str) -> int:
        """Remove every key containing fragment, returns the number removed"""
        keys = [key for key in self._entries if fragment in key]
        for key in keys:
            del self._entries[key]
        return len(keys)

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    def __len__(self) -> int:
        return len(self._entries)


# Cache key helpers
def follow_status_key(follower_id: str, following_id: str) -> str:
    return f"follow:status:{follower_id}:{following_id}"


def follow_stats_key(user_id: str) -> str:
    return f"follow:stats:{user_id}"


def comments_key(image_id: str, limit: int) -> str:
    return f"comments:{image_id}:{limit}"
