"""
Follow graph client - follow edges with cached status and counts
"""
import asyncio
from typing import Dict, Iterable, List, Optional
import logging

from ..cache import TTLCache, follow_stats_key, follow_status_key
from ..config import settings
from ..exceptions import AlreadyFollowingError, SelfFollowError
from ..infrastructure.backend import BackendClient, Query
from ..schemas import FollowStats, UserProfile, parse_models

logger = logging.getLogger(__name__)

FOLLOWER_PROFILE = "created_at, profile:user_profiles!follows_follower_id_fkey (*)"
FOLLOWING_PROFILE = "created_at, profile:user_profiles!follows_following_id_fkey (*)"


class FollowService:
    """Business logic for follow relationships"""

    def __init__(self, backend: BackendClient, cache: Optional[TTLCache] = None):
        self.backend = backend
        self.cache = cache or TTLCache(settings.CACHE_TTL_SECONDS)

    def _edge(self, follower_id: str, following_id: str) -> Query:
        return (
            Query("follows", "id")
            .eq("follower_id", follower_id)
            .eq("following_id", following_id)
        )

    def _invalidate_stats(self, *user_ids: str):
        for user_id in user_ids:
            self.cache.invalidate(follow_stats_key(user_id))

    async def follow(self, target_id: str, acting_user_id: str) -> None:
        """
        Follow a user

        Args:
            target_id: User to be followed
            acting_user_id: User who is following

        Raises:
            SelfFollowError: If both ids are the same; no request is made
            AlreadyFollowingError: If the edge already exists
        """
        if target_id == acting_user_id:
            raise SelfFollowError()

        status_key = follow_status_key(acting_user_id, target_id)
        if self.cache.get(status_key):
            raise AlreadyFollowingError()

        existing = await self.backend.select_one(self._edge(acting_user_id, target_id).limit(1))
        if existing:
            self.cache.set(status_key, True)
            raise AlreadyFollowingError()

        # A unique violation from a concurrent follow surfaces as ConflictError
        await self.backend.insert(
            "follows", {"follower_id": acting_user_id, "following_id": target_id}
        )

        self.cache.set(status_key, True)
        self._invalidate_stats(acting_user_id, target_id)
        logger.info(f"User {acting_user_id} followed {target_id}")

    async def unfollow(self, target_id: str, acting_user_id: str) -> None:
        """Remove the edge if present"""
        await self.backend.delete(self._edge(acting_user_id, target_id))

        self.cache.set(follow_status_key(acting_user_id, target_id), False)
        self._invalidate_stats(acting_user_id, target_id)
        logger.info(f"User {acting_user_id} unfollowed {target_id}")

    async def is_following(self, target_id: str, acting_user_id: Optional[str]) -> bool:
        """Cache first; on a miss asks the backend and caches the answer"""
        if not acting_user_id or target_id == acting_user_id:
            return False

        status_key = follow_status_key(acting_user_id, target_id)
        cached = self.cache.get(status_key)
        if cached is not None:
            return cached

        existing = await self.backend.select_one(self._edge(acting_user_id, target_id).limit(1))
        result = existing is not None
        self.cache.set(status_key, result)
        return result

    async def get_follow_stats(self, user_id: str) -> FollowStats:
        """
        Follower and following counts

        Never raises; a failed count query yields zeros, which are not cached.
        """
        key = follow_stats_key(user_id)
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        try:
            followers, following = await asyncio.gather(
                self.backend.count(Query("follows", "id").eq("following_id", user_id)),
                self.backend.count(Query("follows", "id").eq("follower_id", user_id)),
            )
        except Exception as e:
            logger.warning(f"Failed to load follow stats for {user_id}: {e}")
            return FollowStats()

        stats = FollowStats(followers=followers, following=following)
        self.cache.set(key, stats)
        return stats

    async def check_multiple_follow_status(
        self, user_ids: Iterable[str], acting_user_id: Optional[str]
    ) -> Dict[str, bool]:
        """
        Follow state for a batch of users in one query

        Returns an empty map when signed out or on failure.
        """
        user_ids = list(user_ids)
        if not acting_user_id or not user_ids:
            return {}

        try:
            rows = await self.backend.select(
                Query("follows", "following_id")
                .eq("follower_id", acting_user_id)
                .in_("following_id", user_ids)
            )
        except Exception as e:
            logger.warning(f"Failed to check follow status for {len(user_ids)} users: {e}")
            return {}

        followed = {row["following_id"] for row in rows}
        return {user_id: user_id in followed for user_id in user_ids}

    async def get_followers(
        self, user_id: str, limit: int = settings.DEFAULT_PAGE_SIZE, offset: int = 0
    ) -> List[UserProfile]:
        """Profiles following user_id, newest first"""
        rows = await self.backend.select(
            Query("follows", FOLLOWER_PROFILE)
            .eq("following_id", user_id)
            .order("created_at")
            .range(offset, offset + limit - 1)
        )
        return parse_models(UserProfile, [row["profile"] for row in rows if row.get("profile")])

    async def get_following(
        self, user_id: str, limit: int = settings.DEFAULT_PAGE_SIZE, offset: int = 0
    ) -> List[UserProfile]:
        """Profiles user_id follows, newest first"""
        rows = await self.backend.select(
            Query("follows", FOLLOWING_PROFILE)
            .eq("follower_id", user_id)
            .order("created_at")
            .range(offset, offset + limit - 1)
        )
        return parse_models(UserProfile, [row["profile"] for row in rows if row.get("profile")])

    async def get_following_ids(self, user_id: str) -> List[str]:
        """Ids of every user user_id follows (following feed)"""
        rows = await self.backend.select(
            Query("follows", "following_id").eq("follower_id", user_id)
        )
        return [row["following_id"] for row in rows]

    async def get_mutual_follows(self, user_id: str) -> List[str]:
        """Ids of users who follow user_id and are followed back"""
        following, followers = await asyncio.gather(
            self.backend.select(Query("follows", "following_id").eq("follower_id", user_id)),
            self.backend.select(Query("follows", "follower_id").eq("following_id", user_id)),
        )
        follower_ids = {row["follower_id"] for row in followers}
        return [row["following_id"] for row in following if row["following_id"] in follower_ids]
