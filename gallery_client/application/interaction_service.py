"""
Interaction service - likes, favorites and comments on images
"""
from datetime import datetime, timezone
from typing import List, Optional
import logging

from ..cache import TTLCache, comments_key
from ..config import settings
from ..exceptions import EmptyContentError, NotOwnerError
from ..infrastructure.backend import BackendClient, Query, first_row, row_value
from ..infrastructure.storage import StorageManager
from ..schemas import (
    CommentRecord,
    FavoriteResult,
    ImageRecord,
    ImageStats,
    LikeResult,
    parse_model,
    parse_models,
)

logger = logging.getLogger(__name__)

COMMENT_COLUMNS = """
    id, content, image_id, user_id, created_at, updated_at,
    user_profiles ( id, username, full_name, avatar_url )
"""

IMAGE_WITH_OWNER_COLUMNS = "*, user_profiles (*)"


class InteractionService:
    """Backend operations behind the like, favorite and comment controls"""

    def __init__(
        self,
        backend: BackendClient,
        storage: Optional[StorageManager] = None,
        comments_cache: Optional[TTLCache] = None,
        listings_cache: Optional[TTLCache] = None,
    ):
        self.backend = backend
        self.storage = storage
        self.comments_cache = comments_cache or TTLCache(settings.CACHE_TTL_SECONDS)
        # Image listings embed like counts and viewer state
        self.listings_cache = listings_cache

    def _clear_related_cache(self, image_id: Optional[str]):
        if image_id:
            self.comments_cache.invalidate_matching(f"comments:{image_id}:")
        self._clear_listings()

    def _clear_listings(self):
        if self.listings_cache is not None:
            self.listings_cache.clear()

    # Likes
    async def toggle_like(
        self, image_id: str, user_id: str, target: Optional[bool] = None
    ) -> LikeResult:
        """
        Like or unlike an image

        Counters are only ever changed through the increment/decrement RPCs,
        and the returned count is re-read from the image row.

        Args:
            image_id: Image to like or unlike
            user_id: Acting user
            target: Desired state; when the server already has it, nothing
                is written. None flips whatever the server holds.
        """
        existing = await self.backend.select_one(
            Query("likes", "id").eq("user_id", user_id).eq("image_id", image_id).limit(1)
        )

        is_liked = existing is not None
        if target is not None and target == is_liked:
            logger.info(f"Like by {user_id} on image {image_id} already {'set' if target else 'cleared'}")
        elif existing:
            await self.backend.delete(Query("likes").eq("id", row_value(existing, "id")))
            self._clear_listings()
            await self.backend.rpc("decrement_like_count", {"image_id": image_id})
            is_liked = False
        else:
            await self.backend.insert("likes", {"user_id": user_id, "image_id": image_id})
            self._clear_listings()
            await self.backend.rpc("increment_like_count", {"image_id": image_id})
            is_liked = True

        row = await self.backend.select_one(
            Query("images", "like_count").eq("id", image_id).limit(1)
        )
        like_count = (row or {}).get("like_count") or 0

        logger.info(f"User {user_id} {'liked' if is_liked else 'unliked'} image {image_id}")
        return LikeResult(is_liked=is_liked, like_count=like_count)

    async def has_user_liked_image(self, image_id: str, user_id: str) -> bool:
        if not image_id or not user_id:
            return False
        row = await self.backend.select_one(
            Query("likes", "id").eq("user_id", user_id).eq("image_id", image_id).limit(1)
        )
        return row is not None

    # Favorites
    async def toggle_favorite(
        self, image_id: str, user_id: str, target: Optional[bool] = None
    ) -> FavoriteResult:
        """Add or remove an image from the user's favorites (target as in toggle_like)"""
        existing = await self.backend.select_one(
            Query("favorites", "id").eq("user_id", user_id).eq("image_id", image_id).limit(1)
        )

        is_favorited = existing is not None
        if target is None or target != is_favorited:
            if existing:
                await self.backend.delete(
                    Query("favorites").eq("id", row_value(existing, "id"))
                )
            else:
                await self.backend.insert(
                    "favorites", {"user_id": user_id, "image_id": image_id}
                )
            is_favorited = not is_favorited
            self._clear_listings()

        logger.info(
            f"User {user_id} {'favorited' if is_favorited else 'unfavorited'} image {image_id}"
        )
        return FavoriteResult(is_favorited=is_favorited)

    async def has_user_favorited_image(self, image_id: str, user_id: str) -> bool:
        if not image_id or not user_id:
            return False
        row = await self.backend.select_one(
            Query("favorites", "id").eq("user_id", user_id).eq("image_id", image_id).limit(1)
        )
        return row is not None

    async def get_image_stats(self, image_id: str, user_id: Optional[str] = None) -> ImageStats:
        """Counters for an image, plus the viewer's like/favorite state"""
        if not image_id:
            return ImageStats()

        row = await self.backend.select_one(
            Query("images", "like_count, view_count, comment_count").eq("id", image_id).limit(1)
        )
        stats = parse_model(ImageStats, row or {})

        if user_id:
            stats.is_liked = await self.has_user_liked_image(image_id, user_id)
            stats.is_favorited = await self.has_user_favorited_image(image_id, user_id)

        return stats

    async def _get_user_images_via(
        self, table: str, user_id: str, limit: int, offset: int
    ) -> List[ImageRecord]:
        rows = await self.backend.select(
            Query(table, f"created_at, images ( {IMAGE_WITH_OWNER_COLUMNS} )")
            .eq("user_id", user_id)
            .order("created_at")
            .range(offset, offset + limit - 1)
        )
        images = parse_models(ImageRecord, [row["images"] for row in rows if row.get("images")])
        for image in images:
            if table == "likes":
                image.is_liked = True
            else:
                image.is_favorited = True
            if self.storage:
                image.image_url = self.storage.get_public_url(image.image_url)
        return images

    async def get_user_liked_images(
        self, user_id: str, limit: int = 20, offset: int = 0
    ) -> List[ImageRecord]:
        return await self._get_user_images_via("likes", user_id, limit, offset)

    async def get_user_favorited_images(
        self, user_id: str, limit: int = 20, offset: int = 0
    ) -> List[ImageRecord]:
        return await self._get_user_images_via("favorites", user_id, limit, offset)

    # Comments
    async def add_comment(self, image_id: str, user_id: str, content: str) -> CommentRecord:
        """Create a comment; the comment counter is maintained by a DB trigger"""
        content = content.strip()
        if not content:
            raise EmptyContentError()

        rows = await self.backend.insert(
            "comments",
            {"content": content, "user_id": user_id, "image_id": image_id},
            select=COMMENT_COLUMNS,
        )
        self._clear_related_cache(image_id)
        logger.info(f"User {user_id} commented on image {image_id}")
        return parse_model(CommentRecord, first_row(rows, "comment"))

    async def get_image_comments(
        self, image_id: str, limit: int = 20, offset: int = 0
    ) -> List[CommentRecord]:
        """Comments for an image, newest first; the first page is cached"""
        if not image_id:
            return []

        key = comments_key(image_id, limit)
        if offset == 0:
            cached = self.comments_cache.get(key)
            if cached is not None:
                return list(cached)

        rows = await self.backend.select(
            Query("comments", COMMENT_COLUMNS)
            .eq("image_id", image_id)
            .order("created_at")
            .range(offset, offset + limit - 1)
        )
        comments = parse_models(CommentRecord, rows)

        if offset == 0:
            self.comments_cache.set(key, comments)

        return comments

    async def update_comment(self, comment_id: str, user_id: str, content: str) -> CommentRecord:
        """
        Edit a comment owned by user_id

        Raises:
            NotOwnerError: If no comment with this id belongs to the user
        """
        content = content.strip()
        if not content:
            raise EmptyContentError()

        rows = await self.backend.update(
            Query("comments", COMMENT_COLUMNS).eq("id", comment_id).eq("user_id", user_id),
            {"content": content, "updated_at": datetime.now(timezone.utc).isoformat()},
        )
        if not rows:
            raise NotOwnerError("You can only edit your own comments")

        comment = parse_model(CommentRecord, rows[0])
        self._clear_related_cache(comment.image_id)
        return comment

    async def delete_comment(self, comment_id: str, user_id: str, image_id: str) -> None:
        """
        Delete a comment owned by user_id

        Raises:
            NotOwnerError: If no comment with this id belongs to the user
        """
        rows = await self.backend.delete(
            Query("comments").eq("id", comment_id).eq("user_id", user_id)
        )
        if not rows:
            raise NotOwnerError("You can only delete your own comments")

        self._clear_related_cache(image_id)
        logger.info(f"User {user_id} deleted comment {comment_id}")
