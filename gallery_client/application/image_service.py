"""
Image service - gallery listings, search, uploads and owner edits
"""
import asyncio
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, List, Literal, Optional
import logging
import re

from ..cache import TTLCache
from ..config import settings
from ..exceptions import NotOwnerError
from ..infrastructure.backend import BackendClient, Query, first_row
from ..infrastructure.image_processor import ImageProcessor
from ..infrastructure.storage import StorageManager
from ..schemas import (
    CategoryCount,
    ImageCreate,
    ImageFilters,
    ImageRecord,
    ImageUpdate,
    TagCount,
    parse_models,
)

logger = logging.getLogger(__name__)

IMAGE_COLUMNS = """
    id, title, description, image_url, user_id, tags, category,
    like_count, view_count, comment_count, is_featured, is_published,
    published_at, created_at,
    user_profiles ( id, username, avatar_url, full_name, bio, website, created_at, updated_at )
"""

Timeframe = Literal["day", "week", "month", "all"]

TIMEFRAME_WINDOWS = {
    "day": timedelta(days=1),
    "week": timedelta(days=7),
    "month": timedelta(days=30),
}

RECENT_TTL_SECONDS = 60

# Characters that would break a PostgREST or=(...) expression
_SEARCH_UNSAFE = re.compile(r"[,()*\\]")


def popularity_score(image: ImageRecord, now: Optional[datetime] = None) -> float:
    """Weighted engagement, decayed by age in days"""
    now = now or datetime.now(timezone.utc)
    created_at = image.created_at or now
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)
    age_days = max((now - created_at).total_seconds(), 0) / 86400
    engagement = image.like_count * 3 + image.view_count * 0.1 + image.comment_count * 2
    return engagement / max(1, age_days * 0.1)


class ImageService:
    """Image service - handles gallery business logic"""

    def __init__(
        self,
        backend: BackendClient,
        storage: StorageManager,
        cache: Optional[TTLCache] = None,
    ):
        self.backend = backend
        self.storage = storage
        self.cache = cache or TTLCache(settings.CACHE_TTL_IMAGES)
        self.image_processor = ImageProcessor()

    def invalidate_cache(self):
        """Drop cached listings after the gallery changed"""
        self.cache.clear()

    def _process(self, rows: Iterable[Dict]) -> List[ImageRecord]:
        images = parse_models(ImageRecord, rows)
        for image in images:
            image.image_url = self.storage.get_public_url(image.image_url)
        return images

    def _apply_filters(self, query: Query, filters: ImageFilters) -> Query:
        if filters.category:
            query.eq("category", filters.category)
        if filters.tags:
            query.overlaps("tags", filters.tags)
        query.order(filters.sort_by, ascending=filters.sort_order == "asc")
        query.range(filters.offset, filters.offset + filters.limit - 1)
        return query

    async def _apply_viewer_state(self, images: List[ImageRecord], user_id: Optional[str]):
        """Mark which images the viewer has liked and favorited"""
        if not user_id or not images:
            return

        image_ids = [image.id for image in images]
        likes, favorites = await asyncio.gather(
            self.backend.select(
                Query("likes", "image_id").eq("user_id", user_id).in_("image_id", image_ids)
            ),
            self.backend.select(
                Query("favorites", "image_id").eq("user_id", user_id).in_("image_id", image_ids)
            ),
        )
        liked = {row["image_id"] for row in likes}
        favorited = {row["image_id"] for row in favorites}
        for image in images:
            image.is_liked = image.id in liked
            image.is_favorited = image.id in favorited

    # Listings
    async def get_images(
        self, filters: Optional[ImageFilters] = None, user_id: Optional[str] = None
    ) -> List[ImageRecord]:
        """
        Filtered, sorted page of images

        Args:
            filters: Category, tags (any overlap), sort and range
            user_id: Viewer, used to fill is_liked / is_favorited

        Returns:
            Images with public URLs; cached per filters and viewer
        """
        filters = filters or ImageFilters()
        key = f"images:{filters.model_dump_json()}:{user_id or ''}"
        cached = self.cache.get(key)
        if cached is not None:
            return list(cached)

        rows = await self.backend.select(
            self._apply_filters(Query("images", IMAGE_COLUMNS), filters)
        )
        images = self._process(rows)
        await self._apply_viewer_state(images, user_id)

        self.cache.set(key, images)
        return images

    async def get_popular_images(
        self, limit: int = settings.DEFAULT_PAGE_SIZE, timeframe: Timeframe = "week"
    ) -> List[ImageRecord]:
        """Published images in the timeframe, ranked by popularity score"""
        key = f"popular:{limit}:{timeframe}"
        cached = self.cache.get(key)
        if cached is not None:
            return list(cached)

        query = Query("images", IMAGE_COLUMNS).eq("is_published", True)
        window = TIMEFRAME_WINDOWS.get(timeframe)
        if window is not None:
            query.gte("created_at", datetime.now(timezone.utc) - window)
        query.order("like_count").order("view_count").order("comment_count").limit(limit)

        images = self._process(await self.backend.select(query))
        now = datetime.now(timezone.utc)
        for image in images:
            image.popularity_score = popularity_score(image, now)
        images.sort(key=lambda image: image.popularity_score, reverse=True)

        self.cache.set(key, images, ttl=settings.CACHE_TTL_SECONDS)
        return images

    async def get_recent_images(self, limit: int = settings.DEFAULT_PAGE_SIZE) -> List[ImageRecord]:
        key = f"recent:{limit}"
        cached = self.cache.get(key)
        if cached is not None:
            return list(cached)

        rows = await self.backend.select(
            Query("images", IMAGE_COLUMNS)
            .eq("is_published", True)
            .order("created_at")
            .limit(limit)
        )
        images = self._process(rows)
        self.cache.set(key, images, ttl=RECENT_TTL_SECONDS)
        return images

    async def get_images_by_user_ids(
        self,
        user_ids: Iterable[str],
        filters: Optional[ImageFilters] = None,
        user_id: Optional[str] = None,
    ) -> List[ImageRecord]:
        """Images owned by any of user_ids (the following feed)"""
        user_ids = sorted(set(user_ids))
        if not user_ids:
            return []

        filters = filters or ImageFilters()
        key = f"by_users:{','.join(user_ids)}:{filters.model_dump_json()}:{user_id or ''}"
        cached = self.cache.get(key)
        if cached is not None:
            return list(cached)

        query = Query("images", IMAGE_COLUMNS).in_("user_id", user_ids)
        query.order(filters.sort_by, ascending=filters.sort_order == "asc")
        query.range(filters.offset, filters.offset + filters.limit - 1)

        images = self._process(await self.backend.select(query))
        await self._apply_viewer_state(images, user_id)

        self.cache.set(key, images)
        return images

    async def get_images_by_category(
        self, category: str, limit: int = settings.DEFAULT_PAGE_SIZE, offset: int = 0
    ) -> List[ImageRecord]:
        return await self.get_images(
            ImageFilters(category=category, limit=limit, offset=offset)
        )

    async def get_user_images(
        self, user_id: str, limit: int = settings.DEFAULT_PAGE_SIZE, offset: int = 0
    ) -> List[ImageRecord]:
        rows = await self.backend.select(
            Query("images", "*, user_profiles (*)")
            .eq("user_id", user_id)
            .order("created_at")
            .range(offset, offset + limit - 1)
        )
        return self._process(rows)

    async def get_related_images(self, image_id: str, limit: int = 8) -> List[ImageRecord]:
        """Published images in the same category, most liked first"""
        current = await self.backend.select_one(
            Query("images", "category, tags").eq("id", image_id).limit(1)
        )
        if current is None:
            return []

        query = Query("images", IMAGE_COLUMNS).neq("id", image_id).eq("is_published", True)
        if current.get("category"):
            query.eq("category", current["category"])
        query.order("like_count").limit(limit)
        return self._process(await self.backend.select(query))

    async def search_images(
        self,
        text: str,
        filters: Optional[ImageFilters] = None,
        user_id: Optional[str] = None,
    ) -> List[ImageRecord]:
        """Case-insensitive match on title or description, plus filters"""
        filters = filters or ImageFilters()
        query = Query("images", IMAGE_COLUMNS)

        term = _SEARCH_UNSAFE.sub(" ", text).strip()
        if term:
            query.or_(f"title.ilike.*{term}*,description.ilike.*{term}*")

        rows = await self.backend.select(self._apply_filters(query, filters))
        images = self._process(rows)
        await self._apply_viewer_state(images, user_id)
        return images

    async def get_image_by_id(
        self, image_id: str, user_id: Optional[str] = None
    ) -> Optional[ImageRecord]:
        """Single image; opening it counts as a view"""
        row = await self.backend.select_one(
            Query("images", "*, user_profiles (*)").eq("id", image_id).limit(1)
        )
        if row is None:
            return None

        await self.increment_view_count(image_id)

        image = self._process([row])[0]
        await self._apply_viewer_state([image], user_id)
        return image

    async def increment_view_count(self, image_id: str) -> None:
        """Bump the view counter; failures are logged and ignored"""
        try:
            await self.backend.rpc("increment_view_count", {"image_id": image_id})
        except Exception as e:
            logger.warning(f"Failed to increment view count for {image_id}: {e}")

    # Aggregates
    async def get_popular_tags(self, limit: int = 20) -> List[TagCount]:
        """Most used tags; an empty list if the lookup fails"""
        try:
            rows = await self.backend.select(Query("images", "tags"))
        except Exception as e:
            logger.warning(f"Failed to load popular tags: {e}")
            return []

        counts: Counter = Counter()
        for row in rows:
            for tag in row.get("tags") or []:
                if isinstance(tag, str):
                    counts[tag] += 1
        return [TagCount(name=name, count=count) for name, count in counts.most_common(limit)]

    async def get_categories(self) -> List[CategoryCount]:
        rows = await self.backend.select(Query("images", "category"))
        counts = Counter(row["category"] for row in rows if row.get("category"))
        return [CategoryCount(name=name, count=count) for name, count in counts.items()]

    # Owner operations
    async def upload_image(
        self,
        data: bytes,
        filename: str,
        content_type: str,
        metadata: ImageCreate,
        user_id: str,
    ) -> ImageRecord:
        """
        Validate, upload to storage and create the image row

        Raises:
            InvalidFileError: If the file fails size or type checks
        """
        content_type = self.image_processor.validate_image_file(data, content_type)
        key = self.image_processor.generate_unique_filename(filename, content_type)
        path = await self.storage.upload_file(data, key, content_type=content_type)

        now = datetime.now(timezone.utc).isoformat()
        row = {
            "title": metadata.title,
            "description": metadata.description,
            "image_url": path,
            "user_id": user_id,
            "tags": metadata.tags,
            "category": metadata.category,
            "like_count": 0,
            "view_count": 0,
            "comment_count": 0,
            "is_featured": False,
            "is_published": metadata.is_published,
            "published_at": now if metadata.is_published else None,
        }

        try:
            rows = await self.backend.insert("images", row, select="*, user_profiles (*)")
            created = first_row(rows, "image")
        except Exception:
            # Clean up the orphaned object; the insert error is what the caller sees
            try:
                await self.storage.delete_file(path)
            except Exception as e:
                logger.error(f"Failed to remove orphaned upload {path}: {e}")
            raise

        self.invalidate_cache()
        logger.info(f"User {user_id} uploaded image {created.get('id')}")
        return self._process([created])[0]

    async def _update_owned(self, image_id: str, user_id: str, values: Dict) -> ImageRecord:
        rows = await self.backend.update(
            Query("images", "*, user_profiles (*)").eq("id", image_id).eq("user_id", user_id),
            values,
        )
        if not rows:
            raise NotOwnerError("You can only edit your own images")
        self.invalidate_cache()
        return self._process(rows[:1])[0]

    async def update_image(self, image_id: str, updates: ImageUpdate, user_id: str) -> ImageRecord:
        return await self._update_owned(image_id, user_id, updates.model_dump(exclude_unset=True))

    async def publish_image(self, image_id: str, user_id: str) -> ImageRecord:
        return await self._update_owned(
            image_id,
            user_id,
            {"is_published": True, "published_at": datetime.now(timezone.utc).isoformat()},
        )

    async def unpublish_image(self, image_id: str, user_id: str) -> ImageRecord:
        return await self._update_owned(
            image_id, user_id, {"is_published": False, "published_at": None}
        )

    async def delete_image(self, image_id: str, user_id: str) -> None:
        """
        Delete the stored object, then the image row

        Raises:
            NotOwnerError: If the image does not exist or belongs to someone else
        """
        row = await self.backend.select_one(
            Query("images", "image_url").eq("id", image_id).eq("user_id", user_id).limit(1)
        )
        if row is None:
            raise NotOwnerError("You can only delete your own images")

        await self.storage.delete_file(row["image_url"])
        await self.backend.delete(Query("images").eq("id", image_id).eq("user_id", user_id))

        self.invalidate_cache()
        logger.info(f"User {user_id} deleted image {image_id}")

