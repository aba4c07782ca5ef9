"""
Composition root - wires transport, session, services and controllers
"""
from typing import List, Optional
import logging

import httpx

from .application.auth_service import AuthService
from .application.follow_service import FollowService
from .application.image_service import ImageService
from .application.interaction_service import InteractionService
from .application.notification_service import NotificationService
from .application.session import SessionContext
from .config import settings
from .infrastructure.auth_api import AuthAPI
from .infrastructure.backend import BackendClient
from .infrastructure.storage import StorageManager
from .schemas import ImageFilters, ImageRecord, ImageStats
from .state.comments import CommentThread
from .state.feed import PageFetcher, PagedFeedLoader
from .state.feedback import Feedback
from .state.follow import FollowButton
from .state.interactions import InteractionController
from .state.notifications import NotificationInbox
from .utils.search import parse_search_query, sanitize_search_query

logger = logging.getLogger(__name__)

AVATAR_BUCKET = "avatars"


def configure_logging():
    """Configure logging"""
    logging.basicConfig(
        level=logging.INFO if not settings.DEBUG else logging.DEBUG,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


class GalleryApp:
    """
    One signed-in client session against the hosted backend

    Usage:
        async with GalleryApp() as app:
            await app.auth.sign_in(email, password)
            feed = app.gallery_feed()
            await feed.load_page()
    """

    def __init__(
        self,
        base_url: str = settings.SUPABASE_URL,
        api_key: str = settings.SUPABASE_ANON_KEY,
        feedback: Optional[Feedback] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.feedback = feedback or Feedback()
        self.session = SessionContext()
        self.backend = BackendClient(base_url, api_key, transport=transport)
        self.storage = StorageManager(self.backend, settings.STORAGE_BUCKET)

        self.auth = AuthService(
            self.backend,
            AuthAPI(self.backend),
            self.session,
            avatar_storage=StorageManager(self.backend, AVATAR_BUCKET),
        )
        self.images = ImageService(self.backend, self.storage)
        self.interactions = InteractionService(
            self.backend, self.storage, listings_cache=self.images.cache
        )
        self.follows = FollowService(self.backend)
        self.notifications = NotificationService(self.backend)

    async def start(self):
        configure_logging()
        logger.info(f"Starting {settings.APP_NAME} {settings.APP_VERSION}...")
        await self.backend.start()

    async def stop(self):
        logger.info(f"Shutting down {settings.APP_NAME}...")
        await self.backend.stop()

    async def __aenter__(self) -> "GalleryApp":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.stop()

    # Controllers
    def interaction_controller(
        self,
        image_id: Optional[str] = None,
        initial: Optional[ImageStats] = None,
        optimistic: bool = False,
    ) -> InteractionController:
        return InteractionController(
            self.interactions,
            self.session,
            image_id=image_id,
            feedback=self.feedback,
            initial=initial,
            optimistic=optimistic,
        )

    def comment_thread(self, image_id: Optional[str] = None) -> CommentThread:
        return CommentThread(self.interactions, self.session, image_id, feedback=self.feedback)

    def follow_button(self, target_user_id: Optional[str] = None) -> FollowButton:
        return FollowButton(self.follows, self.session, target_user_id, feedback=self.feedback)

    def notification_inbox(self) -> NotificationInbox:
        return NotificationInbox(self.notifications, self.session, feedback=self.feedback)

    # Feeds
    def _feed(self, fetch_page: PageFetcher, page_size: int) -> PagedFeedLoader[ImageRecord]:
        return PagedFeedLoader(fetch_page, page_size=page_size, feedback=self.feedback)

    def gallery_fetcher(self, filters: Optional[ImageFilters] = None) -> PageFetcher:
        base = filters or ImageFilters()

        async def fetch(offset: int, limit: int) -> List[ImageRecord]:
            page = base.model_copy(update={"offset": offset, "limit": limit})
            return await self.images.get_images(page, self.session.user_id)

        return fetch

    def search_fetcher(self, text: str, filters: Optional[ImageFilters] = None) -> PageFetcher:
        """Fetcher for a search box query; #tags narrow by tag"""
        parsed = parse_search_query(sanitize_search_query(text))
        base = filters or ImageFilters()
        if parsed.tags:
            base = base.model_copy(update={"tags": (base.tags or []) + parsed.tags})

        async def fetch(offset: int, limit: int) -> List[ImageRecord]:
            page = base.model_copy(update={"offset": offset, "limit": limit})
            return await self.images.search_images(parsed.text, page, self.session.user_id)

        return fetch

    def gallery_feed(
        self, filters: Optional[ImageFilters] = None, page_size: int = settings.DEFAULT_PAGE_SIZE
    ) -> PagedFeedLoader[ImageRecord]:
        return self._feed(self.gallery_fetcher(filters), page_size)

    def search_feed(
        self,
        text: str,
        filters: Optional[ImageFilters] = None,
        page_size: int = settings.DEFAULT_PAGE_SIZE,
    ) -> PagedFeedLoader[ImageRecord]:
        """Search results; call replace_query(app.search_fetcher(...)) as the text changes"""
        return self._feed(self.search_fetcher(text, filters), page_size)

    def following_feed(self, page_size: int = settings.DEFAULT_PAGE_SIZE) -> PagedFeedLoader[ImageRecord]:
        """Images from users the signed-in user follows"""

        async def fetch(offset: int, limit: int) -> List[ImageRecord]:
            user_id = self.session.user_id
            if not user_id:
                return []
            following = await self.follows.get_following_ids(user_id)
            return await self.images.get_images_by_user_ids(
                following, ImageFilters(offset=offset, limit=limit), user_id
            )

        return self._feed(fetch, page_size)

    def user_images_feed(
        self, user_id: str, page_size: int = settings.DEFAULT_PAGE_SIZE
    ) -> PagedFeedLoader[ImageRecord]:
        async def fetch(offset: int, limit: int) -> List[ImageRecord]:
            return await self.images.get_user_images(user_id, limit, offset)

        return self._feed(fetch, page_size)

    def liked_feed(self, user_id: str, page_size: int = settings.DEFAULT_PAGE_SIZE) -> PagedFeedLoader[ImageRecord]:
        async def fetch(offset: int, limit: int) -> List[ImageRecord]:
            return await self.interactions.get_user_liked_images(user_id, limit, offset)

        return self._feed(fetch, page_size)

    def favorites_feed(
        self, user_id: str, page_size: int = settings.DEFAULT_PAGE_SIZE
    ) -> PagedFeedLoader[ImageRecord]:
        async def fetch(offset: int, limit: int) -> List[ImageRecord]:
            return await self.interactions.get_user_favorited_images(user_id, limit, offset)

        return self._feed(fetch, page_size)
