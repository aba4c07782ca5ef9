"""
Like / favorite controller for one image
"""
from typing import Optional
import logging

from .base import Controller
from .feedback import Feedback
from ..application.interaction_service import InteractionService
from ..application.session import SessionContext
from ..domain.models import InteractionState, OptimisticToggle
from ..exceptions import GalleryError
from ..schemas import ImageStats

logger = logging.getLogger(__name__)


class InteractionController(Controller):
    """
    Per (viewer, image) interaction state with one request in flight per axis

    Like and favorite are independent axes. A toggle while that axis is
    pending is ignored. On success the server's state and like count are
    adopted as-is. On failure the axis returns to its last settled value and
    stats are re-read, since the request may have been partly applied. Each
    request carries the intended state, so a retry cannot undo a write that
    already reached the server.

    With optimistic=True the boolean flips as soon as the request starts;
    counters are never adjusted locally.
    """

    def __init__(
        self,
        service: InteractionService,
        session: SessionContext,
        image_id: Optional[str] = None,
        feedback: Optional[Feedback] = None,
        initial: Optional[ImageStats] = None,
        optimistic: bool = False,
    ):
        super().__init__(session, feedback)
        self.service = service
        self.image_id = image_id
        self.optimistic = optimistic
        self.state = InteractionState()
        if initial is not None:
            self._apply_stats(initial)

    @property
    def is_liked(self) -> bool:
        return self.state.is_liked

    @property
    def is_favorited(self) -> bool:
        return self.state.is_favorited

    @property
    def like_count(self) -> int:
        return self.state.like_count

    def set_image(self, image_id: str, initial: Optional[ImageStats] = None):
        """Attach the image once it has loaded"""
        self.image_id = image_id
        if initial is not None:
            self._apply_stats(initial)

    def _apply_stats(self, stats: ImageStats):
        self.state.like_count = stats.like_count
        self.state.view_count = stats.view_count
        self.state.comment_count = stats.comment_count
        self.state.like.load(stats.is_liked)
        self.state.favorite.load(stats.is_favorited)

    def _begin(self, toggle: OptimisticToggle) -> Optional[str]:
        """Check preconditions and enter PENDING; returns the acting user id"""
        try:
            user_id = self._require_user_id()
            self._require_entity(self.image_id)
        except GalleryError as e:
            self._fail(e)
            return None

        optimistic_value = (not toggle.value) if self.optimistic else None
        if not toggle.begin(optimistic_value):
            logger.debug(f"Toggle already in flight for image {self.image_id}")
            return None
        return user_id

    async def toggle_like(self) -> bool:
        toggle = self.state.like
        target = not toggle.value
        user_id = self._begin(toggle)
        if user_id is None:
            return False

        try:
            result = await self.service.toggle_like(self.image_id, user_id, target)
        except GalleryError as e:
            toggle.rollback()
            if not self.disposed:
                self._fail(e, "Could not update like, please try again")
                await self.load_stats()
            return False
        except Exception:
            toggle.rollback()
            raise

        if self.disposed:
            return False

        toggle.settle(result.is_liked)
        self.state.like_count = result.like_count
        self._succeed("Liked" if result.is_liked else "Like removed")
        return True

    async def toggle_favorite(self) -> bool:
        toggle = self.state.favorite
        target = not toggle.value
        user_id = self._begin(toggle)
        if user_id is None:
            return False

        try:
            result = await self.service.toggle_favorite(self.image_id, user_id, target)
        except GalleryError as e:
            toggle.rollback()
            if not self.disposed:
                self._fail(e, "Could not update favorites, please try again")
                await self.load_stats()
            return False
        except Exception:
            toggle.rollback()
            raise

        if self.disposed:
            return False

        toggle.settle(result.is_favorited)
        self._succeed("Added to favorites" if result.is_favorited else "Removed from favorites")
        return True

    async def load_stats(self) -> None:
        """Refresh counters and viewer state; safe to call repeatedly"""
        if not self.image_id:
            return

        self.state.is_loading = True
        try:
            stats = await self.service.get_image_stats(self.image_id, self.session.user_id)
        except GalleryError as e:
            logger.warning(f"Failed to load stats for image {self.image_id}: {e}")
            return
        finally:
            self.state.is_loading = False

        if not self.disposed:
            self._apply_stats(stats)
