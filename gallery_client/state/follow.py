"""
Follow button controller
"""
import asyncio
from typing import Optional
import logging

from .base import Controller
from .feedback import Feedback
from ..application.follow_service import FollowService
from ..application.session import SessionContext
from ..domain.models import OptimisticToggle
from ..exceptions import AlreadyFollowingError, GalleryError, SelfFollowError
from ..schemas import FollowStats

logger = logging.getLogger(__name__)


class FollowButton(Controller):
    """
    Follow state of the signed-in user towards one target user

    The button flips as soon as the request starts and flips back if it
    fails. The target's follower counts are re-read after a change.
    """

    def __init__(
        self,
        service: FollowService,
        session: SessionContext,
        target_user_id: Optional[str] = None,
        feedback: Optional[Feedback] = None,
    ):
        super().__init__(session, feedback)
        self.service = service
        self.target_user_id = target_user_id
        self.following = OptimisticToggle()
        self.stats = FollowStats()

    @property
    def is_following(self) -> bool:
        return self.following.value

    @property
    def is_pending(self) -> bool:
        return self.following.is_pending

    @property
    def is_self(self) -> bool:
        return bool(self.target_user_id) and self.target_user_id == self.session.user_id

    async def load(self) -> None:
        """Read follow state and counts; failures leave the defaults"""
        if not self.target_user_id:
            return

        try:
            is_following, stats = await asyncio.gather(
                self.service.is_following(self.target_user_id, self.session.user_id),
                self.service.get_follow_stats(self.target_user_id),
            )
        except GalleryError as e:
            logger.warning(f"Failed to load follow state for {self.target_user_id}: {e}")
            return

        if self.disposed:
            return
        self.following.load(is_following)
        self.stats = stats

    async def toggle(self) -> bool:
        """Follow or unfollow the target"""
        try:
            user_id = self._require_user_id()
            target_id = self._require_entity(self.target_user_id)
            if target_id == user_id:
                raise SelfFollowError()
        except GalleryError as e:
            self._fail(e)
            return False

        follow = not self.following.value
        if not self.following.begin(follow):
            return False

        try:
            if follow:
                await self.service.follow(target_id, user_id)
            else:
                await self.service.unfollow(target_id, user_id)
        except AlreadyFollowingError as e:
            # The edge exists; show the real state along with the message
            self.following.settle(True)
            if not self.disposed:
                self._fail(e)
            return False
        except GalleryError as e:
            self.following.rollback()
            if not self.disposed:
                self._fail(e, "Could not update follow, please try again")
            return False
        except Exception:
            self.following.rollback()
            raise

        self.following.settle(follow)
        if self.disposed:
            return False

        self._succeed("Following" if follow else "Unfollowed")
        self.stats = await self.service.get_follow_stats(target_id)
        return True
