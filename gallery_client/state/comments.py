"""
Comment thread controller - newest-first comments for one image
"""
from typing import List, Optional
import logging

from .base import Controller
from .feedback import Feedback
from ..application.interaction_service import InteractionService
from ..application.session import SessionContext
from ..config import settings
from ..domain.models import CommentView
from ..exceptions import EmptyContentError, GalleryError
from ..schemas import CommentRecord

logger = logging.getLogger(__name__)

UNKNOWN_AUTHOR = "Unknown user"


def normalize_comment(record: CommentRecord) -> CommentView:
    """Flatten the author profile and flag edited comments"""
    author = record.user_profiles
    return CommentView(
        id=record.id,
        content=record.content,
        author_id=author.id if author else record.user_id,
        author_username=author.username if author else UNKNOWN_AUTHOR,
        author_full_name=author.full_name if author else None,
        author_avatar_url=author.avatar_url if author else None,
        created_at=record.created_at,
        updated_at=record.updated_at,
        is_edited=(
            record.updated_at is not None
            and record.created_at is not None
            and record.updated_at != record.created_at
        ),
    )


class CommentThread(Controller):
    """
    Ordered comment list with add, edit and delete

    A new comment is shown only once the server has returned it (with its
    real id and timestamp); is_submitting covers the wait. A failed add keeps
    the text in `draft` so it can be retried.
    """

    def __init__(
        self,
        service: InteractionService,
        session: SessionContext,
        image_id: Optional[str] = None,
        feedback: Optional[Feedback] = None,
        page_size: int = settings.DEFAULT_PAGE_SIZE,
    ):
        super().__init__(session, feedback)
        self.service = service
        self.image_id = image_id
        self.page_size = page_size
        self.comments: List[CommentView] = []
        self.draft = ""
        self.is_loading = False
        self.is_submitting = False

    @property
    def count(self) -> int:
        return len(self.comments)

    def _index_of(self, comment_id: str) -> Optional[int]:
        for index, comment in enumerate(self.comments):
            if comment.id == comment_id:
                return index
        return None

    async def load(self) -> bool:
        """Replace the list with the current first page"""
        if not self.image_id:
            return False

        self.is_loading = True
        try:
            records = await self.service.get_image_comments(self.image_id, limit=self.page_size)
        except GalleryError as e:
            if not self.disposed:
                self._fail(e, "Failed to load comments")
            return False
        finally:
            self.is_loading = False

        if self.disposed:
            return False
        self.comments = [normalize_comment(record) for record in records]
        return True

    async def add(self, content: Optional[str] = None) -> bool:
        """
        Post a comment (the draft when content is omitted)

        Preconditions are checked in order: signed in, non-empty content,
        image loaded. Each failure has its own message and sends no request.
        """
        text = self.draft if content is None else content
        self.draft = text

        try:
            user_id = self._require_user_id()
            if not text.strip():
                raise EmptyContentError()
            image_id = self._require_entity(self.image_id)
        except GalleryError as e:
            self._fail(e)
            return False

        self.is_submitting = True
        try:
            record = await self.service.add_comment(image_id, user_id, text.strip())
        except GalleryError as e:
            if not self.disposed:
                self._fail(e, "Failed to post comment")
            return False
        finally:
            self.is_submitting = False

        if self.disposed:
            return False

        self.comments.insert(0, normalize_comment(record))
        self.draft = ""
        self._succeed("Comment posted")
        return True

    async def update(self, comment_id: str, content: str) -> bool:
        """Edit in place; the item is replaced by the server's version"""
        try:
            user_id = self._require_user_id()
            if not content.strip():
                raise EmptyContentError()
        except GalleryError as e:
            self._fail(e)
            return False

        try:
            record = await self.service.update_comment(comment_id, user_id, content.strip())
        except GalleryError as e:
            if not self.disposed:
                self._fail(e, "Failed to update comment")
            return False

        if self.disposed:
            return False

        index = self._index_of(comment_id)
        if index is not None:
            self.comments[index] = normalize_comment(record)
        self._succeed("Comment updated")
        return True

    async def delete(self, comment_id: str) -> bool:
        try:
            user_id = self._require_user_id()
            image_id = self._require_entity(self.image_id)
        except GalleryError as e:
            self._fail(e)
            return False

        try:
            await self.service.delete_comment(comment_id, user_id, image_id)
        except GalleryError as e:
            if not self.disposed:
                self._fail(e, "Failed to delete comment")
            return False

        if self.disposed:
            return False

        self.comments = [comment for comment in self.comments if comment.id != comment_id]
        self._succeed("Comment deleted")
        return True
