"""
Notification inbox controller with periodic polling
"""
import asyncio
from typing import List, Optional
import logging

from .base import Controller
from .feedback import Feedback
from ..application.notification_service import NotificationService
from ..application.session import SessionContext
from ..config import settings
from ..exceptions import GalleryError
from ..schemas import Notification

logger = logging.getLogger(__name__)


class NotificationInbox(Controller):
    """
    The signed-in user's notifications and unread count

    Reads degrade silently. Read/delete actions update the local list
    first and restore it if the request fails.
    """

    def __init__(
        self,
        service: NotificationService,
        session: SessionContext,
        feedback: Optional[Feedback] = None,
        poll_interval: float = settings.NOTIFICATION_POLL_INTERVAL_SECONDS,
        page_size: int = settings.DEFAULT_PAGE_SIZE,
    ):
        super().__init__(session, feedback)
        self.service = service
        self.poll_interval = poll_interval
        self.page_size = page_size
        self.notifications: List[Notification] = []
        self.unread_count = 0
        self.is_loading = False
        self._poll_task: Optional[asyncio.Task] = None

    async def load(self, silent: bool = False) -> None:
        """Reload the list and unread count; silent skips the loading flag"""
        user_id = self.session.user_id
        if not user_id:
            self.notifications = []
            self.unread_count = 0
            return

        if not silent:
            self.is_loading = True
        try:
            notifications, unread = await asyncio.gather(
                self.service.get_notifications(user_id, limit=self.page_size),
                self.service.get_unread_count(user_id),
            )
        finally:
            if not silent:
                self.is_loading = False

        if self.disposed or self.session.user_id != user_id:
            return
        self.notifications = notifications
        self.unread_count = unread

    def _find(self, notification_id: str) -> Optional[Notification]:
        for notification in self.notifications:
            if notification.id == notification_id:
                return notification
        return None

    async def mark_as_read(self, notification_id: str) -> bool:
        notification = self._find(notification_id)
        was_unread = notification is not None and not notification.read
        if was_unread:
            notification.read = True
            self.unread_count = max(0, self.unread_count - 1)

        try:
            await self.service.mark_as_read(notification_id)
        except GalleryError as e:
            if was_unread:
                notification.read = False
                self.unread_count += 1
            self._fail(e, "Could not update notification")
            return False
        return True

    async def mark_all_as_read(self) -> bool:
        try:
            user_id = self._require_user_id()
        except GalleryError as e:
            self._fail(e)
            return False

        unread = [n for n in self.notifications if not n.read]
        previous_count = self.unread_count
        for notification in unread:
            notification.read = True
        self.unread_count = 0

        try:
            await self.service.mark_all_as_read(user_id)
        except GalleryError as e:
            for notification in unread:
                notification.read = False
            self.unread_count = previous_count
            self._fail(e, "Could not update notifications")
            return False

        self._succeed("All notifications marked as read")
        return True

    async def delete(self, notification_id: str) -> bool:
        previous = list(self.notifications)
        previous_count = self.unread_count
        notification = self._find(notification_id)
        self.notifications = [n for n in self.notifications if n.id != notification_id]
        if notification is not None and not notification.read:
            self.unread_count = max(0, self.unread_count - 1)

        try:
            await self.service.delete_notification(notification_id)
        except GalleryError as e:
            self.notifications = previous
            self.unread_count = previous_count
            self._fail(e, "Could not delete notification")
            return False
        return True

    # Polling
    @property
    def is_polling(self) -> bool:
        return self._poll_task is not None and not self._poll_task.done()

    def start_polling(self):
        """Refresh silently every poll_interval seconds until stopped"""
        if self.is_polling:
            return
        self._poll_task = asyncio.create_task(self._poll())

    async def stop_polling(self):
        task, self._poll_task = self._poll_task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _poll(self):
        while not self.disposed:
            await asyncio.sleep(self.poll_interval)
            try:
                await self.load(silent=True)
            except Exception:
                logger.exception("Notification poll failed")

    async def close(self):
        """Stop polling and drop late results"""
        self.dispose()
        await self.stop_polling()
