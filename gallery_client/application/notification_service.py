"""
Notification service - inbox reads, read state and notification fan-out
"""
from typing import Iterable, List, Optional
import logging

from ..config import settings
from ..infrastructure.backend import BackendClient, Query
from ..schemas import Notification, NotificationCreate, NotificationType, parse_model, parse_models

logger = logging.getLogger(__name__)

PREVIEW_LENGTH = 50


def _preview(text: str, length: int = PREVIEW_LENGTH) -> str:
    return text[:length] + ("..." if len(text) > length else "")


class NotificationService:
    """
    Notification reads degrade to empty results; creation never fails the
    action that triggered it (the failure is logged and None returned).
    """

    def __init__(self, backend: BackendClient):
        self.backend = backend

    async def get_notifications(
        self, user_id: str, limit: int = settings.DEFAULT_PAGE_SIZE, offset: int = 0
    ) -> List[Notification]:
        try:
            rows = await self.backend.select(
                Query("notifications")
                .eq("user_id", user_id)
                .order("created_at")
                .range(offset, offset + limit - 1)
            )
            return parse_models(Notification, rows)
        except Exception as e:
            logger.warning(f"Failed to load notifications for {user_id}: {e}")
            return []

    async def get_unread_count(self, user_id: str) -> int:
        try:
            return await self.backend.count(
                Query("notifications", "id").eq("user_id", user_id).eq("read", False)
            )
        except Exception as e:
            logger.warning(f"Failed to count unread notifications for {user_id}: {e}")
            return 0

    async def mark_as_read(self, notification_id: str) -> None:
        await self.backend.update(
            Query("notifications", "id").eq("id", notification_id), {"read": True}
        )

    async def mark_all_as_read(self, user_id: str) -> None:
        await self.backend.update(
            Query("notifications", "id").eq("user_id", user_id).eq("read", False),
            {"read": True},
        )

    async def delete_notification(self, notification_id: str) -> None:
        await self.backend.delete(Query("notifications").eq("id", notification_id))

    async def create_notification(self, notification: NotificationCreate) -> Optional[Notification]:
        """Insert one notification; returns None if the insert failed"""
        try:
            rows = await self.backend.insert(
                "notifications", notification.model_dump(mode="json", exclude_none=True)
            )
        except Exception as e:
            logger.warning(
                f"Failed to create {notification.type.value} notification "
                f"for {notification.user_id}: {e}"
            )
            return None
        return parse_model(Notification, rows[0]) if rows else None

    async def create_bulk_notifications(
        self, notifications: Iterable[NotificationCreate]
    ) -> List[Notification]:
        payload = [n.model_dump(mode="json", exclude_none=True) for n in notifications]
        if not payload:
            return []
        try:
            rows = await self.backend.insert("notifications", payload)
        except Exception as e:
            logger.warning(f"Failed to create {len(payload)} notifications: {e}")
            return []
        return parse_models(Notification, rows)

    # Helpers for the actions that notify someone
    async def notify_like(
        self,
        owner_id: str,
        liker_id: str,
        liker_name: str,
        image_id: str,
        image_url: Optional[str] = None,
        liker_avatar: Optional[str] = None,
    ) -> Optional[Notification]:
        if owner_id == liker_id:
            return None
        return await self.create_notification(
            NotificationCreate(
                user_id=owner_id,
                type=NotificationType.LIKE,
                title="New like",
                message=f"{liker_name} liked your artwork",
                link=f"/artwork/{image_id}",
                actor_id=liker_id,
                actor_name=liker_name,
                actor_avatar=liker_avatar,
                image_id=image_id,
                image_url=image_url,
            )
        )

    async def notify_comment(
        self,
        owner_id: str,
        commenter_id: str,
        commenter_name: str,
        image_id: str,
        comment_text: str,
        comment_id: Optional[str] = None,
        image_url: Optional[str] = None,
        commenter_avatar: Optional[str] = None,
    ) -> Optional[Notification]:
        if owner_id == commenter_id:
            return None
        link = f"/artwork/{image_id}"
        if comment_id:
            link += f"#comment-{comment_id}"
        return await self.create_notification(
            NotificationCreate(
                user_id=owner_id,
                type=NotificationType.COMMENT,
                title="New comment",
                message=f"{commenter_name} commented on your artwork: {_preview(comment_text)}",
                link=link,
                actor_id=commenter_id,
                actor_name=commenter_name,
                actor_avatar=commenter_avatar,
                image_id=image_id,
                image_url=image_url,
            )
        )

    async def notify_reply(
        self,
        commenter_id: str,
        replier_id: str,
        replier_name: str,
        image_id: str,
        reply_text: str,
        comment_id: str,
        replier_avatar: Optional[str] = None,
    ) -> Optional[Notification]:
        if commenter_id == replier_id:
            return None
        return await self.create_notification(
            NotificationCreate(
                user_id=commenter_id,
                type=NotificationType.REPLY,
                title="New reply",
                message=f"{replier_name} replied to your comment: {_preview(reply_text)}",
                link=f"/artwork/{image_id}#comment-{comment_id}",
                actor_id=replier_id,
                actor_name=replier_name,
                actor_avatar=replier_avatar,
                image_id=image_id,
            )
        )

    async def notify_follow(
        self,
        followed_id: str,
        follower_id: str,
        follower_name: str,
        follower_username: str,
        follower_avatar: Optional[str] = None,
    ) -> Optional[Notification]:
        if followed_id == follower_id:
            return None
        return await self.create_notification(
            NotificationCreate(
                user_id=followed_id,
                type=NotificationType.FOLLOW,
                title="New follower",
                message=f"{follower_name} started following you",
                link=f"/user/{follower_username}",
                actor_id=follower_id,
                actor_name=follower_name,
                actor_avatar=follower_avatar,
            )
        )

    async def notify_followers_new_artwork(
        self,
        follower_ids: Iterable[str],
        artist_id: str,
        artist_name: str,
        image_id: str,
        image_title: str,
        image_url: Optional[str] = None,
    ) -> List[Notification]:
        return await self.create_bulk_notifications(
            NotificationCreate(
                user_id=follower_id,
                type=NotificationType.SYSTEM,
                title="New artwork",
                message=f'{artist_name} published "{image_title}"',
                link=f"/artwork/{image_id}",
                actor_id=artist_id,
                actor_name=artist_name,
                image_id=image_id,
                image_url=image_url,
            )
            for follower_id in follower_ids
            if follower_id != artist_id
        )

    async def notify_system(
        self, user_ids: Iterable[str], title: str, message: str, link: Optional[str] = None
    ) -> List[Notification]:
        return await self.create_bulk_notifications(
            NotificationCreate(
                user_id=user_id, type=NotificationType.SYSTEM, title=title, message=message, link=link
            )
            for user_id in user_ids
        )
