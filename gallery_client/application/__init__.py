from .auth_service import AuthService
from .follow_service import FollowService
from .image_service import ImageService, popularity_score
from .interaction_service import InteractionService
from .notification_service import NotificationService
from .session import AuthEvent, SessionContext


__all__ = [
    # auth_service.py
    "AuthService",
    # follow_service.py
    "FollowService",
    # image_service.py
    "ImageService",
    "popularity_score",
    # interaction_service.py
    "InteractionService",
    # notification_service.py
    "NotificationService",
    # session.py
    "AuthEvent",
    "SessionContext",
]
