from .base import Controller
from .comments import CommentThread, normalize_comment
from .feed import PagedFeedLoader
from .feedback import CallbackFeedback, Feedback
from .follow import FollowButton
from .interactions import InteractionController
from .notifications import NotificationInbox


__all__ = [
    # base.py
    "Controller",
    # comments.py
    "CommentThread",
    "normalize_comment",
    # feed.py
    "PagedFeedLoader",
    # feedback.py
    "CallbackFeedback",
    "Feedback",
    # follow.py
    "FollowButton",
    # interactions.py
    "InteractionController",
    # notifications.py
    "NotificationInbox",
]
