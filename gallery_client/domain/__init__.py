from .models import (
    CommentView,
    FeedState,
    InteractionState,
    OptimisticToggle,
    ToggleStatus,
)


__all__ = [
    # models.py
    "CommentView",
    "FeedState",
    "InteractionState",
    "OptimisticToggle",
    "ToggleStatus",
]
