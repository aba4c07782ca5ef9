"""
Domain models - client-side state held by controllers
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Generic, List, Optional, TypeVar

T = TypeVar("T")


class ToggleStatus(str, Enum):
    """Lifecycle of one optimistically mutated boolean"""
    UNSET = "unset"
    PENDING = "pending"
    SETTLED = "settled"
    ROLLED_BACK = "rolled_back"


@dataclass
class OptimisticToggle:
    """
    Boolean UI state with at most one mutation in flight

    begin() snapshots the last settled value and optionally shows an
    optimistic one; settle() adopts the server's answer; rollback() restores
    the snapshot.
    """
    value: bool = False
    status: ToggleStatus = ToggleStatus.UNSET
    _previous: Optional[bool] = field(default=None, repr=False)

    @property
    def is_pending(self) -> bool:
        return self.status == ToggleStatus.PENDING

    def begin(self, optimistic_value: Optional[bool] = None) -> bool:
        """Enter PENDING; returns False if a mutation is already in flight"""
        if self.is_pending:
            return False
        self._previous = self.value
        self.status = ToggleStatus.PENDING
        if optimistic_value is not None:
            self.value = optimistic_value
        return True

    def settle(self, value: bool) -> None:
        self.value = value
        self.status = ToggleStatus.SETTLED
        self._previous = None

    def rollback(self) -> None:
        if self._previous is not None:
            self.value = self._previous
        self.status = ToggleStatus.ROLLED_BACK
        self._previous = None

    def load(self, value: bool) -> None:
        """Adopt a freshly fetched value unless a mutation is in flight"""
        if not self.is_pending:
            self.settle(value)


@dataclass
class InteractionState:
    """Per (viewer, image) like/favorite state and counters"""
    like: OptimisticToggle = field(default_factory=OptimisticToggle)
    favorite: OptimisticToggle = field(default_factory=OptimisticToggle)
    like_count: int = 0
    view_count: int = 0
    comment_count: int = 0
    is_loading: bool = False

    @property
    def is_liked(self) -> bool:
        return self.like.value

    @property
    def is_favorited(self) -> bool:
        return self.favorite.value


@dataclass
class CommentView:
    """Comment shaped for display, with the author flattened in"""
    id: str
    content: str
    author_id: Optional[str]
    author_username: str
    author_full_name: Optional[str]
    author_avatar_url: Optional[str]
    created_at: Optional[datetime]
    updated_at: Optional[datetime]
    is_edited: bool = False


@dataclass
class FeedState(Generic[T]):
    """Items loaded so far and where the next page starts"""
    items: List[T] = field(default_factory=list)
    offset: int = 0
    has_more: bool = True
    is_loading: bool = False
