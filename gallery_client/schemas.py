"""
Pydantic schemas for rows and payloads exchanged with the hosted backend

Rows coming back from the REST API are loosely typed; everything is parsed
through these models before the rest of the client touches it.
"""
from pydantic import BaseModel, Field, ValidationError, field_validator
from typing import Any, Dict, Iterable, List, Literal, Optional, Type, TypeVar
from datetime import datetime
from enum import Enum
import logging

from .exceptions import BackendError

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


def parse_model(model: Type[M], data: Any) -> M:
    """Validate one row, treating a malformed row as a backend failure"""
    try:
        return model.model_validate(data)
    except ValidationError as e:
        logger.error(f"Malformed {model.__name__} from backend: {e}")
        raise BackendError(details=f"Malformed {model.__name__} response") from e


def parse_models(model: Type[M], rows: Optional[Iterable[Any]]) -> List[M]:
    return [parse_model(model, row) for row in rows or []]


# Users
class UserProfile(BaseModel):
    """Public profile row (user_profiles)"""
    id: str
    username: str
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None
    bio: Optional[str] = None
    website: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ProfileUpdate(BaseModel):
    """Profile update request"""
    username: Optional[str] = Field(None, min_length=3, max_length=30)
    full_name: Optional[str] = Field(None, max_length=100)
    bio: Optional[str] = Field(None, max_length=500)
    website: Optional[str] = None
    avatar_url: Optional[str] = None


class AuthUser(BaseModel):
    """Identity returned by the auth API"""
    id: str
    email: Optional[str] = None
    user_metadata: Dict[str, Any] = {}
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("user_metadata", mode="before")
    @classmethod
    def default_metadata(cls, v):
        return v or {}


class Session(BaseModel):
    """Authenticated session"""
    access_token: str
    refresh_token: Optional[str] = None
    token_type: str = "bearer"
    expires_in: Optional[int] = None
    user: AuthUser


# Images
class ImageRecord(BaseModel):
    """Image row, optionally joined with its owner's profile"""
    id: str
    user_id: str
    title: str = ""
    description: Optional[str] = None
    image_url: str
    tags: List[str] = []
    category: Optional[str] = None
    like_count: int = 0
    view_count: int = 0
    comment_count: int = 0
    is_featured: bool = False
    is_published: bool = False
    published_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    user_profiles: Optional[UserProfile] = None

    # Filled in client-side
    is_liked: bool = False
    is_favorited: bool = False
    popularity_score: Optional[float] = None

    @field_validator("like_count", "view_count", "comment_count", mode="before")
    @classmethod
    def default_counts(cls, v):
        return 0 if v is None else v

    @field_validator("tags", mode="before")
    @classmethod
    def default_tags(cls, v):
        return [] if v is None else v

    @field_validator("title", mode="before")
    @classmethod
    def default_title(cls, v):
        return v or ""

    @field_validator("is_featured", "is_published", mode="before")
    @classmethod
    def default_flags(cls, v):
        return bool(v)


class ImageCreate(BaseModel):
    """Metadata sent alongside an upload"""
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    tags: Optional[List[str]] = Field(None, max_length=30)
    category: Optional[str] = None
    is_published: bool = False


class ImageUpdate(BaseModel):
    """Image update request"""
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    tags: Optional[List[str]] = Field(None, max_length=30)
    category: Optional[str] = None


class ImageFilters(BaseModel):
    """Listing filters for gallery queries"""
    category: Optional[str] = None
    tags: Optional[List[str]] = None
    sort_by: Literal["created_at", "like_count", "view_count"] = "created_at"
    sort_order: Literal["asc", "desc"] = "desc"
    limit: int = Field(20, ge=1, le=100)
    offset: int = Field(0, ge=0)


class ImageStats(BaseModel):
    """Counters and viewer state for one image"""
    like_count: int = 0
    view_count: int = 0
    comment_count: int = 0
    is_liked: bool = False
    is_favorited: bool = False

    @field_validator("like_count", "view_count", "comment_count", mode="before")
    @classmethod
    def default_counts(cls, v):
        return 0 if v is None else v


class LikeResult(BaseModel):
    """Server state after a like toggle"""
    is_liked: bool
    like_count: int


class FavoriteResult(BaseModel):
    """Server state after a favorite toggle"""
    is_favorited: bool


class TagCount(BaseModel):
    name: str
    count: int


class CategoryCount(BaseModel):
    name: str
    count: int


# Comments
class CommentRecord(BaseModel):
    """Comment row joined with the author's profile"""
    id: str
    content: str
    image_id: Optional[str] = None
    user_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    user_profiles: Optional[UserProfile] = None


# Follows
class FollowStats(BaseModel):
    """Follower / following counts for a user"""
    followers: int = 0
    following: int = 0


# Notifications
class NotificationType(str, Enum):
    """Notification kinds"""

    LIKE = "like"
    COMMENT = "comment"
    FOLLOW = "follow"
    MENTION = "mention"
    REPLY = "reply"
    SYSTEM = "system"


class Notification(BaseModel):
    """Notification row"""
    id: str
    user_id: str
    type: NotificationType
    title: str
    message: str
    link: Optional[str] = None
    read: bool = False
    created_at: Optional[datetime] = None
    actor_id: Optional[str] = None
    actor_name: Optional[str] = None
    actor_avatar: Optional[str] = None
    image_id: Optional[str] = None
    image_url: Optional[str] = None


class NotificationCreate(BaseModel):
    """Notification insert payload"""
    user_id: str
    type: NotificationType
    title: str = Field(..., max_length=200)
    message: str = Field(..., max_length=1000)
    link: Optional[str] = None
    actor_id: Optional[str] = None
    actor_name: Optional[str] = None
    actor_avatar: Optional[str] = None
    image_id: Optional[str] = None
    image_url: Optional[str] = None
    read: bool = False
