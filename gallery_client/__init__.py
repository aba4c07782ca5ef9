"""
Client-side interaction and state layer for the gallery app
"""
from .app import GalleryApp, configure_logging
from .cache import TTLCache
from .config import settings
from .exceptions import (
    AlreadyFollowingError,
    BackendError,
    BackendTimeoutError,
    ConflictError,
    EmptyContentError,
    EntityNotReadyError,
    GalleryError,
    InvalidFileError,
    NotAuthenticatedError,
    NotFoundError,
    NotOwnerError,
    PreconditionError,
    SelfFollowError,
    WeakPasswordError,
)

__version__ = "1.0.0"


__all__ = [
    # app.py
    "GalleryApp",
    "configure_logging",
    # cache.py
    "TTLCache",
    # config.py
    "settings",
    # exceptions.py
    "AlreadyFollowingError",
    "BackendError",
    "BackendTimeoutError",
    "ConflictError",
    "EmptyContentError",
    "EntityNotReadyError",
    "GalleryError",
    "InvalidFileError",
    "NotAuthenticatedError",
    "NotFoundError",
    "NotOwnerError",
    "PreconditionError",
    "SelfFollowError",
    "WeakPasswordError",
]
