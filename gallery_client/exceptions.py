"""
Error taxonomy for the Gallery client

Precondition failures are raised before any request is sent. Conflict and
permission failures come back from the backend but carry a specific message.
Everything else from the network is a retryable BackendError.
"""
from typing import Optional


class GalleryError(Exception):
    """Base error with a short, human readable message"""

    default_message = "Something went wrong"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


# Precondition failures
class PreconditionError(GalleryError):
    """Detected client-side, no request was made"""


class NotAuthenticatedError(PreconditionError):
    default_message = "Please sign in"


class EntityNotReadyError(PreconditionError):
    default_message = "Still loading, please try again in a moment"


class EmptyContentError(PreconditionError):
    default_message = "Comment cannot be empty"


class SelfFollowError(PreconditionError):
    default_message = "You cannot follow yourself"


class InvalidFileError(PreconditionError):
    default_message = "File must be a valid image"


class WeakPasswordError(PreconditionError):
    default_message = "Password is too weak"


# Conflict and permission failures
class ConflictError(GalleryError):
    """The target is already in the requested state"""

    default_message = "Already in this state"


class AlreadyFollowingError(ConflictError):
    default_message = "You are already following this user"


class NotOwnerError(GalleryError):
    default_message = "You can only change your own content"


# Network / backend failures
class BackendError(GalleryError):
    """Request to the hosted backend failed"""

    default_message = "Request failed, please try again"

    def __init__(
        self,
        message: Optional[str] = None,
        status_code: Optional[int] = None,
        code: Optional[str] = None,
        details: Optional[str] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.details = details


class BackendTimeoutError(BackendError):
    default_message = "The request timed out, please try again"


class NotFoundError(BackendError):
    default_message = "Not found"
