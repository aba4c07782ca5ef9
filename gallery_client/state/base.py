"""
Shared plumbing for UI-facing controllers
"""
from typing import Optional
import logging

from .feedback import Feedback
from ..application.session import SessionContext
from ..exceptions import (
    BackendError,
    EntityNotReadyError,
    GalleryError,
    NotAuthenticatedError,
)

logger = logging.getLogger(__name__)


class Controller:
    """
    Base for controllers that own one piece of UI state

    Mutating methods return True on success and False otherwise; the last
    failure message is kept in `error` and sent to the feedback sink. Once
    dispose() is called, results of requests still in flight are dropped.
    """

    def __init__(self, session: SessionContext, feedback: Optional[Feedback] = None):
        self.session = session
        self.feedback = feedback or Feedback()
        self.error: Optional[str] = None
        self._disposed = False

    @property
    def disposed(self) -> bool:
        return self._disposed

    def dispose(self):
        self._disposed = True

    def _require_user_id(self) -> str:
        user_id = self.session.user_id
        if not user_id:
            raise NotAuthenticatedError()
        return user_id

    @staticmethod
    def _require_entity(entity_id: Optional[str]) -> str:
        if not entity_id:
            raise EntityNotReadyError()
        return entity_id

    def _succeed(self, message: Optional[str] = None):
        self.error = None
        if message:
            self.feedback.success(message)

    def _fail(self, error: GalleryError, backend_message: Optional[str] = None):
        """
        Record and surface a failure

        Precondition, conflict and permission errors keep their own message;
        network and backend errors use backend_message when given.
        """
        text = error.message
        if backend_message and isinstance(error, BackendError):
            text = backend_message
        self.error = text
        logger.debug(f"{type(self).__name__} failed: {type(error).__name__}: {error}")
        self.feedback.error(text)
