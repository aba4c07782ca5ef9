"""
Session context - the single holder of the signed-in user
"""
from enum import Enum
from typing import Callable, List, Optional
import logging

from ..schemas import AuthUser, Session

logger = logging.getLogger(__name__)


class AuthEvent(str, Enum):
    """Session change events delivered to subscribers"""
    SIGNED_IN = "signed_in"
    SIGNED_OUT = "signed_out"
    TOKEN_REFRESHED = "token_refreshed"
    USER_UPDATED = "user_updated"


SessionListener = Callable[[AuthEvent, Optional[AuthUser]], None]


class SessionContext:
    """
    Current session with subscribe/notify

    One instance is created per app and injected into every controller that
    needs to know who is signed in.
    """

    def __init__(self, session: Optional[Session] = None):
        self._session = session
        self._listeners: List[SessionListener] = []

    @property
    def session(self) -> Optional[Session]:
        return self._session

    @property
    def user(self) -> Optional[AuthUser]:
        return self._session.user if self._session else None

    @property
    def user_id(self) -> Optional[str]:
        user = self.user
        return user.id if user else None

    @property
    def access_token(self) -> Optional[str]:
        return self._session.access_token if self._session else None

    @property
    def is_authenticated(self) -> bool:
        return self._session is not None

    def set_session(self, session: Optional[Session], event: Optional[AuthEvent] = None):
        """Replace the session and notify subscribers"""
        self._session = session
        if event is None:
            event = AuthEvent.SIGNED_IN if session else AuthEvent.SIGNED_OUT
        self._notify(event)

    def update_user(self, user: AuthUser):
        if self._session is None:
            return
        self._session = self._session.model_copy(update={"user": user})
        self._notify(AuthEvent.USER_UPDATED)

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """Register listener; returns a function that unsubscribes it"""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, event: AuthEvent):
        user = self.user
        logger.debug(f"Session event {event.value} for user {user.id if user else None}")
        for listener in list(self._listeners):
            try:
                listener(event, user)
            except Exception:
                logger.exception(f"Session listener failed on {event.value}")
