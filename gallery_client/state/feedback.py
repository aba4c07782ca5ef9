"""
Feedback sink - short user-facing confirmations and error messages
"""
from typing import Callable, Optional
import logging

logger = logging.getLogger(__name__)


class Feedback:
    """Default sink: writes messages to the log"""

    def success(self, message: str) -> None:
        logger.info(message)

    def error(self, message: str) -> None:
        logger.warning(message)


class CallbackFeedback(Feedback):
    """Forward messages to embedding code (a toast, a status bar)"""

    def __init__(
        self,
        on_success: Optional[Callable[[str], None]] = None,
        on_error: Optional[Callable[[str], None]] = None,
    ):
        self.on_success = on_success
        self.on_error = on_error

    def success(self, message: str) -> None:
        if self.on_success:
            self.on_success(message)
        else:
            super().success(message)

    def error(self, message: str) -> None:
        if self.on_error:
            self.on_error(message)
        else:
            super().error(message)
