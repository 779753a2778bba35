"""Single-fire shutdown signal shared by the two relay directions.

Whichever direction finishes first fires the signal; every later attempt is
a no-op. The first firing's reason (and error, if any) is kept for logging.

Public API:
    ShutdownSignal: Thread-safe one-shot event
    ShutdownReason: Why the session ended
"""

import logging
import threading
from enum import Enum

logger = logging.getLogger(__name__)


class ShutdownReason(str, Enum):
    """Condition that ended a relay session."""

    REMOTE_CLOSED = "remote_closed"
    LOCAL_EOF = "local_eof"
    INBOUND_ERROR = "inbound_error"
    OUTPUT_ERROR = "output_error"
    INPUT_ERROR = "input_error"
    OUTBOUND_ERROR = "outbound_error"

    @property
    def is_error(self) -> bool:
        """Check if the session ended because of an I/O failure."""
        return self not in (ShutdownReason.REMOTE_CLOSED, ShutdownReason.LOCAL_EOF)


class ShutdownSignal:
    """One-shot event: fire() succeeds once, wait() returns once fired.

    Example:
        >>> signal = ShutdownSignal()
        >>> signal.fire(ShutdownReason.LOCAL_EOF)
        True
        >>> signal.fire(ShutdownReason.REMOTE_CLOSED)
        False
        >>> signal.reason
        <ShutdownReason.LOCAL_EOF: 'local_eof'>
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._event = threading.Event()
        self._reason: ShutdownReason | None = None
        self._error: BaseException | None = None

    def fire(self, reason: ShutdownReason, error: BaseException | None = None) -> bool:
        """Fire the signal.

        Args:
            reason: Why the caller's direction stopped
            error: Exception that stopped it, if any

        Returns:
            True for the call that fired the signal, False for every later one
        """
        with self._lock:
            if self._event.is_set():
                logger.debug(f"Shutdown already signalled, ignoring {reason.value}")
                return False
            self._reason = reason
            self._error = error
            self._event.set()

        logger.debug(f"Shutdown signalled: {reason.value}")
        return True

    def wait(self, timeout: float | None = None) -> bool:
        """Block until fired; returns False only if timeout elapsed first."""
        return self._event.wait(timeout)

    @property
    def fired(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> ShutdownReason | None:
        return self._reason

    @property
    def error(self) -> BaseException | None:
        return self._error
