"""Session controller: connect, relay, and map the outcome to an exit code.

State machine:

    IDLE -> CONNECTING -> RELAYING -> TERMINATED
                 \\_____________________/
                    (connect failure)

No transition leads back; a controller runs one session.

Exit codes:
    0   session started and the relay completed (any cause)
    1   connect failure
    130 interrupted by Ctrl+C
"""

import logging
from enum import Enum

from rich.console import Console
from rich.markup import escape

from relaycat.config import RelayConfig
from relaycat.connector import ConnectError, Connector
from relaycat.errors import RelaycatError
from relaycat.relay import DEFAULT_CHUNK_SIZE, LocalStreams, Relay, RelayResult

logger = logging.getLogger(__name__)

EXIT_SUCCESS = 0
EXIT_FAILURE = 1
EXIT_INTERRUPTED = 130


class SessionStateError(RelaycatError):
    """Raised on an illegal session state transition."""

    pass


class SessionState(str, Enum):
    """Lifecycle of a session."""

    IDLE = "idle"
    CONNECTING = "connecting"
    RELAYING = "relaying"
    TERMINATED = "terminated"


_TRANSITIONS: dict[SessionState, tuple[SessionState, ...]] = {
    SessionState.IDLE: (SessionState.CONNECTING,),
    SessionState.CONNECTING: (SessionState.RELAYING, SessionState.TERMINATED),
    SessionState.RELAYING: (SessionState.TERMINATED,),
    SessionState.TERMINATED: (),
}


class SessionController:
    """Run one relay session for a configuration.

    Status and error lines go to stderr so stdout stays byte-exact to
    what the peer sent.

    Example:
        >>> config = RelayConfig(host="localhost", port=7, timeout=5)
        >>> exit_code = SessionController(config).run()
    """

    def __init__(
        self,
        config: RelayConfig,
        streams: LocalStreams | None = None,
        console: Console | None = None,
        quiet: bool = False,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ):
        self.config = config
        self.streams = streams
        self.console = console if console is not None else Console(stderr=True)
        self.quiet = quiet
        self.chunk_size = chunk_size
        self.state = SessionState.IDLE
        self.result: RelayResult | None = None

    def _transition(self, new_state: SessionState) -> None:
        if new_state not in _TRANSITIONS[self.state]:
            raise SessionStateError(
                f"Invalid session transition: {self.state.value} -> {new_state.value}"
            )
        logger.debug(f"Session {self.state.value} -> {new_state.value}")
        self.state = new_state

    def run(self) -> int:
        """Connect and relay until the session ends.

        Returns:
            int: Process exit code

        Raises:
            SessionStateError: If this controller has already run
        """
        self._transition(SessionState.CONNECTING)

        try:
            connection = Connector.connect(self.config)
        except ConnectError as e:
            self._transition(SessionState.TERMINATED)
            self.console.print(f"[red]Error:[/red] {escape(str(e))}", highlight=False)
            return EXIT_FAILURE

        self._transition(SessionState.RELAYING)
        if not self.quiet:
            self.console.print(
                f"Connected to {self.config}. Press Ctrl+D to exit.",
                markup=False,
                highlight=False,
            )

        owns_streams = self.streams is None
        try:
            with connection:
                streams = LocalStreams.from_process() if owns_streams else self.streams
                self.result = Relay(connection, streams, chunk_size=self.chunk_size).run()
            if owns_streams:
                streams.close(include_input=self.result.input_released)
        except KeyboardInterrupt:
            logger.info("Session interrupted by user")
            return EXIT_INTERRUPTED
        finally:
            self._transition(SessionState.TERMINATED)

        # Relay I/O errors end the session but do not change the exit code
        return EXIT_SUCCESS
