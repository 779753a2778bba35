"""Bidirectional byte relay between local streams and a connection.

Two threads copy bytes independently:

    inbound:   connection.recv() -> local output (written, then flushed)
    outbound:  local input       -> connection.send_all()

Whichever direction stops first (remote close, local EOF, or an I/O error)
fires the ShutdownSignal. The calling thread waits on that signal, closes
the connection, and returns a RelayResult.

Closing the connection shuts the socket down, which wakes an inbound recv()
that is still blocked, so the inbound thread is always joined and its
output flushed before run() returns. A blocked read on local input cannot
be interrupted portably; the outbound thread is a daemon and is left to
process exit when it is not the one that ended the session.

Public API:
    Relay: Runs one relay session
    RelayResult: Outcome of a session
    LocalStreams: The local input/output pair
    relay: Convenience wrapper around Relay(...).run()
"""

import logging
import sys
import threading
from dataclasses import dataclass
from typing import BinaryIO

from relaycat.connector import Connection
from relaycat.shutdown import ShutdownReason, ShutdownSignal

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 1024
JOIN_TIMEOUT = 2.0

_OUTBOUND_REASONS = (
    ShutdownReason.LOCAL_EOF,
    ShutdownReason.INPUT_ERROR,
    ShutdownReason.OUTBOUND_ERROR,
)


@dataclass
class LocalStreams:
    """Binary local input and output for a relay session."""

    input: BinaryIO
    output: BinaryIO

    @classmethod
    def from_process(cls) -> "LocalStreams":
        """Unbuffered views of the process's stdin and stdout.

        The views do not own file descriptors 0 and 1. Reads go straight to
        the descriptor, so an abandoned read holds no buffer lock at
        interpreter shutdown.
        """
        return cls(
            input=open(sys.stdin.fileno(), "rb", buffering=0, closefd=False),  # noqa: SIM115
            output=open(sys.stdout.fileno(), "wb", buffering=0, closefd=False),  # noqa: SIM115
        )

    def close(self, include_input: bool = True) -> None:
        """Close the stream objects.

        Pass include_input=False while a reader may still be blocked on the
        input stream.
        """
        self.output.close()
        if include_input:
            self.input.close()


@dataclass
class RelayResult:
    """Outcome of a relay session.

    Attributes:
        reason: Condition that ended the session (first to fire)
        error: Exception behind reason, if it was an I/O failure
        bytes_in: Bytes copied from the connection to local output
        bytes_out: Bytes copied from local input to the connection
        input_released: False while the outbound reader is still blocked on
            local input
    """

    reason: ShutdownReason
    error: BaseException | None = None
    bytes_in: int = 0
    bytes_out: int = 0
    input_released: bool = True

    @property
    def ok(self) -> bool:
        """True if the session ended by a clean close on either side."""
        return not self.reason.is_error


def _write_all(stream: BinaryIO, data: bytes) -> None:
    """Write every byte of data to stream, then flush it."""
    view = memoryview(data)
    while view:
        written = stream.write(view)
        if written is None:
            # Buffered writers return None only in non-blocking mode
            raise BlockingIOError("output stream would block")
        view = view[written:]
    stream.flush()


class Relay:
    """Copy bytes both ways until either direction ends.

    A Relay runs once. The connection is closed when run() returns,
    whichever way the session ended.

    Example:
        >>> streams = LocalStreams.from_process()
        >>> with Connector.connect(config) as conn:
        ...     result = Relay(conn, streams).run()
    """

    def __init__(
        self,
        connection: Connection,
        streams: LocalStreams,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        signal: ShutdownSignal | None = None,
    ):
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")

        self.connection = connection
        self.streams = streams
        self.chunk_size = chunk_size
        self.signal = signal if signal is not None else ShutdownSignal()
        self.bytes_in = 0
        self.bytes_out = 0
        self._started = False

    def run(self) -> RelayResult:
        """Relay until the shutdown signal fires, then release the connection.

        Returns:
            RelayResult describing how the session ended

        Raises:
            RuntimeError: If this relay has already run
        """
        if self._started:
            raise RuntimeError("Relay can only run once")
        self._started = True

        inbound = threading.Thread(
            target=self._run_direction,
            args=(self._copy_inbound, ShutdownReason.INBOUND_ERROR),
            name="relay-inbound",
            daemon=True,
        )
        outbound = threading.Thread(
            target=self._run_direction,
            args=(self._copy_outbound, ShutdownReason.INPUT_ERROR),
            name="relay-outbound",
            daemon=True,
        )

        logger.debug(f"Relaying {self.connection.address} (chunk size {self.chunk_size})")
        inbound.start()
        outbound.start()

        try:
            self.signal.wait()
        finally:
            self.connection.close()

        self._join(inbound)
        if self.signal.reason in _OUTBOUND_REASONS:
            self._join(outbound)
        else:
            logger.debug("Leaving outbound reader blocked on local input")

        result = RelayResult(
            reason=self.signal.reason,
            error=self.signal.error,
            bytes_in=self.bytes_in,
            bytes_out=self.bytes_out,
            input_released=not outbound.is_alive(),
        )
        if result.ok:
            logger.debug(
                f"Relay finished: {result.reason.value} "
                f"({result.bytes_in} bytes in, {result.bytes_out} bytes out)"
            )
        else:
            logger.warning(f"Relay ended on {result.reason.value}: {result.error}")
        return result

    def _join(self, thread: threading.Thread) -> None:
        thread.join(JOIN_TIMEOUT)
        if thread.is_alive():
            logger.warning(f"{thread.name} did not stop within {JOIN_TIMEOUT}s")

    def _run_direction(self, copy, failure_reason: ShutdownReason) -> None:
        """Run one copy loop and fire the signal with whatever ended it."""
        name = threading.current_thread().name
        logger.debug(f"{name} started")
        try:
            outcome = copy()
        except Exception as e:
            logger.exception(f"{name} failed unexpectedly")
            outcome = (failure_reason, e)

        if outcome is not None:
            self.signal.fire(*outcome)
        logger.debug(f"{name} stopped")

    def _copy_inbound(self) -> tuple[ShutdownReason, BaseException | None] | None:
        """Connection -> local output. Returns None if stopped by the signal."""
        while not self.signal.fired:
            try:
                chunk = self.connection.recv(self.chunk_size)
            except OSError as e:
                return ShutdownReason.INBOUND_ERROR, e
            if not chunk:
                return ShutdownReason.REMOTE_CLOSED, None

            try:
                _write_all(self.streams.output, chunk)
            except (OSError, ValueError) as e:
                # ValueError: output stream already closed
                return ShutdownReason.OUTPUT_ERROR, e
            self.bytes_in += len(chunk)
        return None

    def _copy_outbound(self) -> tuple[ShutdownReason, BaseException | None] | None:
        """Local input -> connection. Returns None if stopped by the signal."""
        source = self.streams.input
        read = getattr(source, "read1", None) or source.read

        while not self.signal.fired:
            try:
                chunk = read(self.chunk_size)
            except (OSError, ValueError) as e:
                return ShutdownReason.INPUT_ERROR, e
            if not chunk:
                return ShutdownReason.LOCAL_EOF, None

            try:
                self.connection.send_all(chunk)
            except OSError as e:
                return ShutdownReason.OUTBOUND_ERROR, e
            self.bytes_out += len(chunk)
        return None


def relay(
    connection: Connection,
    local_input: BinaryIO,
    local_output: BinaryIO,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> RelayResult:
    """Relay between connection and the given local streams until either ends."""
    streams = LocalStreams(input=local_input, output=local_output)
    return Relay(connection, streams, chunk_size=chunk_size).run()
