"""
Connector Module

Open the outbound TCP connection for a session.

Contract:
- One attempt per call, no internal retry
- One deadline covers resolution and every address tried (0 selects the
  default timeout)
- Once connected, the socket is blocking with no read timeout
- Every failure (resolution, refusal, timeout) surfaces as ConnectError
"""

import logging
import socket
import threading
import time
from contextlib import suppress

from relaycat.config import DEFAULT_TIMEOUT, RelayConfig
from relaycat.errors import RelaycatError

logger = logging.getLogger(__name__)


class ConnectError(RelaycatError):
    """Raised when the connection to the target cannot be established."""

    def __init__(self, address: str, cause: BaseException):
        self.address = address
        self.cause = cause
        super().__init__(f"failed to connect to {address}: {_describe(cause)}")


def _describe(cause: BaseException) -> str:
    if isinstance(cause, TimeoutError) and str(cause) in ("", "timed out"):
        return "connection timed out"
    return str(cause) or type(cause).__name__


def _resolve(host: str, port: int, timeout: float) -> list[tuple]:
    """
    Resolve host:port to stream-socket addresses within timeout.

    getaddrinfo() takes no timeout, so the lookup runs on a daemon thread
    that is abandoned if it outlives the deadline.

    Raises:
        TimeoutError: If resolution did not finish within timeout
        OSError: If resolution failed
    """
    outcome: dict[str, object] = {}
    done = threading.Event()

    def _lookup() -> None:
        try:
            outcome["addresses"] = socket.getaddrinfo(host, port, 0, socket.SOCK_STREAM)
        except OSError as e:
            outcome["error"] = e
        finally:
            done.set()

    threading.Thread(target=_lookup, name="relay-resolve", daemon=True).start()
    if not done.wait(timeout):
        raise TimeoutError("name resolution timed out")
    if "error" in outcome:
        raise outcome["error"]
    return outcome["addresses"]


class Connection:
    """
    Duplex byte connection to a remote endpoint.

    The inbound relay direction only calls recv() and the outbound direction
    only calls send_all(), so neither needs a lock. close() is the one
    operation both sides may race on; it is applied at most once.
    """

    def __init__(self, sock: socket.socket, address: str):
        self._sock = sock
        self.address = address
        self._close_lock = threading.Lock()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def recv(self, size: int) -> bytes:
        """Read up to size bytes; b"" means the peer closed its side."""
        return self._sock.recv(size)

    def send_all(self, data: bytes) -> None:
        """Transmit every byte of data before returning."""
        self._sock.sendall(data)

    def close(self) -> bool:
        """
        Release the socket.

        Shuts down both halves first so a recv() blocked in another thread
        returns, then closes the descriptor.

        Returns:
            bool: True if this call closed the socket, False if it was
            already closed
        """
        with self._close_lock:
            if self._closed:
                return False
            self._closed = True

        # ENOTCONN when the peer already reset the connection
        with suppress(OSError):
            self._sock.shutdown(socket.SHUT_RDWR)
        self._sock.close()
        logger.debug(f"Connection to {self.address} closed")
        return True

    def __enter__(self) -> "Connection":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __repr__(self) -> str:
        state = "closed" if self._closed else "open"
        return f"Connection({self.address}, {state})"


class Connector:
    """
    Establish TCP connections within a timeout.

    Example:
        >>> config = RelayConfig(host="example.com", port=80, timeout=5)
        >>> with Connector.connect(config) as conn:
        ...     conn.send_all(b"HEAD / HTTP/1.0\\r\\n\\r\\n")
    """

    @classmethod
    def connect(cls, config: RelayConfig) -> Connection:
        """
        Connect to config.host:config.port.

        Args:
            config: Validated session configuration

        Returns:
            Connection: Open connection; the caller owns it and must close it

        Raises:
            ConnectError: If resolution, connection or the timeout fails
        """
        address = str(config)
        timeout = config.connect_timeout
        deadline = time.monotonic() + timeout
        logger.debug(f"Connecting to {address} (timeout {timeout}s)")

        try:
            candidates = _resolve(config.host, config.port, timeout)
        except OSError as e:
            raise ConnectError(address, e) from e

        last_error: OSError | None = None
        for family, sock_type, proto, _, sockaddr in candidates:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                last_error = TimeoutError("connection timed out")
                break

            sock = socket.socket(family, sock_type, proto)
            try:
                sock.settimeout(remaining)
                sock.connect(sockaddr)
            except OSError as e:
                sock.close()
                logger.debug(f"Connect to {sockaddr} failed: {e}")
                last_error = e
                continue

            # Connect timeout only; relay reads block indefinitely
            sock.settimeout(None)
            logger.debug(f"Connected to {address} via {sockaddr}")
            return Connection(sock, address)

        if last_error is None:
            last_error = OSError(f"no addresses found for {config.host}")
        raise ConnectError(address, last_error) from last_error

    @classmethod
    def open(cls, host: str, port: int, timeout: int = DEFAULT_TIMEOUT) -> Connection:
        """Connect to host:port without building a RelayConfig first."""
        return cls.connect(RelayConfig(host=host, port=port, timeout=timeout))


def connect(config: RelayConfig) -> Connection:
    """Module-level shortcut for Connector.connect()."""
    return Connector.connect(config)


__all__ = ["ConnectError", "Connection", "Connector", "connect"]
