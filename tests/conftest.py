"""
Shared test fixtures for relaycat tests.

This module provides common fixtures used across all test types:
- Loopback peers (echo, send-and-close, silent)
- Connected socket pairs wrapped as Connection objects
- Local input streams that block like an idle terminal
- Helpers to run a relay in a background thread with a deadline
"""

import os
import socket
import threading
from collections.abc import Callable

import pytest

from relaycat.connector import Connection

# ============================================================================
# LOOPBACK PEERS
# ============================================================================


class PeerServer:
    """One-shot TCP server on 127.0.0.1 that runs a handler per connection."""

    def __init__(self, handler: Callable[[socket.socket, "PeerServer"], None]):
        self.handler = handler
        self.listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self.listener.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        self.listener.bind(("127.0.0.1", 0))
        self.listener.listen(1)
        self.port = self.listener.getsockname()[1]
        self.accepted = threading.Event()
        self.received = bytearray()
        self._thread = threading.Thread(target=self._serve, daemon=True)
        self._thread.start()

    def _serve(self) -> None:
        try:
            conn, _ = self.listener.accept()
        except OSError:
            return
        self.accepted.set()
        with conn:
            self.handler(conn, self)

    def close(self) -> None:
        self.listener.close()
        self._thread.join(timeout=5)


def _echo(conn: socket.socket, server: PeerServer) -> None:
    while True:
        try:
            data = conn.recv(4096)
        except OSError:
            return
        if not data:
            return
        server.received.extend(data)
        conn.sendall(data)


@pytest.fixture
def echo_server():
    """Peer that writes back every chunk it reads."""
    server = PeerServer(_echo)
    yield server
    server.close()


@pytest.fixture
def make_server():
    """Factory for peers with a custom handler(conn, server)."""
    servers = []

    def _make(handler):
        server = PeerServer(handler)
        servers.append(server)
        return server

    yield _make
    for server in servers:
        server.close()


@pytest.fixture
def closed_port():
    """A loopback port with nothing listening on it."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


@pytest.fixture
def blackhole_port():
    """A loopback port whose accept queue is full, so new connects hang.

    The listener never accepts. Once its backlog is filled, further SYNs
    are dropped and a connect attempt only ends at its timeout.
    """
    listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    listener.bind(("127.0.0.1", 0))
    listener.listen(0)
    port = listener.getsockname()[1]

    fillers = []
    for _ in range(16):
        filler = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        filler.settimeout(0.2)
        try:
            filler.connect(("127.0.0.1", port))
        except OSError:
            filler.close()
            break
        fillers.append(filler)
    else:
        for filler in fillers:
            filler.close()
        listener.close()
        pytest.skip("accept queue never filled; cannot simulate an unanswered connect")

    yield port

    for filler in fillers:
        filler.close()
    listener.close()


# ============================================================================
# CONNECTION AND STREAM FIXTURES
# ============================================================================


@pytest.fixture
def connection_pair():
    """(Connection, remote socket) joined by a socketpair."""
    local, remote = socket.socketpair()
    connection = Connection(local, "socketpair")
    yield connection, remote
    connection.close()
    remote.close()


@pytest.fixture
def idle_input():
    """Unbuffered local input that blocks until the test ends.

    Behaves like a terminal nobody is typing into. The write end is closed
    at teardown so an abandoned reader thread sees EOF and exits.
    """
    read_fd, write_fd = os.pipe()
    stream = open(read_fd, "rb", buffering=0)
    yield stream
    os.close(write_fd)


# ============================================================================
# RELAY HELPERS
# ============================================================================


def run_with_deadline(func, timeout: float = 5.0):
    """Run func in a thread; fail the test if it has not returned in time."""
    outcome = {}

    def _target():
        try:
            outcome["value"] = func()
        except BaseException as e:  # surfaced to the test below
            outcome["error"] = e

    thread = threading.Thread(target=_target, daemon=True)
    thread.start()
    thread.join(timeout)
    if thread.is_alive():
        pytest.fail(f"did not finish within {timeout}s")
    if "error" in outcome:
        raise outcome["error"]
    return outcome["value"]


@pytest.fixture
def deadline():
    """Expose run_with_deadline to tests."""
    return run_with_deadline
