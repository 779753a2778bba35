"""Session configuration for relaycat.

Configuration comes from the command line only. There is no config file
and nothing is read from the environment, so every invocation stands alone.

Public API:
    RelayConfig: Immutable, validated session configuration
    parse_port: Parse and range-check a port given as text
    DEFAULT_TIMEOUT: Connect timeout used when none (or 0) is given
"""

import re
from dataclasses import dataclass

DEFAULT_TIMEOUT = 10
MIN_PORT = 1
MAX_PORT = 65535

# ASCII digits with an optional sign, nothing else
_PORT_PATTERN = re.compile(r"[+-]?[0-9]+")


def validate_port(port: int) -> int:
    """Check that port lies in [MIN_PORT, MAX_PORT].

    Raises:
        ValueError: If port is out of range
    """
    if isinstance(port, bool) or not isinstance(port, int):
        raise ValueError(f"port must be an integer, got {port!r}")
    if port < MIN_PORT or port > MAX_PORT:
        raise ValueError(f"port must be between {MIN_PORT} and {MAX_PORT}, got {port}")
    return port


def parse_port(value: str | int) -> int:
    """Parse a port number from user input.

    Args:
        value: Port as given on the command line

    Returns:
        Port number in [1, 65535]

    Raises:
        ValueError: If value is not numeric or out of range

    Example:
        >>> parse_port("8080")
        8080
        >>> parse_port("70000")
        Traceback (most recent call last):
        ...
        ValueError: port must be between 1 and 65535, got 70000
    """
    if isinstance(value, int) and not isinstance(value, bool):
        return validate_port(value)

    text = str(value)
    if not _PORT_PATTERN.fullmatch(text):
        raise ValueError(f"invalid port number: {value!r}")
    return validate_port(int(text, 10))


@dataclass(frozen=True)
class RelayConfig:
    """Target endpoint and connect timeout for one session.

    Attributes:
        host: Hostname or IP address, resolved by the connector
        port: TCP port in [1, 65535]
        timeout: Connect timeout in seconds, 0 selects DEFAULT_TIMEOUT
    """

    host: str
    port: int
    timeout: int = DEFAULT_TIMEOUT

    def __post_init__(self):
        """Validate host, port and timeout."""
        if not self.host:
            raise ValueError("host must not be empty")
        validate_port(self.port)
        if isinstance(self.timeout, bool) or not isinstance(self.timeout, int):
            raise ValueError(f"timeout must be an integer, got {self.timeout!r}")
        if self.timeout < 0:
            raise ValueError("timeout must be non-negative")

    @property
    def address(self) -> tuple[str, int]:
        """Socket address tuple for this target."""
        return (self.host, self.port)

    @property
    def connect_timeout(self) -> int:
        """Effective connect timeout in seconds (never unbounded)."""
        return self.timeout if self.timeout > 0 else DEFAULT_TIMEOUT

    def __str__(self) -> str:
        return format_address(self.host, self.port)


def format_address(host: str, port: int) -> str:
    """Render host:port, bracketing IPv6 literals."""
    if ":" in host and not host.startswith("["):
        return f"[{host}]:{port}"
    return f"{host}:{port}"
