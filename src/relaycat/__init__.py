"""relaycat - minimal netcat-style TCP client

Philosophy:
- Ruthless simplicity
- Raw bytes only (no framing, no interpretation)
- Stdout belongs to the peer; diagnostics go to stderr
- Shut down exactly once, whichever side ends first

relaycat connects to a host/port with a bounded connect timeout and then
relays bytes between stdin/stdout and the socket until either side ends.
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
