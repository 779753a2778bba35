"""Exception hierarchy for relaycat."""


class RelaycatError(Exception):
    """Base exception for relaycat failures."""

    pass
