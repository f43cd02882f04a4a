class SnitchError(Exception):
    """Base class for everything the snitch raises on purpose."""


class PreconditionError(SnitchError):
    """The run cannot start, e.g. the server list file is missing."""


class ConnectivityError(SnitchError):
    """A server is unreachable or rejected the credentials."""

    def __init__(self, server, message):
        super().__init__(f"{server}: {message}")
        self.server = server


class CollectionError(SnitchError):
    """A diagnostic query failed against a reachable server."""
