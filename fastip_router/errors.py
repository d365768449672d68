class FastIpError(Exception):
    """Base class for errors raised by fastip_router."""


class SourceUnavailable(FastIpError):
    """A candidate source could not produce data for a domain."""

    def __init__(self, domain: str, source: str, reason: str):
        self.domain = domain
        self.source = source
        self.reason = reason
        super().__init__(f"{source}: no candidates for {domain}: {reason}")


class SelectionEmpty(FastIpError):
    """No probed candidate passed the validity threshold."""

    def __init__(self, domain: str):
        self.domain = domain
        super().__init__(f"No candidate for {domain} passed the validity threshold")


class SinkWriteFailure(FastIpError):
    """The hosts file could not be read or written."""

    def __init__(self, path, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Cannot update hosts file {path}: {reason}")
