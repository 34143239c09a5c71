"""Exception types raised across the monitor's component boundaries."""


class MonitorError(Exception):
    """Base class for monitor errors."""


class SourceUnavailableError(MonitorError):
    """The active address store could not be read."""


class SessionSetupError(MonitorError):
    """A new stream session could not be opened or its filter was rejected."""


class SessionTeardownError(MonitorError):
    """The previous stream session did not close cleanly."""


class TransportError(MonitorError):
    """The stream transport failed mid-session."""


class RpcError(MonitorError):
    """A JSON-RPC lookup failed after all retries."""

    def __init__(self, method: str, message: str):
        super().__init__(f"{method}: {message}")
        self.method = method


class EnrichmentError(MonitorError):
    """An event could not be turned into a valuation."""
