"""
Exceptions raised by the session client.
Expected request failures are returned as NormalizedResponse values, not raised;
these cover programmer errors, initialization and cancellation.
"""


class SessionClientError(Exception):
    """Base class for session client exceptions."""


class NotInitializedError(SessionClientError):
    """An operation was dispatched before init() configured an endpoint."""

    def __init__(self, message: str = "Not initialized. Call init() first."):
        super().__init__(message)


class InitializationError(SessionClientError):
    """Endpoint metadata lookup failed."""


class TransportError(SessionClientError):
    """Network failure, timeout or malformed payload while dispatching an operation."""


class RequestCancelled(SessionClientError):
    """The caller's cancellation event fired before the operation completed."""
