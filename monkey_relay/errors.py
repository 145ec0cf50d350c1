"""
Relay Errors

Failure taxonomy for the relay.

Per-invocation failures (UnknownCapability, NotConnected, ExecutionTimeout,
PeerReportedError) are turned into structured tool results by the adapter
and never crash the process. MalformedMessage and TransportFailure stay
inside the transport session: they are logged and the session carries on
or reconnects. DuplicateRequestId means the request id generator is broken
and is allowed to propagate.
"""


class RelayError(Exception):
    """Base class for all relay errors."""


class UnknownCapability(RelayError):
    """Raised when an invocation names a capability that is not registered."""
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Unknown capability: {name}")


class NotConnected(RelayError):
    """Raised when a request is dispatched with no live execution peer."""
    def __init__(self, message: str = "No execution peer is connected"):
        super().__init__(message)


class ExecutionTimeout(RelayError):
    """Raised when no result arrives before the request deadline."""
    def __init__(self, request_id: str, timeout_seconds: float):
        self.request_id = request_id
        self.timeout_seconds = timeout_seconds
        super().__init__(
            f"Request {request_id} timed out after {timeout_seconds:g}s"
        )


class PeerReportedError(RelayError):
    """Raised when the execution peer reports a failure for a request."""
    def __init__(self, request_id: str, message: str):
        self.request_id = request_id
        self.message = message
        super().__init__(message)


class MalformedMessage(RelayError):
    """Raised when an inbound frame cannot be parsed or has an unknown type."""
    def __init__(self, reason: str, raw: str | bytes | None = None):
        self.reason = reason
        self.raw = raw
        super().__init__(reason)


class TransportFailure(RelayError):
    """Raised when the execution-side connection errors or closes."""


class DuplicateRequestId(RelayError):
    """Raised when a request id is registered while already pending."""
    def __init__(self, request_id: str):
        self.request_id = request_id
        super().__init__(f"Request id already pending: {request_id}")
