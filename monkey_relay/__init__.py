# Monkey Relay
# Bridges MCP tool calls to scripts executed by a connected browser extension

__version__ = "0.1.0"

# Re-export commonly used components for convenience
from monkey_relay.registry import Capability, CapabilityRegistry
from monkey_relay.correlation import CorrelationTable, PendingRequest
from monkey_relay.transport import PeerSession, SessionState
from monkey_relay.adapter import CapabilityAdapter, ErrorKind, ToolResult

__all__ = [
    "__version__",
    # Registry
    "Capability",
    "CapabilityRegistry",
    # Correlation
    "CorrelationTable",
    "PendingRequest",
    # Transport
    "PeerSession",
    "SessionState",
    # Adapter
    "CapabilityAdapter",
    "ErrorKind",
    "ToolResult",
]
