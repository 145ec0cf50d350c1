# Peer Protocol
# JSON message models exchanged with the execution peer

from monkey_relay.protocol.messages import (
    MessageType,
    PeerMessage,
    CapabilityDefinition,
    SyncMessage,
    RegisterMessage,
    UnregisterMessage,
    ExecuteMessage,
    KeepaliveMessage,
    ResultMessage,
    RegisterAck,
    UnregisterAck,
    KeepaliveAck,
    InboundMessage,
    parse_inbound,
    build_sync,
    build_register,
    build_execute,
)

__all__ = [
    "MessageType",
    "PeerMessage",
    "CapabilityDefinition",
    "SyncMessage",
    "RegisterMessage",
    "UnregisterMessage",
    "ExecuteMessage",
    "KeepaliveMessage",
    "ResultMessage",
    "RegisterAck",
    "UnregisterAck",
    "KeepaliveAck",
    "InboundMessage",
    "parse_inbound",
    "build_sync",
    "build_register",
    "build_execute",
]
