# Transport Layer
# Owns the WebSocket link to the execution peer: reconnects, keepalive, dispatch

from monkey_relay.transport.backoff import ExponentialBackoff
from monkey_relay.transport.session import PeerSession, SessionState, new_request_id

__all__ = ["ExponentialBackoff", "PeerSession", "SessionState", "new_request_id"]
