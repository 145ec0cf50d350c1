"""
Peer Session

Owns the single WebSocket connection to the execution peer.

State machine:
    DISCONNECTED -> CONNECTING -> CONNECTED -> DISCONNECTED -> ...

- The first connection attempt happens immediately on start(); every later
  attempt waits min(base * 2**attempt, cap) seconds. The attempt counter
  resets on every successful connection.
- On entering CONNECTED the full registry is pushed as one `sync` message,
  then connected listeners are notified (the adapter re-announces tools).
- On leaving CONNECTED the live connection reference is cleared. Pending
  requests are not failed; they expire through the correlation table.
- While CONNECTED a `keepalive` is sent every keepalive_interval seconds.
- Inbound frames are handled in arrival order; malformed or unknown frames
  are logged and dropped.

All outbound frames go through one lock so the `sync` sent on connect is
always the first frame the peer sees on that connection.
"""

from __future__ import annotations

import asyncio
import logging
import secrets
import time
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from monkey_relay.correlation import CorrelationTable, PendingRequest
from monkey_relay.errors import MalformedMessage, NotConnected, TransportFailure
from monkey_relay.protocol import (
    KeepaliveMessage,
    MessageType,
    PeerMessage,
    ResultMessage,
    UnregisterMessage,
    build_execute,
    build_register,
    build_sync,
    parse_inbound,
)
from monkey_relay.registry import Capability, CapabilityRegistry
from monkey_relay.transport.backoff import ExponentialBackoff

logger = logging.getLogger(__name__)

ConnectedListener = Callable[[], Awaitable[None]]


class SessionState(str, Enum):
    """Connection lifecycle states."""
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


def new_request_id() -> str:
    """Millisecond timestamp plus a random suffix; unique for the process lifetime."""
    return f"req_{int(time.time() * 1000)}_{secrets.token_hex(6)}"


class PeerSession:
    """
    Maintains at most one live connection to the execution peer.

    The session dials `url`, reconnects with capped exponential backoff, and
    relays execute requests whose results are settled through the
    correlation table.
    """

    def __init__(
        self,
        url: str,
        registry: CapabilityRegistry,
        correlation: CorrelationTable,
        keepalive_interval: float = 20.0,
        reconnect_base: float = 1.0,
        reconnect_max: float = 30.0,
        open_timeout: float = 10.0,
        connect: Callable[..., Any] | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Initialize the session.

        Args:
            url: WebSocket URL of the execution peer
            registry: Capability registry pushed to the peer on connect
            correlation: Table used to settle results
            keepalive_interval: Seconds between keepalive frames
            reconnect_base: Backoff base delay in seconds
            reconnect_max: Backoff delay cap in seconds
            open_timeout: Seconds allowed for the opening handshake
            connect: Connection factory (defaults to websockets.connect)
            sleep: Sleep coroutine used between reconnect attempts
        """
        self._url = url
        self._registry = registry
        self._correlation = correlation
        self._keepalive_interval = keepalive_interval
        self._open_timeout = open_timeout
        self._connect = connect or websockets.connect
        self._sleep = sleep
        self._backoff = ExponentialBackoff(base=reconnect_base, cap=reconnect_max)

        # The one live connection, or None
        self._ws: Any = None
        self._state = SessionState.DISCONNECTED
        self._send_lock = asyncio.Lock()

        self._connected_listeners: list[ConnectedListener] = []

        self._run_task: asyncio.Task | None = None
        self._keepalive_task: asyncio.Task | None = None
        self._stopping = False

        self._connection_count = 0
        self._last_connected_at: datetime | None = None

    # === Lifecycle ===

    async def start(self) -> None:
        """Start the connect/reconnect loop."""
        if self._run_task is None:
            self._stopping = False
            self._run_task = asyncio.create_task(self._run(), name="peer_session")
            logger.info(f"Peer session started (peer: {self._url})")

    async def stop(self) -> None:
        """Stop reconnecting and close the live connection."""
        self._stopping = True
        ws = self._ws
        if ws is not None:
            try:
                await ws.close()
            except Exception as e:
                logger.debug(f"Error closing peer connection: {e}")

        if self._run_task:
            self._run_task.cancel()
            try:
                await self._run_task
            except asyncio.CancelledError:
                pass
            self._run_task = None

        self._state = SessionState.DISCONNECTED
        logger.info("Peer session stopped")

    def add_connected_listener(self, listener: ConnectedListener) -> None:
        """Register a coroutine called after each successful connect and sync."""
        self._connected_listeners.append(listener)

    async def _run(self) -> None:
        """Connect, serve the connection until it closes, back off, repeat."""
        while not self._stopping:
            self._state = SessionState.CONNECTING
            try:
                async with self._connect(
                    self._url,
                    ping_interval=None,
                    open_timeout=self._open_timeout,
                ) as ws:
                    try:
                        await self._on_connected(ws)
                        await self._receive_loop(ws)
                    finally:
                        self._on_disconnected(ws)
            except asyncio.CancelledError:
                raise
            except (OSError, asyncio.TimeoutError, WebSocketException, TransportFailure) as e:
                logger.warning(f"Peer connection failed: {e!r}")
            except Exception as e:
                logger.error(f"Unexpected error in peer session: {e!r}", exc_info=True)

            self._state = SessionState.DISCONNECTED
            if self._stopping:
                break

            delay = self._backoff.next_delay()
            logger.info(
                f"Reconnecting to peer in {delay:g}s (attempt {self._backoff.attempt})"
            )
            await self._sleep(delay)

    async def _on_connected(self, ws: Any) -> None:
        """Publish the connection, push a full sync, then notify listeners."""
        async with self._send_lock:
            self._ws = ws
            self._state = SessionState.CONNECTED
            self._backoff.reset()
            self._connection_count += 1
            self._last_connected_at = datetime.now(timezone.utc)

            snapshot = self._registry.list()
            try:
                await ws.send(build_sync(snapshot).to_json())
            except ConnectionClosed as e:
                raise TransportFailure(f"connection closed during sync: {e}") from e

        logger.info(f"Peer connected; synced {len(snapshot)} capability(ies)")

        self._keepalive_task = asyncio.create_task(
            self._keepalive_loop(ws), name="peer_keepalive"
        )

        for listener in self._connected_listeners:
            try:
                await listener()
            except Exception as e:
                logger.error(f"Connected listener failed: {e}")

    def _on_disconnected(self, ws: Any) -> None:
        """Clear the live connection reference if it still points at ws."""
        if self._keepalive_task is not None:
            self._keepalive_task.cancel()
            self._keepalive_task = None

        if self._ws is ws:
            self._ws = None
            self._state = SessionState.DISCONNECTED
            logger.info(
                f"Peer disconnected ({self._correlation.pending_count} request(s) "
                f"left to expire)"
            )

    # === Inbound ===

    async def _receive_loop(self, ws: Any) -> None:
        """Handle frames in arrival order until the connection closes."""
        try:
            async for raw in ws:
                self.handle_frame(raw)
        except ConnectionClosed as e:
            raise TransportFailure(f"connection lost: {e}") from e

    def handle_frame(self, raw: str | bytes) -> None:
        """Dispatch one inbound frame. Never raises for bad input."""
        try:
            message = parse_inbound(raw)
        except MalformedMessage as e:
            logger.warning(f"Dropping malformed peer message: {e.reason}")
            return

        if message.type == MessageType.RESULT:
            self._handle_result(message)
        elif message.type == MessageType.REGISTER_ACK:
            logger.info(f"Peer acknowledged registration: {message.name}")
        elif message.type == MessageType.UNREGISTER_ACK:
            logger.info(f"Peer acknowledged unregistration: {message.name}")
        elif message.type == MessageType.KEEPALIVE_ACK:
            pass

    def _handle_result(self, message: ResultMessage) -> None:
        if message.is_error:
            settled = self._correlation.reject(message.request_id, message.error)
        else:
            settled = self._correlation.resolve(message.request_id, message.value)

        if settled:
            logger.info(f"Received result for {message.request_id}")
        else:
            logger.info(f"Ignoring result for unknown or expired request {message.request_id}")

    # === Outbound ===

    async def send(
        self,
        capability: Capability,
        args: str | None = None,
        timeout: float | None = None,
    ) -> PendingRequest:
        """
        Dispatch an execute request to the peer.

        The request is registered with the correlation table before the
        frame is written, so a fast result cannot arrive unmatched.

        Args:
            capability: Capability to execute
            args: Optional opaque argument string
            timeout: Per-request timeout override

        Returns:
            PendingRequest handle for CorrelationTable.wait()

        Raises:
            NotConnected: If no peer is connected (no table slot is used)
        """
        if self._ws is None:
            raise NotConnected()

        request_id = new_request_id()
        pending = self._correlation.begin(request_id, timeout)

        sent = await self._transmit(build_execute(request_id, capability, args))
        if sent:
            logger.info(f"Sent execute request {request_id} -> {capability.name}")
        else:
            logger.warning(
                f"Execute request {request_id} was not delivered; it will expire"
            )
        return pending

    async def push_register(self, capability: Capability) -> bool:
        """Send a single-capability upsert if connected."""
        return await self._transmit(build_register(capability))

    async def push_unregister(self, name: str) -> bool:
        """Send a single-capability removal if connected."""
        return await self._transmit(UnregisterMessage(name=name))

    async def _keepalive_loop(self, ws: Any) -> None:
        while True:
            await asyncio.sleep(self._keepalive_interval)
            if self._ws is not ws:
                return
            if not await self._transmit(KeepaliveMessage()):
                return

    async def _transmit(self, message: PeerMessage) -> bool:
        """
        Write one frame to the live connection.

        Returns:
            True if written, False if there was no connection or it closed
        """
        async with self._send_lock:
            ws = self._ws
            if ws is None:
                return False
            try:
                await ws.send(message.to_json())
                return True
            except ConnectionClosed as e:
                logger.warning(f"Peer connection closed while sending {message.type}: {e}")
                return False

    # === Introspection ===

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._ws is not None

    @property
    def url(self) -> str:
        return self._url

    @property
    def connection_count(self) -> int:
        """Number of connections established since start."""
        return self._connection_count

    @property
    def last_connected_at(self) -> datetime | None:
        return self._last_connected_at

    @property
    def reconnect_attempt(self) -> int:
        return self._backoff.attempt
