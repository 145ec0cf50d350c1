"""
Capability Adapter

The agent-facing side of the relay. Translates "list capabilities" and
"invoke capability" into registry reads and correlated peer requests, and
funnels every registry mutation through one place so the agent-visible
tool list never drifts from the registry.

Invocation flow:
1. Resolve the capability by public identifier (or raw name)
2. Dispatch an execute request through the peer session
3. Wait on the correlation table until a result arrives or the deadline passes
4. Map the outcome to a ToolResult
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable

from monkey_relay.adapter.results import ErrorKind, ToolResult
from monkey_relay.correlation import CorrelationTable
from monkey_relay.errors import ExecutionTimeout, NotConnected, PeerReportedError
from monkey_relay.registry import Capability, CapabilityRegistry
from monkey_relay.transport import PeerSession

logger = logging.getLogger(__name__)

ChangeListener = Callable[[], Awaitable[None]]

NOT_CONNECTED_TEXT = (
    "Error: the execution peer is not connected. Make sure the browser "
    "extension is running and connected to the relay."
)


class CapabilityAdapter:
    """
    Agent-facing facade over the registry, correlation table and session.

    Change listeners are called after every effective registry mutation and
    after every peer (re)connect.
    """

    def __init__(
        self,
        registry: CapabilityRegistry,
        correlation: CorrelationTable,
        session: PeerSession,
        execution_timeout: float = 30.0,
    ):
        """
        Initialize the adapter.

        Args:
            registry: Capability registry
            correlation: Correlation table results are awaited on
            session: Peer session used for dispatch
            execution_timeout: Seconds to wait for each result
        """
        self._registry = registry
        self._correlation = correlation
        self._session = session
        self._execution_timeout = execution_timeout
        self._change_listeners: list[ChangeListener] = []

        session.add_connected_listener(self._on_peer_connected)

    def add_change_listener(self, listener: ChangeListener) -> None:
        """Register a coroutine called whenever the capability list may have changed."""
        self._change_listeners.append(listener)

    # === Agent side ===

    def list_capabilities(self) -> list[dict[str, str]]:
        """Agent-facing view of the registry, in insertion order."""
        return [c.to_public_dict() for c in self._registry.list()]

    async def invoke(self, name: str, args: str | None = None) -> ToolResult:
        """
        Invoke a capability on the execution peer.

        Args:
            name: Public identifier or raw capability name
            args: Optional opaque argument string passed to the payload

        Returns:
            ToolResult; failures are reported with is_error set
        """
        capability = self._registry.resolve(name)
        if capability is None:
            logger.info(f"Invocation of unknown capability: {name}")
            return ToolResult.failure(
                ErrorKind.UNKNOWN_CAPABILITY,
                f"Error: unknown capability '{name}'"
            )

        try:
            pending = await self._session.send(
                capability, args, timeout=self._execution_timeout
            )
        except NotConnected:
            logger.info(f"Invocation of {capability.name} rejected: peer not connected")
            return ToolResult.failure(ErrorKind.NOT_CONNECTED, NOT_CONNECTED_TEXT)

        try:
            value = await self._correlation.wait(pending)
        except ExecutionTimeout as e:
            return ToolResult.failure(
                ErrorKind.TIMEOUT,
                f"Error: execution timed out after {e.timeout_seconds:g}s"
            )
        except PeerReportedError as e:
            logger.info(f"Peer reported error for {capability.name}: {e.message}")
            return ToolResult.failure(
                ErrorKind.PEER_ERROR,
                f"Execution error: {e.message}"
            )

        return ToolResult.success(value)

    def status(self) -> dict[str, Any]:
        """Connection state and registered capabilities."""
        return {
            "peerConnected": self._session.is_connected,
            "peerUrl": self._session.url,
            "state": self._session.state.value,
            "pendingRequests": self._correlation.pending_count,
            "registryVersion": self._registry.version,
            "capabilities": [
                {
                    "name": c.name,
                    "publicId": c.public_id,
                    "description": c.description,
                    "targetPattern": c.target_pattern,
                }
                for c in self._registry.list()
            ],
        }

    # === Editing side ===

    async def upsert(
        self,
        name: str,
        description: str,
        target_pattern: str,
        payload: str,
    ) -> Capability:
        """
        Insert or replace a capability, announce the change, and push it to
        the peer when connected.
        """
        capability, evicted = self._registry.upsert(
            name, description, target_pattern, payload
        )
        await self._notify_changed()

        if evicted is not None:
            await self._session.push_unregister(evicted.name)
        await self._session.push_register(capability)
        return capability

    async def remove(self, name: str) -> bool:
        """
        Remove a capability by name.

        Returns:
            True if something was removed
        """
        removed = self._registry.remove(name)
        if removed is None:
            return False

        await self._notify_changed()
        await self._session.push_unregister(name)
        return True

    # === Notifications ===

    async def _on_peer_connected(self) -> None:
        await self._notify_changed()

    async def _notify_changed(self) -> None:
        for listener in self._change_listeners:
            try:
                await listener()
            except Exception as e:
                logger.warning(f"Could not send capability list change notification: {e}")
