"""
Shared pytest fixtures for Monkey Relay tests.

This module provides:
- FakePeer: a real WebSocket server standing in for the browser extension
- Component fixtures wired the way RelayApp wires them
"""

import asyncio
import json
from typing import Any

import pytest
import websockets
from websockets.exceptions import ConnectionClosed

from monkey_relay.adapter import CapabilityAdapter
from monkey_relay.correlation import CorrelationTable
from monkey_relay.registry import CapabilityRegistry
from monkey_relay.transport import PeerSession


class FakePeer:
    """
    WebSocket server that records every frame the relay sends.

    Usage:
        async def test_sync(fake_peer, session):
            await session.start()
            sync = await fake_peer.next_message("sync")
            assert sync["capabilities"] == []
    """

    def __init__(self):
        self.received: asyncio.Queue[dict[str, Any]] = asyncio.Queue()
        self.connections: list[Any] = []
        self.url = ""
        self.port = 0
        self._server = None
        self._connected = asyncio.Condition()

    async def start(self, port: int = 0) -> None:
        self._server = await websockets.serve(self._handler, "127.0.0.1", port)
        self.port = self._server.sockets[0].getsockname()[1]
        self.url = f"ws://127.0.0.1:{self.port}"

    async def stop(self) -> None:
        if self._server is not None:
            self._server.close()
            await self._server.wait_closed()

    async def _handler(self, ws) -> None:
        async with self._connected:
            self.connections.append(ws)
            self._connected.notify_all()
        try:
            async for raw in ws:
                await self.received.put(json.loads(raw))
        except ConnectionClosed:
            pass

    async def wait_for_connections(self, count: int, timeout: float = 5.0) -> None:
        async def _wait():
            async with self._connected:
                await self._connected.wait_for(lambda: len(self.connections) >= count)
        await asyncio.wait_for(_wait(), timeout)

    async def next_message(self, message_type: str | None = None, timeout: float = 5.0) -> dict:
        """Next recorded frame, skipping keepalives and other types if one is given."""
        async def _next():
            while True:
                message = await self.received.get()
                if message["type"] == "keepalive" and message_type != "keepalive":
                    continue
                if message_type is None or message["type"] == message_type:
                    return message
        return await asyncio.wait_for(_next(), timeout)

    def drain(self) -> list[dict]:
        """All frames recorded so far that have not been consumed."""
        messages = []
        while not self.received.empty():
            messages.append(self.received.get_nowait())
        return messages

    async def send(self, message: dict) -> None:
        await self.connections[-1].send(json.dumps(message))

    async def send_raw(self, raw: str) -> None:
        await self.connections[-1].send(raw)

    async def drop(self) -> None:
        """Close the latest relay connection from the peer side."""
        await self.connections[-1].close()


@pytest.fixture
async def fake_peer():
    peer = FakePeer()
    await peer.start()
    yield peer
    await peer.stop()


@pytest.fixture
def registry():
    return CapabilityRegistry()


@pytest.fixture
def correlation():
    return CorrelationTable(default_timeout=30.0)


@pytest.fixture
async def session(fake_peer, registry, correlation):
    peer_session = PeerSession(
        url=fake_peer.url,
        registry=registry,
        correlation=correlation,
        keepalive_interval=30.0,
        reconnect_base=0.01,
        reconnect_max=0.05,
    )
    yield peer_session
    await peer_session.stop()


@pytest.fixture
def adapter(registry, correlation, session):
    return CapabilityAdapter(
        registry=registry,
        correlation=correlation,
        session=session,
        execution_timeout=2.0,
    )


async def _wait_until(predicate, timeout: float = 5.0, interval: float = 0.01) -> None:
    """Poll until predicate() is true."""
    async def _poll():
        while not predicate():
            await asyncio.sleep(interval)
    await asyncio.wait_for(_poll(), timeout)


@pytest.fixture
def wait_until():
    return _wait_until
