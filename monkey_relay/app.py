"""
Monkey Relay Application

Wires the relay together and runs it:
- CapabilityRegistry and CorrelationTable (shared state)
- PeerSession (WebSocket link to the execution peer)
- CapabilityAdapter (agent-facing operations)
- McpFrontend (MCP over stdio)
- Admin API (FastAPI, served by uvicorn) for the capability editor

Logging goes to stderr; stdout carries the MCP stdio stream.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

import uvicorn

from monkey_relay.adapter import CapabilityAdapter
from monkey_relay.config import RelaySettings, settings_from_env
from monkey_relay.correlation import CorrelationTable
from monkey_relay.registry import CapabilityRegistry
from monkey_relay.server import McpFrontend, create_admin_app, load_capabilities_file
from monkey_relay.transport import PeerSession

logger = logging.getLogger(__name__)


class RelayApp:
    """
    Owns every relay component and ties their lifecycle to start()/stop().
    """

    def __init__(self, settings: RelaySettings):
        self.settings = settings

        self.registry = CapabilityRegistry()
        self.correlation = CorrelationTable(default_timeout=settings.execution_timeout)
        self.session = PeerSession(
            url=settings.peer_url,
            registry=self.registry,
            correlation=self.correlation,
            keepalive_interval=settings.keepalive_interval,
            reconnect_base=settings.reconnect_base,
            reconnect_max=settings.reconnect_max,
        )
        self.adapter = CapabilityAdapter(
            registry=self.registry,
            correlation=self.correlation,
            session=self.session,
            execution_timeout=settings.execution_timeout,
        )
        self.frontend = McpFrontend(self.adapter)

        self._admin_server: uvicorn.Server | None = None
        self._admin_task: asyncio.Task | None = None

    async def load_capabilities(self, path: Path) -> int:
        """Upsert every capability in a JSON file through the adapter."""
        entries = load_capabilities_file(path)
        for entry in entries:
            await self.adapter.upsert(
                name=entry.name,
                description=entry.description,
                target_pattern=entry.target_pattern,
                payload=entry.payload,
            )
        logger.info(f"Loaded {len(entries)} capability(ies) from {path}")
        return len(entries)

    async def start(self) -> None:
        logger.info("Starting Monkey Relay...")

        if self.settings.capabilities_file is not None:
            await self.load_capabilities(self.settings.capabilities_file)

        await self.session.start()

        if self.settings.admin_enabled:
            config = uvicorn.Config(
                create_admin_app(self.adapter),
                host=self.settings.admin_host,
                port=self.settings.admin_port,
                log_config=None,
                access_log=False,
                lifespan="off",
            )
            self._admin_server = uvicorn.Server(config)
            self._admin_task = asyncio.create_task(self._serve_admin(), name="admin_api")

            while not self._admin_server.started and not self._admin_task.done():
                await asyncio.sleep(0.01)
            if not self._admin_server.started:
                raise RuntimeError(
                    f"Admin API could not start on "
                    f"{self.settings.admin_host}:{self.settings.admin_port}"
                )
            logger.info(
                f"Admin API on http://{self.settings.admin_host}:{self.settings.admin_port}"
            )

        logger.info("Monkey Relay started")

    async def _serve_admin(self) -> None:
        # uvicorn calls sys.exit(1) when it cannot bind
        try:
            await self._admin_server.serve()
        except SystemExit:
            logger.error(
                f"Admin API failed to bind "
                f"{self.settings.admin_host}:{self.settings.admin_port}"
            )

    async def stop(self) -> None:
        logger.info("Shutting down Monkey Relay...")

        if self._admin_server is not None:
            self._admin_server.should_exit = True
        if self._admin_task is not None:
            try:
                await self._admin_task
            except Exception as e:
                logger.warning(f"Admin API stopped with error: {e}")
            self._admin_task = None

        await self.session.stop()
        self.correlation.close()
        logger.info("Monkey Relay stopped")

    async def run(self) -> None:
        """Run until the MCP client disconnects."""
        try:
            await self.start()
            await self.frontend.run_stdio()
        finally:
            await self.stop()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="monkey-relay",
        description="Relay MCP tool calls to scripts running in a browser extension",
    )
    parser.add_argument("--peer-url", help="WebSocket URL of the execution peer")
    parser.add_argument(
        "--timeout", type=float, help="Per-request execution timeout in seconds"
    )
    parser.add_argument(
        "--capabilities", type=Path, help="JSON file of capabilities to load at startup"
    )
    parser.add_argument("--admin-host", help="Admin API bind host")
    parser.add_argument("--admin-port", type=int, help="Admin API bind port")
    parser.add_argument(
        "--no-admin", action="store_true", help="Do not serve the admin API"
    )
    parser.add_argument("--log-level", help="Logging level (DEBUG, INFO, ...)")
    return parser


def settings_from_args(argv: list[str] | None = None) -> RelaySettings:
    """Environment settings with command-line overrides applied."""
    args = build_parser().parse_args(argv)
    settings = settings_from_env()

    if args.peer_url:
        settings.peer_url = args.peer_url
    if args.timeout is not None:
        settings.execution_timeout = args.timeout
    if args.capabilities is not None:
        settings.capabilities_file = args.capabilities
    if args.admin_host:
        settings.admin_host = args.admin_host
    if args.admin_port is not None:
        settings.admin_port = args.admin_port
    if args.no_admin:
        settings.admin_enabled = False
    if args.log_level:
        settings.log_level = args.log_level.upper()

    settings.validate()
    return settings


def main(argv: list[str] | None = None) -> None:
    """Console entry point."""
    try:
        settings = settings_from_args(argv)
    except ValueError as e:
        print(f"monkey-relay: {e}", file=sys.stderr)
        sys.exit(2)

    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )

    try:
        asyncio.run(RelayApp(settings).run())
    except KeyboardInterrupt:
        pass
    except Exception as e:
        logger.error(f"Fatal error: {e}")
        sys.exit(1)
