"""
MCP Front End

Exposes the capability adapter to MCP clients over stdio.

Every registered capability becomes a tool named by its public identifier,
taking one optional string argument `args`. A built-in status tool reports
the peer connection state. When the capability list changes the client is
sent notifications/tools/list_changed.

The low-level Server only hands out the client session inside a request, so
the session is remembered from the first list/call request and reused for
notifications sent outside of one.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from mcp.server import NotificationOptions, Server
from mcp.server.stdio import stdio_server
from mcp.types import CallToolResult, TextContent, Tool

from monkey_relay import __version__
from monkey_relay.adapter import CapabilityAdapter, ToolResult

logger = logging.getLogger(__name__)

SERVER_NAME = "monkey-relay"
STATUS_TOOL = "monkey_relay_status"

ARGS_SCHEMA = {
    "type": "object",
    "properties": {
        "args": {
            "type": "string",
            "description": "Optional JSON string of arguments to pass to the script",
        },
    },
}


class McpFrontend:
    """
    MCP server bound to a CapabilityAdapter.
    """

    def __init__(self, adapter: CapabilityAdapter, name: str = SERVER_NAME):
        self._adapter = adapter
        self._server = Server(name, version=__version__)
        self._session: Any = None

        self._server.list_tools()(self.list_tools)
        self._server.call_tool()(self.call_tool)

        adapter.add_change_listener(self.notify_tools_changed)

    @property
    def server(self) -> Server:
        return self._server

    def initialization_options(self):
        return self._server.create_initialization_options(
            notification_options=NotificationOptions(tools_changed=True),
        )

    async def run_stdio(self) -> None:
        """Serve MCP over stdin/stdout until the client disconnects."""
        async with stdio_server() as (read_stream, write_stream):
            logger.info("MCP server connected via stdio")
            await self._server.run(
                read_stream,
                write_stream,
                self.initialization_options(),
            )

    # === Handlers ===

    async def list_tools(self) -> list[Tool]:
        self._remember_session()

        tools = [
            Tool(
                name=STATUS_TOOL,
                description=(
                    "Check the status of the relay. Returns the execution peer "
                    "connection state and the list of available scripts."
                ),
                inputSchema={"type": "object", "properties": {}},
            )
        ]
        for capability in self._adapter.list_capabilities():
            tools.append(
                Tool(
                    name=capability["publicId"],
                    description=(
                        f"{capability['description']}\n\n"
                        f"Target URL: {capability['targetPattern']}"
                    ),
                    inputSchema=ARGS_SCHEMA,
                )
            )
        return tools

    async def call_tool(self, name: str, arguments: dict[str, Any] | None) -> CallToolResult:
        self._remember_session()

        if name == STATUS_TOOL:
            return _to_call_result(
                ToolResult(text=json.dumps(self._adapter.status(), indent=2))
            )

        args = (arguments or {}).get("args")
        if args is not None and not isinstance(args, str):
            args = json.dumps(args)

        result = await self._adapter.invoke(name, args)
        return _to_call_result(result)

    # === Notifications ===

    async def notify_tools_changed(self) -> None:
        """Tell the connected MCP client to re-list tools."""
        if self._session is None:
            logger.debug("No MCP client session yet; skipping tools/list_changed")
            return
        await self._session.send_tool_list_changed()
        logger.info("Sent notifications/tools/list_changed to MCP client")

    def _remember_session(self) -> None:
        try:
            self._session = self._server.request_context.session
        except LookupError:
            pass


def _to_call_result(result: ToolResult) -> CallToolResult:
    return CallToolResult(
        content=[TextContent(type="text", text=result.text)],
        isError=result.is_error,
    )
