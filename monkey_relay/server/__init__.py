# Outer Surfaces
# MCP stdio front end for agents and the admin API for the capability editor

from monkey_relay.server.admin import create_admin_app
from monkey_relay.server.mcp_frontend import McpFrontend, STATUS_TOOL
from monkey_relay.server.schemas import (
    CapabilityEntry,
    CapabilityFields,
    load_capabilities_file,
)

__all__ = [
    "create_admin_app",
    "McpFrontend",
    "STATUS_TOOL",
    "CapabilityEntry",
    "CapabilityFields",
    "load_capabilities_file",
]
