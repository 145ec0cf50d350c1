# Agent-Facing Adapter
# Lists and invokes capabilities, and announces capability list changes

from monkey_relay.adapter.adapter import CapabilityAdapter, NOT_CONNECTED_TEXT
from monkey_relay.adapter.results import ErrorKind, ToolResult, render_value

__all__ = [
    "CapabilityAdapter",
    "NOT_CONNECTED_TEXT",
    "ErrorKind",
    "ToolResult",
    "render_value",
]
