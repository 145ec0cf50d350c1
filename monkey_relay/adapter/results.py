"""
Tool Results

Structured outcome of a capability invocation as returned to the agent side.
Expected failures are results with is_error set, never exceptions.
"""

from __future__ import annotations

import json
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class ErrorKind(str, Enum):
    """Categories of user-visible invocation failures."""
    UNKNOWN_CAPABILITY = "unknown_capability"
    NOT_CONNECTED = "not_connected"
    TIMEOUT = "timeout"
    PEER_ERROR = "peer_error"


class ToolResult(BaseModel):
    """Text outcome of one invocation."""

    text: str = Field(
        ...,
        description="Human-readable result or error message"
    )
    is_error: bool = Field(
        default=False,
        description="Whether the invocation failed"
    )
    error_kind: ErrorKind | None = Field(
        default=None,
        description="Failure category when is_error is set"
    )

    @classmethod
    def success(cls, value: Any) -> "ToolResult":
        return cls(text=render_value(value))

    @classmethod
    def failure(cls, kind: ErrorKind, text: str) -> "ToolResult":
        return cls(text=text, is_error=True, error_kind=kind)


def render_value(value: Any) -> str:
    """Strings pass through; anything else is rendered as indented JSON."""
    if isinstance(value, str):
        return value
    return json.dumps(value, indent=2, ensure_ascii=False, default=str)
