"""
Capability Model

A capability is a named script the execution peer can run on demand.
The relay advertises each one to the agent side as a tool under a
normalized public identifier.
"""

import re

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

PUBLIC_ID_PREFIX = "monkey_"

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9_-]")


def public_id_for(name: str) -> str:
    """Derive the agent-visible tool name for a capability name."""
    return PUBLIC_ID_PREFIX + _UNSAFE_CHARS.sub("_", name).lower()


class Capability(BaseModel):
    """
    A registered capability.

    Serializes with camelCase aliases (targetPattern) since that is
    what the execution peer and the admin API speak.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    name: str = Field(
        ...,
        description="Unique capability name (registry key)"
    )
    description: str = Field(
        default="",
        description="Human-readable description shown to the agent"
    )
    target_pattern: str = Field(
        default="",
        description="Address pattern the peer uses to locate the execution target"
    )
    payload: str = Field(
        default="",
        description="Opaque script body executed by the peer"
    )

    @property
    def public_id(self) -> str:
        return public_id_for(self.name)

    def to_wire(self) -> dict:
        """Full definition as sent to the execution peer."""
        return self.model_dump(by_alias=True)

    def to_public_dict(self) -> dict:
        """Agent-facing view (no payload)."""
        return {
            "publicId": self.public_id,
            "description": self.description,
            "targetPattern": self.target_pattern,
        }
