"""
Editing-Side Schemas

Validation for capability definitions coming from the editor (admin API)
and from the startup capabilities file. Name format is enforced here, at
the boundary; the registry itself accepts any name.
"""

from __future__ import annotations

import json
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator
from pydantic.alias_generators import to_camel

CAPABILITY_NAME_PATTERN = r"^[A-Za-z0-9_-]+$"


class CapabilityFields(BaseModel):
    """Body of PUT /capabilities/{name}."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    description: str = Field(
        ...,
        description="Human-readable description shown to the agent"
    )
    target_pattern: str = Field(
        ...,
        description="URL pattern of the page the script runs in (e.g. *://example.com/*)"
    )
    payload: str = Field(
        ...,
        description="Script body executed by the peer"
    )

    @field_validator("description", "target_pattern", "payload")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value


class CapabilityEntry(CapabilityFields):
    """A full capability definition, as stored in a capabilities file."""

    name: str = Field(
        ...,
        pattern=CAPABILITY_NAME_PATTERN,
        description="Capability name: letters, numbers, hyphens, underscores"
    )


_entries_adapter = TypeAdapter(list[CapabilityEntry])


def load_capabilities_file(path: Path) -> list[CapabilityEntry]:
    """
    Read a JSON list of capability definitions.

    Raises:
        ValueError: If the file is not valid JSON or an entry is invalid
        OSError: If the file cannot be read
    """
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ValueError(f"{path}: invalid JSON: {e}") from None
    return _entries_adapter.validate_python(data)
