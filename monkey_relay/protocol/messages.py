"""
Peer Wire Messages

JSON records exchanged with the execution peer over the WebSocket.
Every record carries a `type` discriminator; field names are camelCase on
the wire.

Relay -> peer:
- sync: full capability list, sent once per (re)connect
- register: single capability upsert
- unregister: single capability removal by name
- execute: run a capability (requestId, name, payload, targetPattern, args)
- keepalive: liveness heartbeat

Peer -> relay:
- result: outcome for a requestId, exactly one of value / error
- register-ack / unregister-ack: informational acknowledgements
- keepalive-ack: heartbeat acknowledgement
"""

from __future__ import annotations

import json
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, model_validator
from pydantic.alias_generators import to_camel

from monkey_relay.errors import MalformedMessage
from monkey_relay.registry import Capability


class MessageType(str, Enum):
    """Discriminator values for peer messages."""
    # Relay -> peer
    SYNC = "sync"
    REGISTER = "register"
    UNREGISTER = "unregister"
    EXECUTE = "execute"
    KEEPALIVE = "keepalive"

    # Peer -> relay
    RESULT = "result"
    REGISTER_ACK = "register-ack"
    UNREGISTER_ACK = "unregister-ack"
    KEEPALIVE_ACK = "keepalive-ack"


class PeerMessage(BaseModel):
    """Base for all peer messages."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True)


# === Relay -> peer ===

class CapabilityDefinition(PeerMessage):
    """A capability as carried inside sync/register messages."""
    name: str
    description: str = ""
    target_pattern: str = ""
    payload: str = ""

    @classmethod
    def from_capability(cls, capability: Capability) -> "CapabilityDefinition":
        return cls(
            name=capability.name,
            description=capability.description,
            target_pattern=capability.target_pattern,
            payload=capability.payload,
        )


class SyncMessage(PeerMessage):
    type: Literal["sync"] = MessageType.SYNC.value
    capabilities: list[CapabilityDefinition] = Field(default_factory=list)


class RegisterMessage(CapabilityDefinition):
    type: Literal["register"] = MessageType.REGISTER.value


class UnregisterMessage(PeerMessage):
    type: Literal["unregister"] = MessageType.UNREGISTER.value
    name: str


class ExecuteMessage(PeerMessage):
    type: Literal["execute"] = MessageType.EXECUTE.value
    request_id: str
    name: str
    payload: str = ""
    target_pattern: str = ""
    args: str | None = None


class KeepaliveMessage(PeerMessage):
    type: Literal["keepalive"] = MessageType.KEEPALIVE.value


# === Peer -> relay ===

class ResultMessage(PeerMessage):
    """
    Execution outcome for one request.

    `value` and `error` are mutually exclusive. A non-null error marks the
    request as failed (a null value may accompany it); otherwise `value` must
    be present, even if null.
    """
    type: Literal["result"] = MessageType.RESULT.value
    request_id: str
    value: Any = None
    error: str | None = None

    @model_validator(mode="after")
    def _value_xor_error(self) -> "ResultMessage":
        if self.error is not None and self.value is not None:
            raise ValueError("result carries both value and error")
        if self.error is None and "value" not in self.model_fields_set:
            raise ValueError("result carries neither value nor error")
        return self

    @property
    def is_error(self) -> bool:
        return self.error is not None


class RegisterAck(PeerMessage):
    type: Literal["register-ack"] = MessageType.REGISTER_ACK.value
    name: str | None = None


class UnregisterAck(PeerMessage):
    type: Literal["unregister-ack"] = MessageType.UNREGISTER_ACK.value
    name: str | None = None


class KeepaliveAck(PeerMessage):
    type: Literal["keepalive-ack"] = MessageType.KEEPALIVE_ACK.value


InboundMessage = Annotated[
    Union[ResultMessage, RegisterAck, UnregisterAck, KeepaliveAck],
    Field(discriminator="type"),
]

_inbound_adapter: TypeAdapter[InboundMessage] = TypeAdapter(InboundMessage)

INBOUND_TYPES = frozenset({
    MessageType.RESULT.value,
    MessageType.REGISTER_ACK.value,
    MessageType.UNREGISTER_ACK.value,
    MessageType.KEEPALIVE_ACK.value,
})


def parse_inbound(raw: str | bytes) -> InboundMessage:
    """
    Parse a frame received from the peer.

    Raises:
        MalformedMessage: If the frame is not JSON, has no known `type`,
            or fails validation
    """
    try:
        data = json.loads(raw)
    except (TypeError, ValueError) as e:
        raise MalformedMessage(f"invalid JSON: {e}", raw) from None

    if not isinstance(data, dict):
        raise MalformedMessage("frame is not a JSON object", raw)

    message_type = data.get("type")
    if message_type not in INBOUND_TYPES:
        raise MalformedMessage(f"unrecognized message type: {message_type!r}", raw)

    try:
        return _inbound_adapter.validate_python(data)
    except ValidationError as e:
        raise MalformedMessage(
            f"invalid {message_type} message: {e.error_count()} validation error(s)", raw
        ) from None


def build_sync(capabilities: list[Capability]) -> SyncMessage:
    return SyncMessage(
        capabilities=[CapabilityDefinition.from_capability(c) for c in capabilities]
    )


def build_register(capability: Capability) -> RegisterMessage:
    return RegisterMessage(
        name=capability.name,
        description=capability.description,
        target_pattern=capability.target_pattern,
        payload=capability.payload,
    )


def build_execute(request_id: str, capability: Capability, args: str | None) -> ExecuteMessage:
    return ExecuteMessage(
        request_id=request_id,
        name=capability.name,
        payload=capability.payload,
        target_pattern=capability.target_pattern,
        args=args or None,
    )
