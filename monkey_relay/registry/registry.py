"""
Capability Registry

In-memory registry of the capabilities currently exposed to the agent side.

Every method is synchronous and never awaits, so on the relay's single event
loop each call runs to completion without interleaving; no lock is needed
and list() always returns a consistent snapshot.

Public identifier collisions:
Two distinct names can fold onto the same public identifier (for example
"My Script" and "my_script"). The most recent upsert wins and the older
capability is evicted, keeping public identifiers unique.
"""

from __future__ import annotations

import logging

from monkey_relay.registry.capability import Capability

logger = logging.getLogger(__name__)


class CapabilityRegistry:
    """
    Holds capabilities keyed by name, in insertion order.

    A secondary index maps public identifiers back to names for agent-side
    lookups. The version counter increments on every effective mutation.
    """

    def __init__(self):
        # Primary index: name -> Capability (dict keeps insertion order)
        self._by_name: dict[str, Capability] = {}

        # Secondary index: public_id -> name
        self._name_by_public_id: dict[str, str] = {}

        self._version = 0

    def upsert(
        self,
        name: str,
        description: str,
        target_pattern: str,
        payload: str,
    ) -> tuple[Capability, Capability | None]:
        """
        Insert or replace the capability under `name`.

        Args:
            name: Capability name (registry key)
            description: Human-readable description
            target_pattern: Address pattern used by the peer to find a target
            payload: Opaque script body

        Returns:
            Tuple of (stored Capability, Capability evicted by a public
            identifier collision or None)
        """
        capability = Capability(
            name=name,
            description=description,
            target_pattern=target_pattern,
            payload=payload,
        )
        public_id = capability.public_id

        evicted = None
        holder = self._name_by_public_id.get(public_id)
        if holder is not None and holder != name:
            evicted = self._by_name.pop(holder)
            logger.warning(
                f"Capability '{name}' collides with '{holder}' on public id "
                f"{public_id}; evicting '{holder}'"
            )

        self._by_name[name] = capability
        self._name_by_public_id[public_id] = name
        self._version += 1

        logger.info(f"Capability upserted: {name} -> {public_id}")
        return capability, evicted

    def remove(self, name: str) -> Capability | None:
        """
        Remove a capability by name.

        Returns:
            The removed Capability, or None if it was not registered
        """
        capability = self._by_name.pop(name, None)
        if capability is None:
            return None

        if self._name_by_public_id.get(capability.public_id) == name:
            del self._name_by_public_id[capability.public_id]
        self._version += 1

        logger.info(f"Capability removed: {name}")
        return capability

    def list(self) -> list[Capability]:
        """Snapshot of all capabilities in insertion order."""
        return list(self._by_name.values())

    def get(self, name: str) -> Capability | None:
        """Get a capability by name."""
        return self._by_name.get(name)

    def get_by_public_id(self, public_id: str) -> Capability | None:
        """Get a capability by its agent-visible identifier."""
        name = self._name_by_public_id.get(public_id)
        if name is None:
            return None
        return self._by_name.get(name)

    def resolve(self, name_or_public_id: str) -> Capability | None:
        """
        Look up by public identifier first, then by raw name.

        Public identifiers win: if capability "x" exists, "monkey_x" always
        resolves to it, even when another capability is literally named
        "monkey_x". That one stays reachable as "monkey_monkey_x", the
        identifier the agent side is shown for it.
        """
        return self.get_by_public_id(name_or_public_id) or self.get(name_or_public_id)

    @property
    def version(self) -> int:
        """Mutation counter; increments on every effective change."""
        return self._version

    def __len__(self) -> int:
        return len(self._by_name)

    def __contains__(self, name: object) -> bool:
        return name in self._by_name
