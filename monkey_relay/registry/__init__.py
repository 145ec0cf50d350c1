# Capability Registry
# Holds the named capabilities the relay advertises to the agent side

from monkey_relay.registry.capability import Capability, PUBLIC_ID_PREFIX, public_id_for
from monkey_relay.registry.registry import CapabilityRegistry

__all__ = ["Capability", "CapabilityRegistry", "PUBLIC_ID_PREFIX", "public_id_for"]
