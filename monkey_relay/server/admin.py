"""
Capability Admin API

FastAPI application the capability editor uses to add, replace and remove
capabilities. Every mutation goes through the CapabilityAdapter, so MCP
clients are told about the change and a connected peer receives the
register/unregister update.

Endpoints:
- GET /health
- GET /capabilities
- PUT /capabilities/{name}
- DELETE /capabilities/{name}
"""

import logging

from fastapi import FastAPI, Path, Response, status

from monkey_relay import __version__
from monkey_relay.adapter import CapabilityAdapter
from monkey_relay.server.schemas import CAPABILITY_NAME_PATTERN, CapabilityFields

logger = logging.getLogger(__name__)


def create_admin_app(adapter: CapabilityAdapter) -> FastAPI:
    """
    Build the admin application bound to an adapter.

    Args:
        adapter: Adapter all mutations are routed through

    Returns:
        FastAPI application
    """
    app = FastAPI(
        title="Monkey Relay Admin",
        description="Capability editing API for the Monkey Relay",
        version=__version__,
    )

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        current = adapter.status()
        return {
            "status": "healthy",
            "connected": current["peerConnected"],
            "capabilities": len(current["capabilities"]),
        }

    @app.get("/capabilities")
    async def list_capabilities():
        """List registered capabilities (without payloads)."""
        return adapter.status()["capabilities"]

    @app.put("/capabilities/{name}")
    async def put_capability(
        body: CapabilityFields,
        name: str = Path(..., pattern=CAPABILITY_NAME_PATTERN),
    ):
        """Create or replace a capability."""
        capability = await adapter.upsert(
            name=name,
            description=body.description,
            target_pattern=body.target_pattern,
            payload=body.payload,
        )
        logger.info(f"Capability saved via admin API: {name}")
        return {"name": capability.name, **capability.to_public_dict()}

    @app.delete("/capabilities/{name}", status_code=status.HTTP_204_NO_CONTENT)
    async def delete_capability(name: str):
        """Remove a capability; removing an unknown name is not an error."""
        removed = await adapter.remove(name)
        if removed:
            logger.info(f"Capability deleted via admin API: {name}")
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    return app
