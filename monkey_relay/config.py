"""
Relay Configuration

Environment-based settings for the relay.

Environment variables (a .env file in the working directory is loaded first):
- MONKEY_RELAY_PEER_URL: WebSocket URL of the execution peer
- MONKEY_RELAY_PORT: Peer port used when MONKEY_RELAY_PEER_URL is unset (default 8765)
- MONKEY_RELAY_EXECUTION_TIMEOUT: Per-request timeout in seconds (default 30)
- MONKEY_RELAY_KEEPALIVE_INTERVAL: Keepalive interval in seconds (default 20)
- MONKEY_RELAY_RECONNECT_BASE: Reconnect backoff base in seconds (default 1)
- MONKEY_RELAY_RECONNECT_MAX: Reconnect backoff cap in seconds (default 30)
- MONKEY_RELAY_ADMIN_ENABLED: "false" to disable the capability admin API
- MONKEY_RELAY_ADMIN_HOST: Admin API bind host (default 127.0.0.1)
- MONKEY_RELAY_ADMIN_PORT: Admin API bind port (default 8766)
- MONKEY_RELAY_CAPABILITIES_FILE: JSON file with capabilities to load at startup
- MONKEY_RELAY_LOG_LEVEL: Logging level (default INFO)
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import find_dotenv, load_dotenv

DEFAULT_PEER_PORT = 8765
DEFAULT_EXECUTION_TIMEOUT = 30.0
DEFAULT_KEEPALIVE_INTERVAL = 20.0
DEFAULT_RECONNECT_BASE = 1.0
DEFAULT_RECONNECT_MAX = 30.0


@dataclass
class RelaySettings:
    """
    Configuration for the relay.

    Attributes:
        peer_url: WebSocket URL the transport session dials
        execution_timeout: Seconds to wait for a result before giving up
        keepalive_interval: Seconds between keepalive frames while connected
        reconnect_base: Backoff base delay in seconds
        reconnect_max: Backoff delay cap in seconds
        admin_enabled: Whether to serve the capability admin API
        admin_host: Admin API bind host
        admin_port: Admin API bind port
        capabilities_file: Optional JSON file of capabilities loaded at startup
        log_level: Logging level name
    """
    peer_url: str = f"ws://localhost:{DEFAULT_PEER_PORT}"
    execution_timeout: float = DEFAULT_EXECUTION_TIMEOUT
    keepalive_interval: float = DEFAULT_KEEPALIVE_INTERVAL
    reconnect_base: float = DEFAULT_RECONNECT_BASE
    reconnect_max: float = DEFAULT_RECONNECT_MAX
    admin_enabled: bool = True
    admin_host: str = "127.0.0.1"
    admin_port: int = 8766
    capabilities_file: Path | None = None
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        """
        Check value ranges.

        Raises:
            ValueError: If a setting is out of range
        """
        for name in (
            "execution_timeout",
            "keepalive_interval",
            "reconnect_base",
            "reconnect_max",
        ):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")
        if self.reconnect_max < self.reconnect_base:
            raise ValueError("reconnect_max must not be smaller than reconnect_base")
        _check_port("admin_port", self.admin_port)


def _read_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {value!r}") from None


def _check_port(name: str, port: int) -> None:
    if not 1 <= port <= 65535:
        raise ValueError(f"{name} must be between 1 and 65535, got {port}")


def _read_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {value!r}") from None


def _read_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() not in ("0", "false", "no", "off")


def settings_from_env() -> RelaySettings:
    """
    Create RelaySettings from environment variables.

    Loads a .env file first so local overrides work without exporting
    anything.
    """
    load_dotenv(find_dotenv(usecwd=True))

    port = _read_int("MONKEY_RELAY_PORT", DEFAULT_PEER_PORT)
    _check_port("MONKEY_RELAY_PORT", port)
    peer_url = os.getenv("MONKEY_RELAY_PEER_URL") or f"ws://localhost:{port}"
    capabilities_file = os.getenv("MONKEY_RELAY_CAPABILITIES_FILE")

    return RelaySettings(
        peer_url=peer_url,
        execution_timeout=_read_float(
            "MONKEY_RELAY_EXECUTION_TIMEOUT", DEFAULT_EXECUTION_TIMEOUT
        ),
        keepalive_interval=_read_float(
            "MONKEY_RELAY_KEEPALIVE_INTERVAL", DEFAULT_KEEPALIVE_INTERVAL
        ),
        reconnect_base=_read_float("MONKEY_RELAY_RECONNECT_BASE", DEFAULT_RECONNECT_BASE),
        reconnect_max=_read_float("MONKEY_RELAY_RECONNECT_MAX", DEFAULT_RECONNECT_MAX),
        admin_enabled=_read_bool("MONKEY_RELAY_ADMIN_ENABLED", True),
        admin_host=os.getenv("MONKEY_RELAY_ADMIN_HOST", "127.0.0.1"),
        admin_port=_read_int("MONKEY_RELAY_ADMIN_PORT", 8766),
        capabilities_file=Path(capabilities_file) if capabilities_file else None,
        log_level=os.getenv("MONKEY_RELAY_LOG_LEVEL", "INFO").upper(),
    )
