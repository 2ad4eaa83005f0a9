"""Core configuration and error types for artnet-dmx."""

from artnet_dmx.core.config import ArtNetConfig, DiscoveryConfig, Settings
from artnet_dmx.core.exceptions import (
    ArtNetError,
    ConfigError,
    ControllerClosedError,
    ProtocolDecodeError,
    TransportError,
)

__all__ = [
    "ArtNetConfig",
    "DiscoveryConfig",
    "Settings",
    "ArtNetError",
    "ConfigError",
    "ControllerClosedError",
    "ProtocolDecodeError",
    "TransportError",
]
