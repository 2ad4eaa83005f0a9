"""
Configuration Management for artnet-dmx.

Uses Pydantic Settings for type-safe configuration with environment
variable support and YAML file loading.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

BROADCAST_ADDRESS = "255.255.255.255"
DEFAULT_ARTNET_PORT = 6454


class ArtNetConfig(BaseModel):
    """Output destination and send policy."""
    host: str = BROADCAST_ADDRESS
    port: int = DEFAULT_ARTNET_PORT
    refresh_ms: int = Field(default=4000, gt=0)  # keep-alive period per universe
    send_all: bool = False  # always transmit all 512 channels
    interface: Optional[str] = None  # local address to bind for broadcast
    legacy_poll_opcode: bool = False  # emit ArtPoll opcode high byte first


class DiscoveryConfig(BaseModel):
    """ArtPoll discovery configuration."""
    timeout_ms: int = Field(default=2000, ge=0)
    port: int = DEFAULT_ARTNET_PORT
    broadcast_address: str = BROADCAST_ADDRESS


class Settings(BaseSettings):
    """
    Main application settings.

    Can be configured via:
    - Environment variables (prefixed with ARTNET_)
    - YAML config file
    - Direct instantiation
    """

    model_config = SettingsConfigDict(
        env_prefix="ARTNET_",
        env_nested_delimiter="__",
    )

    artnet: ArtNetConfig = Field(default_factory=ArtNetConfig)
    discovery: DiscoveryConfig = Field(default_factory=DiscoveryConfig)

    # Debug
    debug: bool = False
    log_level: str = "INFO"

    @classmethod
    def from_yaml(cls, path: Path) -> "Settings":
        """Load settings from a YAML file."""
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        return cls(**data)

    def to_yaml(self, path: Path) -> None:
        """Save settings to a YAML file."""
        with open(path, "w") as f:
            yaml.dump(self.model_dump(), f, default_flow_style=False)
