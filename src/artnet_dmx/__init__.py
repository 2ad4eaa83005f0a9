"""
artnet-dmx: Art-Net 4 DMX-over-IP output and node discovery.

Encodes ArtDmx, ArtTrigger and ArtPoll packets, keeps per-universe channel
state, debounces and refreshes outgoing frames, and discovers nodes through
ArtPoll/ArtPollReply.
"""

__version__ = "0.1.0"

from artnet_dmx.controller import ArtNetController
from artnet_dmx.core.config import ArtNetConfig, DiscoveryConfig, Settings
from artnet_dmx.discovery import DiscoveredNode
from artnet_dmx.dmx.artnet import NodeInfo

__all__ = [
    "ArtNetController",
    "ArtNetConfig",
    "DiscoveryConfig",
    "Settings",
    "DiscoveredNode",
    "NodeInfo",
    "__version__",
]
