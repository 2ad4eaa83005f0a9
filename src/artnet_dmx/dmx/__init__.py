"""DMX state, Art-Net packets and transmission."""

from artnet_dmx.dmx.artnet import (
    ARTNET_PORT,
    NodeInfo,
    build_artdmx_packet,
    build_artpoll_packet,
    build_arttrigger_packet,
    parse_artdmx_packet,
    parse_artpoll_reply,
)
from artnet_dmx.dmx.scheduler import SendScheduler
from artnet_dmx.dmx.store import DMXStateStore, UniverseState, resolve_set_args
from artnet_dmx.dmx.universe import (
    DMX_CHANNEL_COUNT,
    DMX_CHANNEL_MAX,
    DMX_CHANNEL_MIN,
    compose_port_address,
    create_channel_buffer,
    split_port_address,
)

__all__ = [
    "ARTNET_PORT",
    "NodeInfo",
    "build_artdmx_packet",
    "build_artpoll_packet",
    "build_arttrigger_packet",
    "parse_artdmx_packet",
    "parse_artpoll_reply",
    "SendScheduler",
    "DMXStateStore",
    "UniverseState",
    "resolve_set_args",
    "DMX_CHANNEL_COUNT",
    "DMX_CHANNEL_MIN",
    "DMX_CHANNEL_MAX",
    "compose_port_address",
    "create_channel_buffer",
    "split_port_address",
]
