"""Canonical DMX universe sizing and Art-Net port-address helpers."""

from __future__ import annotations

DMX_CHANNEL_COUNT = 512
DMX_CHANNEL_MIN = 1
DMX_CHANNEL_MAX = DMX_CHANNEL_COUNT


def create_channel_buffer() -> list[int]:
    """Create a zeroed 512-slot channel buffer (channel 1 is index 0)."""
    return [0] * DMX_CHANNEL_COUNT


def compose_port_address(net: int, sub_net: int, port: int) -> int:
    """Combine Net, Sub-Net and port nibble into a 15-bit universe."""
    return ((net & 0x7F) << 8) | ((sub_net & 0x0F) << 4) | (port & 0x0F)


def split_port_address(universe: int) -> tuple[int, int, int]:
    """Return ``(net, sub_net, port)`` for a 15-bit universe."""
    return (universe >> 8) & 0x7F, (universe >> 4) & 0x0F, universe & 0x0F
