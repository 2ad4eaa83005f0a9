"""
Art-Net packet codec.

Byte-exact builders for ArtDmx, ArtTrigger and ArtPoll, and decoders for
ArtPollReply and ArtDmx. OpCodes are little-endian, the protocol version and
DMX length are big-endian.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from typing import Sequence

from artnet_dmx.core.exceptions import ProtocolDecodeError
from artnet_dmx.dmx.universe import DMX_CHANNEL_COUNT, compose_port_address

ARTNET_PORT = 6454
ARTNET_HEADER = b"Art-Net\x00"
ARTNET_PROTOCOL_VERSION = 14

ARTNET_OPCODE_POLL = 0x2000
ARTNET_OPCODE_POLL_REPLY = 0x2100
ARTNET_OPCODE_DMX = 0x5000
ARTNET_OPCODE_TRIGGER = 0x9900

ARTDMX_HEADER_SIZE = 18
ARTNET_MIN_PACKET_SIZE = 12

TRIGGER_OEM_DEFAULT = 0xFFFF
TRIGGER_KEY_DEFAULT = 255
TRIGGER_SUBKEY_DEFAULT = 0

# ArtPollReply field offsets
_REPLY_IP = slice(10, 14)
_REPLY_NET_SWITCH = 18
_REPLY_SUB_SWITCH = 19
_REPLY_SHORT_NAME = slice(26, 44)
_REPLY_LONG_NAME = slice(44, 108)
_REPLY_NUM_PORTS = 172
_REPLY_SW_IN = 186
_REPLY_SW_OUT = 190


@dataclass
class NodeInfo:
    """Identity and port map of a node, decoded from an ArtPollReply."""

    short_name: str = ""
    long_name: str = ""
    node_ip: str = "0.0.0.0"
    port_count: int = 0
    universe: int = 0  # first input universe
    universes_in: list[int] = field(default_factory=list)
    universes_out: list[int] = field(default_factory=list)
    net_switch: int = 0
    sub_switch: int = 0


def _header(opcode: int) -> bytearray:
    packet = bytearray(ARTNET_HEADER)
    packet.extend(struct.pack("<H", opcode))
    packet.extend(struct.pack(">H", ARTNET_PROTOCOL_VERSION))
    return packet


def build_artdmx_packet(
    universe: int,
    channels: Sequence[int | None],
    length: int = DMX_CHANNEL_COUNT,
) -> bytes:
    """
    Build an ArtDmx packet carrying the first ``length`` channels.

    The length is rounded up to an even number. Slots beyond the end of
    ``channels`` or holding ``None`` are sent as zero. Sequence and physical
    are left at zero (sequencing disabled).
    """
    if length % 2:
        length += 1

    packet = _header(ARTNET_OPCODE_DMX)
    packet.extend(b"\x00\x00")
    packet.extend(bytes([universe & 0xFF, (universe >> 8) & 0xFF]))
    packet.extend(bytes([(length >> 8) & 0xFF, length & 0xFF]))

    data = list(channels[:length])
    data.extend([0] * (length - len(data)))
    packet.extend(bytes((value or 0) & 0xFF for value in data))
    return bytes(packet)


def build_arttrigger_packet(
    oem: int = TRIGGER_OEM_DEFAULT,
    key: int = TRIGGER_KEY_DEFAULT,
    sub_key: int = TRIGGER_SUBKEY_DEFAULT,
) -> bytes:
    """Build an ArtTrigger packet with an empty 512-byte payload."""
    packet = _header(ARTNET_OPCODE_TRIGGER)
    packet.extend(b"\x00\x00")  # filler
    packet.extend(bytes([(oem >> 8) & 0xFF, oem & 0xFF]))
    packet.extend(bytes([key & 0xFF, sub_key & 0xFF]))
    packet.extend(bytes(DMX_CHANNEL_COUNT))
    return bytes(packet)


def build_artpoll_packet(legacy_opcode_order: bool = False) -> bytes:
    """
    Build an ArtPoll packet (TalkToMe = 0, Priority = 0).

    ``legacy_opcode_order`` writes the OpCode high byte first, as earlier
    releases did. Conforming nodes expect the default little-endian order.
    """
    packet = _header(ARTNET_OPCODE_POLL)
    if legacy_opcode_order:
        packet[8:10] = struct.pack(">H", ARTNET_OPCODE_POLL)
    packet.extend(b"\x00\x00")
    return bytes(packet)


def is_artpoll_reply(data: bytes) -> bool:
    """Cheap check for signature and ArtPollReply OpCode."""
    return (
        len(data) >= ARTNET_MIN_PACKET_SIZE
        and data[:8] == ARTNET_HEADER
        and struct.unpack_from("<H", data, 8)[0] == ARTNET_OPCODE_POLL_REPLY
    )


def _ascii_field(raw: bytes) -> str:
    return raw.split(b"\x00", 1)[0].decode("ascii", errors="ignore").strip()


def parse_artpoll_reply(data: bytes) -> NodeInfo:
    """
    Decode an ArtPollReply.

    Truncated replies are tolerated: every field the datagram is too short to
    contain falls back to its default.

    Raises:
        ProtocolDecodeError: not an ArtPollReply at all.
    """
    if len(data) < ARTNET_MIN_PACKET_SIZE:
        raise ProtocolDecodeError("datagram too short", len(data))
    if data[:8] != ARTNET_HEADER:
        raise ProtocolDecodeError("bad signature", len(data))
    if not is_artpoll_reply(data):
        raise ProtocolDecodeError(
            f"unexpected opcode 0x{data[9]:02x}{data[8]:02x}", len(data)
        )

    size = len(data)
    info = NodeInfo()
    if size >= 14:
        info.node_ip = ".".join(str(b) for b in data[_REPLY_IP])
    info.net_switch = data[_REPLY_NET_SWITCH] & 0x7F if size > _REPLY_NET_SWITCH else 0
    info.sub_switch = data[_REPLY_SUB_SWITCH] & 0x0F if size > _REPLY_SUB_SWITCH else 0
    info.short_name = _ascii_field(data[_REPLY_SHORT_NAME])
    info.long_name = _ascii_field(data[_REPLY_LONG_NAME])
    if size > _REPLY_NUM_PORTS + 1:
        info.port_count = struct.unpack_from(">H", data, _REPLY_NUM_PORTS)[0]

    def _ports(offset: int) -> list[int]:
        if size < offset + 4:
            return []
        return [
            compose_port_address(info.net_switch, info.sub_switch, b)
            for b in data[offset:offset + 4]
        ]

    info.universes_in = _ports(_REPLY_SW_IN)
    info.universes_out = _ports(_REPLY_SW_OUT)
    if info.universes_in:
        info.universe = info.universes_in[0]
    elif size > _REPLY_SW_IN:
        info.universe = compose_port_address(
            info.net_switch, info.sub_switch, data[_REPLY_SW_IN]
        )
    return info


def parse_artdmx_packet(data: bytes) -> tuple[int, bytes]:
    """
    Decode an ArtDmx packet into ``(universe, channel_data)``.

    Raises:
        ProtocolDecodeError: wrong signature/OpCode or truncated payload.
    """
    if len(data) < ARTDMX_HEADER_SIZE or data[:8] != ARTNET_HEADER:
        raise ProtocolDecodeError("not an Art-Net packet", len(data))
    if struct.unpack_from("<H", data, 8)[0] != ARTNET_OPCODE_DMX:
        raise ProtocolDecodeError("not an ArtDmx packet", len(data))

    universe = struct.unpack_from("<H", data, 14)[0]
    length = struct.unpack_from(">H", data, 16)[0]
    payload = data[ARTDMX_HEADER_SIZE:ARTDMX_HEADER_SIZE + length]
    if len(payload) != length:
        raise ProtocolDecodeError(
            f"payload truncated: expected {length} bytes, got {len(payload)}",
            len(data),
        )
    return universe, bytes(payload)
