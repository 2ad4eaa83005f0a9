from __future__ import annotations

import pytest

from artnet_dmx.core.exceptions import ProtocolDecodeError
from artnet_dmx.dmx.artnet import (
    build_artdmx_packet,
    build_artpoll_packet,
    build_arttrigger_packet,
    is_artpoll_reply,
    parse_artdmx_packet,
    parse_artpoll_reply,
)
from artnet_dmx.dmx.universe import compose_port_address, split_port_address


def test_build_artdmx_packet_layout() -> None:
    data = [7] * 512
    packet = build_artdmx_packet(universe=0x0123, channels=data, length=512)

    assert packet[:8] == b"Art-Net\x00"
    assert packet[8:10] == b"\x00\x50"  # OpOutput / ArtDMX
    assert packet[10:12] == b"\x00\x0e"  # Protocol version 14
    assert packet[12:14] == b"\x00\x00"  # sequence + physical
    assert packet[14:16] == b"\x23\x01"  # little-endian universe address
    assert packet[16:18] == b"\x02\x00"  # 512 slots
    assert packet[18:] == bytes(data)
    assert len(packet) == 530


def test_artdmx_length_rounds_up_to_even_and_pads_missing_slots() -> None:
    packet = build_artdmx_packet(universe=1, channels=[10, 20, 30], length=3)

    assert packet[16:18] == b"\x00\x04"
    assert packet[18:] == bytes([10, 20, 30, 0])


def test_artdmx_treats_none_as_zero_and_masks_values() -> None:
    packet = build_artdmx_packet(universe=0, channels=[None, 256 + 5], length=2)
    assert packet[18:] == b"\x00\x05"


def test_artdmx_round_trip_through_decoder() -> None:
    channels = [i % 256 for i in range(1, 513)]
    packet = build_artdmx_packet(universe=3, channels=channels, length=512)

    universe, data = parse_artdmx_packet(packet)

    assert universe == 3
    assert data == bytes(channels)


def test_parse_artdmx_rejects_truncated_payload() -> None:
    packet = build_artdmx_packet(universe=0, channels=[1] * 512, length=512)
    with pytest.raises(ProtocolDecodeError):
        parse_artdmx_packet(packet[:100])


def test_build_arttrigger_packet_layout() -> None:
    packet = build_arttrigger_packet(oem=0xABCD, key=3, sub_key=9)

    assert packet[:8] == b"Art-Net\x00"
    assert packet[8:10] == b"\x00\x99"
    assert packet[10:12] == b"\x00\x0e"
    assert packet[12:14] == b"\x00\x00"  # filler
    assert packet[14:16] == b"\xab\xcd"  # OEM high byte first
    assert packet[16] == 3
    assert packet[17] == 9
    assert packet[18:] == bytes(512)
    assert len(packet) == 530


def test_build_arttrigger_defaults() -> None:
    packet = build_arttrigger_packet()
    assert packet[14:18] == b"\xff\xff\xff\x00"


def test_build_artpoll_packet_uses_little_endian_opcode() -> None:
    packet = build_artpoll_packet()
    assert packet == b"Art-Net\x00" + b"\x00\x20" + b"\x00\x0e" + b"\x00\x00"


def test_build_artpoll_packet_legacy_opcode_order() -> None:
    packet = build_artpoll_packet(legacy_opcode_order=True)
    assert packet[8:10] == b"\x20\x00"
    assert len(packet) == 14


def test_parse_artpoll_reply_composes_port_addresses(poll_reply) -> None:
    data = poll_reply(net=2, sub=5, sw_in=(1, 0, 0, 0), sw_out=(3, 4, 5, 6))

    info = parse_artpoll_reply(data)

    assert info.universes_in[0] == (2 << 8) | (5 << 4) | 1 == 593
    assert info.universes_out == [595, 596, 597, 598]
    assert info.universe == 593
    assert info.net_switch == 2
    assert info.sub_switch == 5


def test_parse_artpoll_reply_fields(poll_reply) -> None:
    data = poll_reply(
        ip=(192, 168, 1, 40),
        short_name=b"  Gateway \x00junk",
        long_name=b"Four Port Gateway",
        num_ports=2,
    )

    info = parse_artpoll_reply(data)

    assert info.node_ip == "192.168.1.40"
    assert info.short_name == "Gateway"
    assert info.long_name == "Four Port Gateway"
    assert info.port_count == 2


def test_parse_artpoll_reply_masks_switch_bits(poll_reply) -> None:
    info = parse_artpoll_reply(poll_reply(net=0xFF, sub=0xF3, sw_in=(0x1F, 0, 0, 0)))

    assert info.net_switch == 0x7F
    assert info.sub_switch == 0x03
    assert info.universes_in[0] == compose_port_address(0x7F, 0x03, 0x0F)


def test_parse_truncated_reply_falls_back_to_defaults(poll_reply) -> None:
    info = parse_artpoll_reply(poll_reply(ip=(10, 1, 2, 3), size=12))

    assert info.node_ip == "0.0.0.0"
    assert info.short_name == ""
    assert info.port_count == 0
    assert info.universes_in == []
    assert info.universes_out == []
    assert info.universe == 0


def test_parse_reply_without_sw_out(poll_reply) -> None:
    info = parse_artpoll_reply(poll_reply(sw_in=(1, 2, 3, 4), size=192))

    assert info.universes_in == [1, 2, 3, 4]
    assert info.universes_out == []


def test_legacy_universe_from_partial_sw_in(poll_reply) -> None:
    info = parse_artpoll_reply(poll_reply(net=1, sub=1, sw_in=(7, 0, 0, 0), size=188))

    assert info.universes_in == []
    assert info.universe == compose_port_address(1, 1, 7)


@pytest.mark.parametrize(
    "data",
    [
        b"Art-Net\x00\x00",  # too short
        b"Art-Nxt\x00\x00\x21\x00\x0e",  # bad signature
        b"Art-Net\x00\x00\x20\x00\x0e",  # ArtPoll, not a reply
        b"Art-Net\x00\x21\x00\x00\x0e",  # opcode bytes swapped
    ],
)
def test_parse_artpoll_reply_rejects_foreign_datagrams(data: bytes) -> None:
    assert not is_artpoll_reply(data)
    with pytest.raises(ProtocolDecodeError):
        parse_artpoll_reply(data)


def test_port_address_helpers() -> None:
    assert compose_port_address(1, 2, 3) == 0x0123
    assert split_port_address(0x0123) == (1, 2, 3)
    assert split_port_address(32767) == (0x7F, 0x0F, 0x0F)
