"""
Node discovery via ArtPoll / ArtPollReply.

A ``DiscoverySession`` broadcasts one ArtPoll on a dedicated transport,
collects replies until its deadline and then resolves with the nodes seen:

    IDLE -> POLLING -> COLLECTING -> DONE

The session always resolves, with an empty list when nobody answered.
Foreign or malformed datagrams are dropped.
"""

from __future__ import annotations

import threading
from concurrent.futures import Future
from dataclasses import dataclass
from enum import Enum
from typing import Optional

import structlog

from artnet_dmx.core.config import BROADCAST_ADDRESS
from artnet_dmx.core.exceptions import ArtNetError, ProtocolDecodeError
from artnet_dmx.dmx.artnet import (
    ARTNET_PORT,
    NodeInfo,
    build_artpoll_packet,
    parse_artpoll_reply,
)
from artnet_dmx.dmx.timers import TimerHandle, Timers
from artnet_dmx.dmx.transport import ErrorHandler, Transport, TransportFactory

logger = structlog.get_logger()

DEFAULT_DISCOVERY_TIMEOUT_MS = 2000


class DiscoveryState(Enum):
    IDLE = "idle"
    POLLING = "polling"
    COLLECTING = "collecting"
    DONE = "done"


@dataclass
class DiscoveredNode:
    """A node that answered the poll."""

    ip: str
    port: int
    info: NodeInfo


class DiscoverySession:
    """
    One poll/collect cycle.

    Sessions are single-use: create a new one for every discovery.
    """

    def __init__(
        self,
        transport_factory: TransportFactory,
        timers: Timers,
        port: int = ARTNET_PORT,
        broadcast_address: str = BROADCAST_ADDRESS,
        legacy_poll_opcode: bool = False,
        on_error: Optional[ErrorHandler] = None,
    ):
        self.transport_factory = transport_factory
        self.timers = timers
        self.port = port
        self.broadcast_address = broadcast_address
        self.legacy_poll_opcode = legacy_poll_opcode
        self.on_error = on_error

        self.state = DiscoveryState.IDLE
        self.nodes: list[DiscoveredNode] = []
        self.future: Future[list[DiscoveredNode]] = Future()

        self._seen: set[str] = set()
        self._lock = threading.RLock()
        self._transport: Optional[Transport] = None
        self._deadline: Optional[TimerHandle] = None

    def start(self, timeout_ms: int = DEFAULT_DISCOVERY_TIMEOUT_MS) -> Future[list[DiscoveredNode]]:
        """Broadcast the poll and arm the collection deadline."""
        with self._lock:
            if self.state is not DiscoveryState.IDLE:
                raise RuntimeError(f"Discovery session already {self.state.value}")
            self.state = DiscoveryState.POLLING
            self.nodes = []
            self._seen.clear()

            # Arm the deadline first so the session resolves whatever happens below.
            self._deadline = self.timers.call_later(timeout_ms / 1000.0, self.expire)

            logger.info("Discovering Art-Net nodes", timeout_ms=timeout_ms, port=self.port)
            try:
                self._transport = self.transport_factory(
                    on_datagram=self.handle_datagram,
                    on_error=self._report_error,
                )
                self._transport.open(bind_port=self.port, broadcast=True)
            except (ArtNetError, OSError) as e:
                self._report_error(e)
            else:
                self._transport.send(
                    build_artpoll_packet(self.legacy_poll_opcode),
                    self.broadcast_address,
                    self.port,
                    self._on_poll_sent,
                )

            if self.state is DiscoveryState.POLLING:
                self.state = DiscoveryState.COLLECTING
        return self.future

    def _on_poll_sent(self, error: Optional[BaseException], sent: Optional[int]) -> None:
        if error is not None:
            self._report_error(error)
        else:
            logger.debug("ArtPoll sent", bytes=sent, address=self.broadcast_address)

    def handle_datagram(self, data: bytes, addr: tuple[str, int]) -> None:
        """Record an ArtPollReply; anything else is ignored."""
        ip, port = addr
        try:
            info = parse_artpoll_reply(data)
        except ProtocolDecodeError as e:
            logger.debug("Dropping datagram", source=ip, reason=e.reason)
            return

        with self._lock:
            if self.state not in (DiscoveryState.POLLING, DiscoveryState.COLLECTING):
                return
            if ip in self._seen:
                return
            self._seen.add(ip)
            self.nodes.append(DiscoveredNode(ip=ip, port=port, info=info))

        logger.info(
            "Art-Net node discovered",
            ip=ip,
            short_name=info.short_name,
            universes_out=info.universes_out,
        )

    def expire(self) -> None:
        """Deadline reached: release the transport and resolve."""
        with self._lock:
            if self.state is DiscoveryState.DONE:
                return
            self.state = DiscoveryState.DONE
            transport, self._transport = self._transport, None
            nodes = list(self.nodes)

        if transport is not None:
            transport.close()
        logger.info("Discovery finished", nodes=len(nodes))
        self.future.set_result(nodes)

    def _report_error(self, error: BaseException) -> None:
        logger.warning("Discovery transport error", error=str(error))
        if self.on_error is not None:
            self.on_error(error)

