"""
Art-Net controller: the public entry point.

Owns the channel store, the send scheduler and the output transport, and
runs discovery sessions on their own transports.

    controller = ArtNetController(ArtNetConfig(host="10.0.0.255"))
    controller.set(1, 1, [255, 0, 128])
    nodes = controller.discover_nodes(1500)
    controller.close()
"""

from __future__ import annotations

import threading
from concurrent.futures import Future
from typing import Any, Callable, Optional

import structlog

from artnet_dmx.core.config import BROADCAST_ADDRESS, ArtNetConfig, DiscoveryConfig
from artnet_dmx.core.exceptions import (
    ArtNetError,
    BroadcastPortError,
    ControllerClosedError,
)
from artnet_dmx.discovery import DiscoveredNode, DiscoverySession
from artnet_dmx.dmx.artnet import (
    TRIGGER_KEY_DEFAULT,
    TRIGGER_OEM_DEFAULT,
    TRIGGER_SUBKEY_DEFAULT,
    build_arttrigger_packet,
)
from artnet_dmx.dmx.scheduler import SendScheduler
from artnet_dmx.dmx.store import (
    ChannelValues,
    DMXStateStore,
    SendCallback,
    resolve_set_args,
)
from artnet_dmx.dmx.timers import ThreadingTimers, Timers
from artnet_dmx.dmx.transport import Transport, TransportFactory, UdpTransport

logger = structlog.get_logger()

ErrorListener = Callable[[BaseException], None]


def resolve_trigger_args(*args: Any) -> tuple[int, int, int, Optional[SendCallback]]:
    """
    Resolve the overloaded ``trigger`` call shapes.

    ``()`` / ``(key)`` / ``(sub_key, key)`` / ``(oem, sub_key, key)``; a
    trailing callable is the completion handler. Unspecified ``sub_key`` is 0,
    ``oem`` is 0xFFFF and ``key`` is 255.

    Returns:
        ``(oem, key, sub_key, callback)``
    """
    callback: Optional[SendCallback] = None
    positional = list(args)
    if positional and callable(positional[-1]):
        callback = positional.pop()

    oem: Optional[int] = None
    sub_key: Optional[int] = None
    key: Optional[int] = None
    if len(positional) == 1:
        (key,) = positional
    elif len(positional) == 2:
        sub_key, key = positional
    elif len(positional) == 3:
        oem, sub_key, key = positional
    elif positional:
        raise TypeError(
            f"trigger() takes at most 3 positional arguments plus a callback, got {len(positional)}"
        )

    if sub_key is None:
        sub_key = TRIGGER_SUBKEY_DEFAULT
    if oem is None:
        oem = TRIGGER_OEM_DEFAULT
    if key is None:
        key = TRIGGER_KEY_DEFAULT
    return oem, key, sub_key, callback


class ArtNetController:
    """
    Sends ArtDmx and ArtTrigger packets and discovers nodes.

    Output goes to ``config.host:config.port``. Frames are debounced per
    universe and refreshed every ``config.refresh_ms`` so receivers never
    time out. Transport failures that are not tied to a call are delivered to
    the error listeners.
    """

    def __init__(
        self,
        config: Optional[ArtNetConfig] = None,
        *,
        discovery: Optional[DiscoveryConfig] = None,
        transport: Optional[Transport] = None,
        transport_factory: TransportFactory = UdpTransport,
        timers: Optional[Timers] = None,
        on_error: Optional[ErrorListener] = None,
    ):
        self.config = config or ArtNetConfig()
        self.discovery_config = discovery or DiscoveryConfig()
        self.transport_factory = transport_factory
        self.timers = timers or ThreadingTimers()

        self._host = self.config.host
        self._port = self.config.port
        self._closed = False
        self._lock = threading.Lock()
        self._error_listeners: list[ErrorListener] = []
        if on_error is not None:
            self._error_listeners.append(on_error)

        self.store = DMXStateStore()
        self.scheduler = SendScheduler(
            store=self.store,
            send_frame=self._send_packet,
            timers=self.timers,
            refresh_interval_ms=self.config.refresh_ms,
            send_all=self.config.send_all,
        )

        if transport is None:
            transport = transport_factory(on_error=self._emit_error)
        self.transport = transport
        self._open_transport()

    def _open_transport(self) -> None:
        interface = self.config.interface
        try:
            if interface and self._host == BROADCAST_ADDRESS:
                self.transport.open(bind_port=self._port, bind_address=interface, broadcast=True)
            elif self._host.endswith(".255"):
                self.transport.open(bind_port=self._port, broadcast=True)
            else:
                self.transport.open()
        except (ArtNetError, OSError) as e:
            logger.error("Art-Net transport setup failed", host=self._host, error=str(e))
            self._emit_error(e)
            return

        logger.info(
            "Art-Net output ready",
            host=self._host,
            port=self._port,
            interface=interface,
            refresh_ms=self.config.refresh_ms,
        )

    # ------------------------------------------------------------------
    # Destination
    # ------------------------------------------------------------------

    @property
    def host(self) -> str:
        return self._host

    @property
    def port(self) -> int:
        return self._port

    @property
    def closed(self) -> bool:
        return self._closed

    def set_host(self, host: str) -> None:
        """Change the output host."""
        self._host = host

    def set_port(self, port: int) -> None:
        """
        Change the output port.

        Raises:
            ConfigError: the host is the global broadcast address.
        """
        if self._host == BROADCAST_ADDRESS:
            raise BroadcastPortError(self._host, port)
        self._port = port

    # ------------------------------------------------------------------
    # Error channel
    # ------------------------------------------------------------------

    def add_error_listener(self, listener: ErrorListener) -> None:
        self._error_listeners.append(listener)

    def remove_error_listener(self, listener: ErrorListener) -> None:
        if listener in self._error_listeners:
            self._error_listeners.remove(listener)

    def _emit_error(self, error: BaseException) -> None:
        if not self._error_listeners:
            logger.error("Unhandled Art-Net transport error", error=str(error))
            return
        for listener in list(self._error_listeners):
            listener(error)

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------

    def _check_open(self, operation: str) -> None:
        if self._closed:
            raise ControllerClosedError(operation)

    def _send_packet(self, packet: bytes, callback: Optional[SendCallback] = None) -> None:
        self.transport.send(packet, self._host, self._port, callback)

    def send(
        self,
        universe: int,
        refresh: bool = False,
        callback: Optional[SendCallback] = None,
    ) -> None:
        """
        Transmit the current frame of ``universe``.

        ``refresh`` forces all 512 channels; otherwise only the channels up to
        the highest one changed since the last frame are sent.
        """
        self._check_open("send")
        if callable(refresh):
            callback, refresh = refresh, False
        self.scheduler.request_send(universe, bool(refresh), callback)

    def send_trigger(
        self,
        oem: int,
        key: int,
        sub_key: int,
        callback: Optional[SendCallback] = None,
    ) -> None:
        """Transmit an ArtTrigger packet."""
        self._check_open("trigger")
        logger.debug("Sending ArtTrigger", oem=oem, key=key, sub_key=sub_key)
        self._send_packet(build_arttrigger_packet(oem, key, sub_key), callback)

    def trigger(self, *args: Any, callback: Optional[SendCallback] = None) -> bool:
        """
        Send a trigger: ``trigger(key)``, ``trigger(sub_key, key)`` or
        ``trigger(oem, sub_key, key)``, each optionally followed by a callback.
        """
        oem, key, sub_key, resolved = resolve_trigger_args(*args)
        self.send_trigger(oem, key, sub_key, callback or resolved)
        return True

    def set_channels(
        self,
        universe: int,
        channel: int,
        values: ChannelValues,
        callback: Optional[SendCallback] = None,
    ) -> bool:
        """
        Write channel values and send the universe if anything changed.

        When nothing changed no frame is sent and ``callback`` is invoked
        right away with ``(None, None)``.
        """
        self._check_open("set channels")
        if self.store.write(universe, channel, values):
            self.scheduler.request_send(universe, False, callback)
        elif callback is not None:
            callback(None, None)
        return True

    def set(self, *args: Any, callback: Optional[SendCallback] = None) -> bool:
        """
        Set channel(s): ``set(values)``, ``set(channel, values)`` or
        ``set(universe, channel, values)``, each optionally followed by a
        callback. ``values`` is an int or a sequence of ints.
        """
        universe, channel, values, resolved = resolve_set_args(*args)
        return self.set_channels(universe, channel, values, callback or resolved)

    def get_channels(self, universe: int) -> list[int]:
        """Return a copy of the 512 channel values of ``universe``."""
        return self.store.read(universe)

    # ------------------------------------------------------------------
    # Discovery
    # ------------------------------------------------------------------

    def discover_nodes_async(self, timeout_ms: Optional[int] = None) -> Future[list[DiscoveredNode]]:
        """Start a discovery session and return its future."""
        self._check_open("discover nodes")
        if timeout_ms is None:
            timeout_ms = self.discovery_config.timeout_ms
        session = DiscoverySession(
            transport_factory=self.transport_factory,
            timers=self.timers,
            port=self.discovery_config.port,
            broadcast_address=self.discovery_config.broadcast_address,
            legacy_poll_opcode=self.config.legacy_poll_opcode,
            on_error=self._emit_error,
        )
        return session.start(timeout_ms)

    def discover_nodes(self, timeout_ms: Optional[int] = None) -> list[DiscoveredNode]:
        """Broadcast an ArtPoll and return the nodes that replied in time."""
        return self.discover_nodes_async(timeout_ms).result()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        """Stop every timer and release the transport."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
        self.scheduler.close()
        self.transport.close()
        logger.info("Art-Net controller closed")

    def get_stats(self) -> dict:
        stats = self.scheduler.get_stats()
        stats["host"] = self._host
        stats["port"] = self._port
        stats["closed"] = self._closed
        return stats

    def __enter__(self) -> "ArtNetController":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
