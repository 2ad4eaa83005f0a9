"""UDP transport for Art-Net datagrams."""

from __future__ import annotations

import socket
import threading
from typing import Callable, Optional, Protocol

import structlog

from artnet_dmx.core.exceptions import (
    TransportBindError,
    TransportClosedError,
    TransportSendError,
)
from artnet_dmx.dmx.store import SendCallback

logger = structlog.get_logger()

DatagramHandler = Callable[[bytes, tuple[str, int]], None]
ErrorHandler = Callable[[BaseException], None]

_RECV_BUFFER_SIZE = 2048
_RECV_POLL_S = 0.2


class Transport(Protocol):
    def open(
        self,
        bind_port: Optional[int] = None,
        bind_address: str = "",
        broadcast: bool = False,
    ) -> None: ...

    def send(
        self,
        data: bytes,
        host: str,
        port: int,
        callback: Optional[SendCallback] = None,
    ) -> None: ...

    def close(self) -> None: ...


TransportFactory = Callable[..., Transport]


class UdpTransport:
    """
    UDP endpoint for sending and, optionally, receiving Art-Net packets.

    Datagrams arrive on a daemon receive thread and are handed to
    ``on_datagram``. Failures that are not tied to a send call go to
    ``on_error``.
    """

    def __init__(
        self,
        on_datagram: Optional[DatagramHandler] = None,
        on_error: Optional[ErrorHandler] = None,
    ):
        self.on_datagram = on_datagram
        self.on_error = on_error
        self._socket: socket.socket | None = None
        self._running = False
        self._thread: Optional[threading.Thread] = None
        self._closed = False

    @property
    def is_open(self) -> bool:
        return self._socket is not None

    @property
    def local_address(self) -> Optional[tuple[str, int]]:
        if self._socket is None:
            return None
        return self._socket.getsockname()

    def open(
        self,
        bind_port: Optional[int] = None,
        bind_address: str = "",
        broadcast: bool = False,
    ) -> None:
        if self._closed:
            raise TransportClosedError()
        if self._socket is None:
            sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            self._socket = sock

        if bind_port is not None:
            try:
                self._socket.bind((bind_address, bind_port))
            except OSError as e:
                raise TransportBindError(bind_address, bind_port, str(e)) from e
            logger.debug("UDP socket bound", address=bind_address or "*", port=bind_port)

        if broadcast:
            self._socket.setsockopt(socket.SOL_SOCKET, socket.SO_BROADCAST, 1)

        if bind_port is not None and self.on_datagram is not None and self._thread is None:
            self._socket.settimeout(_RECV_POLL_S)
            self._running = True
            self._thread = threading.Thread(
                target=self._receive_loop,
                name="ArtNet-Receive",
                daemon=True,
            )
            self._thread.start()

    def send(
        self,
        data: bytes,
        host: str,
        port: int,
        callback: Optional[SendCallback] = None,
    ) -> None:
        """Send one datagram and report ``(error, bytes_sent)`` to ``callback``."""
        if self._socket is None and not self._closed:
            # Unbound sender: the OS picks an ephemeral port.
            self.open()
        try:
            if self._socket is None:
                raise TransportClosedError()
            sent = self._socket.sendto(data, (host, port))
        except (OSError, TransportClosedError) as e:
            error = e if isinstance(e, TransportClosedError) else TransportSendError(host, port, str(e))
            logger.warning("Art-Net send failed", host=host, port=port, error=str(e))
            if callback is not None:
                callback(error, None)
            elif self.on_error is not None:
                self.on_error(error)
            return

        if callback is not None:
            callback(None, sent)

    def _receive_loop(self) -> None:
        while self._running:
            sock = self._socket
            if sock is None:
                break
            try:
                data, addr = sock.recvfrom(_RECV_BUFFER_SIZE)
            except socket.timeout:
                continue
            except OSError as e:
                if self._running:
                    logger.warning("Art-Net receive failed", error=str(e))
                    if self.on_error is not None:
                        self.on_error(e)
                break
            if self.on_datagram is not None:
                try:
                    self.on_datagram(data, (addr[0], addr[1]))
                except Exception as e:
                    logger.error("Datagram handler failed", source=addr[0], error=str(e))

    def close(self) -> None:
        self._closed = True
        self._running = False
        if self._socket is not None:
            self._socket.close()
            self._socket = None
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout=1.0)
        self._thread = None
