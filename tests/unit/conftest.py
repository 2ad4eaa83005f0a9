from __future__ import annotations

from typing import Callable, Optional

import pytest


class _ManualTimer:
    def __init__(self, due_ms: int, interval_ms: Optional[int], fn: Callable[[], None], seq: int):
        self.due_ms = due_ms
        self.interval_ms = interval_ms
        self.fn = fn
        self.seq = seq
        self.active = True

    def cancel(self) -> None:
        self.active = False


class ManualTimers:
    """Timers driven by ``advance()`` instead of wall-clock time."""

    def __init__(self) -> None:
        self.now_ms = 0
        self._timers: list[_ManualTimer] = []
        self._seq = 0

    def _add(self, delay_s: float, interval_s: Optional[float], fn: Callable[[], None]) -> _ManualTimer:
        self._seq += 1
        delay_ms = round(delay_s * 1000)
        interval_ms = round(interval_s * 1000) if interval_s is not None else None
        timer = _ManualTimer(self.now_ms + delay_ms, interval_ms, fn, self._seq)
        self._timers.append(timer)
        return timer

    def call_later(self, delay_s: float, fn: Callable[[], None]) -> _ManualTimer:
        return self._add(delay_s, None, fn)

    def call_every(self, interval_s: float, fn: Callable[[], None]) -> _ManualTimer:
        return self._add(interval_s, interval_s, fn)

    @property
    def active(self) -> list[_ManualTimer]:
        return [t for t in self._timers if t.active]

    def advance(self, seconds: float) -> None:
        target = self.now_ms + round(seconds * 1000)
        while True:
            due = [t for t in self.active if t.due_ms <= target]
            if not due:
                break
            timer = min(due, key=lambda t: (t.due_ms, t.seq))
            self.now_ms = timer.due_ms
            if timer.interval_ms is None:
                timer.active = False
            else:
                timer.due_ms += timer.interval_ms
            timer.fn()
        self.now_ms = target


class FakeTransport:
    """In-memory transport recording everything sent."""

    def __init__(self, on_datagram=None, on_error=None, bind_error=None, send_error=None):
        self.on_datagram = on_datagram
        self.on_error = on_error
        self.bind_error = bind_error
        self.send_error = send_error
        self.opened: list[tuple[Optional[int], str, bool]] = []
        self.sent: list[tuple[bytes, str, int]] = []
        self.closed = False

    def open(self, bind_port=None, bind_address="", broadcast=False) -> None:
        self.opened.append((bind_port, bind_address, broadcast))
        if self.bind_error is not None and bind_port is not None:
            raise self.bind_error

    def send(self, data, host, port, callback=None) -> None:
        if self.send_error is not None:
            if callback is not None:
                callback(self.send_error, None)
            elif self.on_error is not None:
                self.on_error(self.send_error)
            return
        self.sent.append((bytes(data), host, port))
        if callback is not None:
            callback(None, len(data))

    def deliver(self, data: bytes, addr: tuple[str, int]) -> None:
        assert self.on_datagram is not None
        self.on_datagram(data, addr)

    def close(self) -> None:
        self.closed = True


class FakeTransportFactory:
    """Builds ``FakeTransport`` instances and remembers them."""

    def __init__(self, bind_error=None, send_error=None):
        self.bind_error = bind_error
        self.send_error = send_error
        self.created: list[FakeTransport] = []

    def __call__(self, on_datagram=None, on_error=None) -> FakeTransport:
        transport = FakeTransport(
            on_datagram=on_datagram,
            on_error=on_error,
            bind_error=self.bind_error,
            send_error=self.send_error,
        )
        self.created.append(transport)
        return transport


class CallbackProbe:
    def __init__(self) -> None:
        self.calls: list[tuple[Optional[BaseException], Optional[int]]] = []

    def __call__(self, error, sent) -> None:
        self.calls.append((error, sent))


@pytest.fixture
def timers() -> ManualTimers:
    return ManualTimers()


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def transport_factory() -> FakeTransportFactory:
    return FakeTransportFactory()


@pytest.fixture
def probe() -> CallbackProbe:
    return CallbackProbe()


@pytest.fixture
def make_probe() -> Callable[[], CallbackProbe]:
    return CallbackProbe


def build_poll_reply(
    ip: tuple[int, int, int, int] = (10, 0, 0, 5),
    net: int = 0,
    sub: int = 0,
    short_name: bytes = b"Node",
    long_name: bytes = b"Art-Net Node",
    num_ports: int = 4,
    sw_in: tuple[int, int, int, int] = (0, 0, 0, 0),
    sw_out: tuple[int, int, int, int] = (0, 0, 0, 0),
    size: int = 239,
) -> bytes:
    packet = bytearray(max(size, 194))
    packet[0:8] = b"Art-Net\x00"
    packet[8:10] = b"\x00\x21"
    packet[10:14] = bytes(ip)
    packet[14:16] = b"\x36\x19"
    packet[18] = net
    packet[19] = sub
    packet[26:26 + len(short_name)] = short_name
    packet[44:44 + len(long_name)] = long_name
    packet[172:174] = num_ports.to_bytes(2, "big")
    packet[186:190] = bytes(sw_in)
    packet[190:194] = bytes(sw_out)
    return bytes(packet[:size])


@pytest.fixture
def poll_reply() -> Callable[..., bytes]:
    return build_poll_reply


@pytest.fixture
def make_transport_factory() -> Callable[..., FakeTransportFactory]:
    return FakeTransportFactory
