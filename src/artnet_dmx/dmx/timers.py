"""
Timer primitives used by the send scheduler and discovery.

``ThreadingTimers`` runs callbacks on background threads. Anything with the
same two methods (for example a manual clock in tests) can stand in for it.
"""

from __future__ import annotations

import threading
from typing import Callable, Protocol

import structlog

logger = structlog.get_logger()


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Timers(Protocol):
    def call_later(self, delay_s: float, fn: Callable[[], None]) -> TimerHandle: ...

    def call_every(self, interval_s: float, fn: Callable[[], None]) -> TimerHandle: ...


class _RepeatingTimer:
    """Calls ``fn`` every ``interval_s`` seconds until cancelled."""

    def __init__(self, interval_s: float, fn: Callable[[], None], name: str):
        self._interval = interval_s
        self._fn = fn
        self._stopped = threading.Event()
        self._thread = threading.Thread(target=self._run, name=name, daemon=True)

    def start(self) -> None:
        self._thread.start()

    def _run(self) -> None:
        while not self._stopped.wait(self._interval):
            try:
                self._fn()
            except Exception as e:
                logger.error("Periodic timer callback failed", error=str(e))

    def cancel(self) -> None:
        self._stopped.set()


class ThreadingTimers:
    """Thread-backed ``Timers`` implementation."""

    def call_later(self, delay_s: float, fn: Callable[[], None]) -> TimerHandle:
        timer = threading.Timer(delay_s, fn)
        timer.daemon = True
        timer.start()
        return timer

    def call_every(self, interval_s: float, fn: Callable[[], None]) -> TimerHandle:
        timer = _RepeatingTimer(interval_s, fn, name="ArtNet-Refresh")
        timer.start()
        return timer
