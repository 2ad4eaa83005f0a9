"""
Send Scheduler: per-universe debounce and keep-alive refresh.

Every universe runs a small state machine driven by three events:

- ``SendRequested``: a caller (or the refresh timer) asks for a frame.
- ``ThrottleExpired``: the 25 ms throttle window of the universe closes.
- ``RefreshTick``: the periodic keep-alive timer fires.

States are ``IDLE``, ``THROTTLE_OPEN`` and ``THROTTLE_OPEN_DELAYED``. At most
one frame per universe leaves within a throttle window; requests arriving
while the window is open collapse into a single replay that reuses the
refresh flag and callback of the request that opened the window.

Universes are independent: each has its own lock and timers.
"""

from __future__ import annotations

import threading
from typing import Callable, Optional

import structlog

from artnet_dmx.core.exceptions import ControllerClosedError
from artnet_dmx.dmx.store import DMXStateStore, SendCallback, SendPhase, UniverseState
from artnet_dmx.dmx.timers import Timers

logger = structlog.get_logger()

THROTTLE_WINDOW_MS = 25
DEFAULT_REFRESH_MS = 4000

FrameSender = Callable[[bytes, Optional[SendCallback]], None]


class SendScheduler:
    """
    Rate-limits ArtDmx frames per universe and keeps receivers alive.

    Args:
        store: Channel state to encode frames from.
        send_frame: Hands an encoded frame to the transport and reports the
            outcome to the given callback.
        timers: Timer source for the throttle window and keep-alive.
        refresh_interval_ms: Keep-alive period per universe.
        send_all: Force full 512-channel frames on every send.
        throttle_ms: Length of the debounce window.
    """

    def __init__(
        self,
        store: DMXStateStore,
        send_frame: FrameSender,
        timers: Timers,
        refresh_interval_ms: int = DEFAULT_REFRESH_MS,
        send_all: bool = False,
        throttle_ms: int = THROTTLE_WINDOW_MS,
    ):
        self.store = store
        self.send_frame = send_frame
        self.timers = timers
        self.refresh_interval_ms = refresh_interval_ms
        self.send_all = send_all
        self.throttle_ms = throttle_ms

        self._closed = False

        # Stats
        self._stats_lock = threading.Lock()
        self._frames_sent = 0
        self._frames_coalesced = 0
        self._refreshes = 0
        self._errors = 0

    @property
    def closed(self) -> bool:
        return self._closed

    def request_send(
        self,
        universe: int,
        refresh: bool = False,
        callback: Optional[SendCallback] = None,
    ) -> bool:
        """
        Request an ArtDmx frame for ``universe``.

        Sends immediately unless a throttle window is open, in which case the
        request is folded into the window's single delayed replay. Returns
        True when a frame was handed to the transport.

        Raises:
            ControllerClosedError: the scheduler was closed.
        """
        if self._closed:
            raise ControllerClosedError("send")

        state = self.store.universe(universe)
        with state.lock:
            # close() may have run while this thread waited for the lock.
            if self._closed:
                raise ControllerClosedError("send")

            if state.refresh_timer is None:
                self._start_refresh(state)

            if state.phase is not SendPhase.IDLE:
                state.phase = SendPhase.THROTTLE_OPEN_DELAYED
                with self._stats_lock:
                    self._frames_coalesced += 1
                logger.debug("Send coalesced into throttle window", universe=universe)
                return False

            self._open_throttle(state, refresh, callback)

            if self.send_all:
                refresh = True
            length, frame = self.store.take_frame(universe, refresh)

        self._transmit(universe, length, frame, callback)
        return True

    def _start_refresh(self, state: UniverseState) -> None:
        universe = state.universe
        state.refresh_timer = self.timers.call_every(
            self.refresh_interval_ms / 1000.0,
            lambda: self._on_refresh_tick(universe),
        )
        logger.debug(
            "Keep-alive started",
            universe=universe,
            interval_ms=self.refresh_interval_ms,
        )

    def _open_throttle(
        self,
        state: UniverseState,
        refresh: bool,
        callback: Optional[SendCallback],
    ) -> None:
        universe = state.universe
        state.phase = SendPhase.THROTTLE_OPEN
        state.pending_refresh = refresh
        state.pending_callback = callback
        state.throttle_timer = self.timers.call_later(
            self.throttle_ms / 1000.0,
            lambda: self._on_throttle_expired(universe),
        )

    def _on_refresh_tick(self, universe: int) -> None:
        if self._closed:
            return
        try:
            sent = self.request_send(universe, refresh=True)
        except ControllerClosedError:
            logger.debug("Refresh skipped, scheduler closed", universe=universe)
            return
        if sent:
            with self._stats_lock:
                self._refreshes += 1

    def _on_throttle_expired(self, universe: int) -> None:
        if self._closed:
            return
        state = self.store.universe(universe)
        with state.lock:
            if self._closed:
                return
            replay = state.phase is SendPhase.THROTTLE_OPEN_DELAYED
            refresh = state.pending_refresh
            callback = state.pending_callback
            state.phase = SendPhase.IDLE
            state.throttle_timer = None
            state.pending_refresh = False
            state.pending_callback = None

        if not replay:
            return
        try:
            self.request_send(universe, refresh, callback)
        except ControllerClosedError:
            logger.debug("Delayed send dropped, scheduler closed", universe=universe)

    def _transmit(
        self,
        universe: int,
        length: int,
        frame: bytes,
        callback: Optional[SendCallback],
    ) -> None:
        def _done(error: Optional[BaseException], sent: Optional[int]) -> None:
            with self._stats_lock:
                if error is not None:
                    self._errors += 1
                else:
                    self._frames_sent += 1
            if callback is not None:
                callback(error, sent)

        logger.debug("Sending ArtDmx", universe=universe, length=length)
        self.send_frame(frame, _done)

    def close(self) -> None:
        """Cancel every refresh and throttle timer of every universe."""
        if self._closed:
            return
        self._closed = True
        for state in self.store.universes():
            with state.lock:
                if state.refresh_timer is not None:
                    state.refresh_timer.cancel()
                    state.refresh_timer = None
                if state.throttle_timer is not None:
                    state.throttle_timer.cancel()
                    state.throttle_timer = None
                state.phase = SendPhase.IDLE
                state.pending_callback = None

        logger.info(
            "Send scheduler stopped",
            frames_sent=self._frames_sent,
            errors=self._errors,
        )

    def get_stats(self) -> dict:
        """Get transmission statistics."""
        with self._stats_lock:
            stats = {
                "frames_sent": self._frames_sent,
                "frames_coalesced": self._frames_coalesced,
                "refreshes": self._refreshes,
                "errors": self._errors,
            }
        stats["universes"] = len(self.store.universes())
        return stats
