"""
Per-universe DMX channel state.

Each universe owns a ``UniverseState`` record holding its channel buffer,
the dirty length (highest changed channel since the last frame) and the
scheduler's timer handles. Records are created on first reference and live
as long as the owning store.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional, Sequence, Union

import structlog

from artnet_dmx.dmx.artnet import build_artdmx_packet
from artnet_dmx.dmx.timers import TimerHandle
from artnet_dmx.dmx.universe import DMX_CHANNEL_COUNT, create_channel_buffer

logger = structlog.get_logger()

SendCallback = Callable[[Optional[BaseException], Optional[int]], None]
ChannelValues = Union[int, Sequence[Optional[int]]]


class SendPhase(Enum):
    """Throttle state of one universe."""

    IDLE = "idle"
    THROTTLE_OPEN = "throttle_open"
    THROTTLE_OPEN_DELAYED = "throttle_open_delayed"


@dataclass
class UniverseState:
    """Everything owned by a single universe."""

    universe: int
    channels: list[int] = field(default_factory=create_channel_buffer)
    dirty_length: int = 0

    # Scheduler state
    phase: SendPhase = SendPhase.IDLE
    refresh_timer: Optional[TimerHandle] = None
    throttle_timer: Optional[TimerHandle] = None
    pending_refresh: bool = False
    pending_callback: Optional[SendCallback] = None

    lock: threading.RLock = field(default_factory=threading.RLock, repr=False)

    @property
    def delayed(self) -> bool:
        return self.phase is SendPhase.THROTTLE_OPEN_DELAYED


class DMXStateStore:
    """Mapping from universe id to its ``UniverseState``."""

    def __init__(self) -> None:
        self._universes: dict[int, UniverseState] = {}
        self._lock = threading.Lock()

    def universe(self, universe: int) -> UniverseState:
        """Return the record for ``universe``, creating it on first touch."""
        with self._lock:
            state = self._universes.get(universe)
            if state is None:
                state = UniverseState(universe=universe)
                self._universes[universe] = state
            return state

    def universes(self) -> list[UniverseState]:
        with self._lock:
            return list(self._universes.values())

    def __contains__(self, universe: int) -> bool:
        with self._lock:
            return universe in self._universes

    def write(self, universe: int, start_channel: int, values: ChannelValues) -> bool:
        """
        Write one value or a run of values starting at ``start_channel``.

        Only writes that differ from the stored value count as changes and
        raise the dirty length. ``None`` entries leave their slot untouched.
        Returns True when at least one slot changed.
        """
        if isinstance(values, int):
            values = [values]

        state = self.universe(universe)
        changed = False
        with state.lock:
            channels = state.channels
            for offset, value in enumerate(values):
                if value is None:
                    continue
                index = start_channel - 1 + offset
                if index < 0:
                    # Channel 0 and below have no slot.
                    logger.debug("Dropping write below channel 1", universe=universe, channel=index + 1)
                    continue
                if index >= len(channels):
                    channels.extend([0] * (index + 1 - len(channels)))
                if channels[index] == value:
                    continue
                channels[index] = value
                changed = True
                if index + 1 > state.dirty_length:
                    state.dirty_length = index + 1
        return changed

    def read(self, universe: int, channel: int = 1, count: int = DMX_CHANNEL_COUNT) -> list[int]:
        """Return a copy of ``count`` channel values starting at ``channel``."""
        state = self.universe(universe)
        with state.lock:
            start = max(channel - 1, 0)
            return list(state.channels[start:start + count])

    def take_frame(self, universe: int, refresh: bool) -> tuple[int, bytes]:
        """
        Encode the next ArtDmx frame and clear the dirty length.

        A refresh sends all 512 channels; otherwise only up to the dirty
        length, falling back to 512 when nothing is recorded as changed.
        """
        state = self.universe(universe)
        with state.lock:
            if refresh or state.dirty_length <= 0:
                length = DMX_CHANNEL_COUNT
            else:
                length = state.dirty_length
            packet = build_artdmx_packet(universe, state.channels, length)
            state.dirty_length = 0
        return length, packet


def _is_values(arg: Any) -> bool:
    return isinstance(arg, (int, Sequence)) and not isinstance(arg, str)


def resolve_set_args(
    *args: Any,
) -> tuple[int, int, ChannelValues, Optional[SendCallback]]:
    """
    Resolve the overloaded ``set`` call shapes.

    ``(values)`` -> universe 0, channel 1; ``(channel, values)`` -> universe 0;
    ``(universe, channel, values)``. A trailing callable is always the
    completion handler.

    Returns:
        ``(universe, channel, values, callback)``
    """
    callback: Optional[SendCallback] = None
    positional = list(args)
    if positional and callable(positional[-1]):
        callback = positional.pop()

    if len(positional) == 1:
        universe, channel, values = 0, 1, positional[0]
    elif len(positional) == 2:
        universe, channel, values = 0, positional[0], positional[1]
    elif len(positional) == 3:
        universe, channel, values = positional
    else:
        raise TypeError(
            f"set() takes 1 to 3 positional arguments plus a callback, got {len(positional)}"
        )

    if not _is_values(values):
        raise TypeError(f"set() value must be an int or a sequence of ints, got {type(values).__name__}")
    if isinstance(values, (bytes, bytearray)):
        values = list(values)
    return universe, channel, values, callback
