"""
blinkloop/gaze/blink_reducer.py — Debounced blink edge detection.

Reduces a per-frame "eye open enough" boolean into discrete BLINK_START and
BLINK_END edges. Repeated identical readings collapse into a single edge, so
a closure lasting many frames still produces exactly one start and one end.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class BlinkState(Enum):
    """Where the watched eye is within a closure episode."""

    OPEN = "OPEN"
    CLOSING = "CLOSING"
    CLOSED = "CLOSED"
    OPENING = "OPENING"


class BlinkEdge(Enum):
    """Edge emitted on entering or leaving a closure episode."""

    BLINK_START = "BLINK_START"
    BLINK_END = "BLINK_END"


# (state, eye_open_enough) → (next state, emitted edge)
_TRANSITIONS: dict[tuple[BlinkState, bool], tuple[BlinkState, Optional[BlinkEdge]]] = {
    (BlinkState.OPEN, True): (BlinkState.OPEN, None),
    (BlinkState.OPEN, False): (BlinkState.CLOSING, BlinkEdge.BLINK_START),
    (BlinkState.CLOSING, False): (BlinkState.CLOSED, None),
    (BlinkState.CLOSING, True): (BlinkState.OPENING, BlinkEdge.BLINK_END),
    (BlinkState.CLOSED, False): (BlinkState.CLOSED, None),
    (BlinkState.CLOSED, True): (BlinkState.OPENING, BlinkEdge.BLINK_END),
    (BlinkState.OPENING, True): (BlinkState.OPEN, None),
    (BlinkState.OPENING, False): (BlinkState.CLOSING, BlinkEdge.BLINK_START),
}


EdgeCallback = Callable[[BlinkEdge], None]


class BlinkSignalReducer:
    """
    Four-state reducer over the per-frame eye-open signal.

    Threshold-agnostic: callers decide what "open enough" means (see
    :mod:`blinkloop.gaze.eye_signal`). Knows nothing about the scan; it only
    returns edges and notifies its own listeners.

    Args:
        on_edge: Optional listener invoked with every emitted edge.
    """

    def __init__(self, on_edge: Optional[EdgeCallback] = None) -> None:
        self._state: BlinkState = BlinkState.OPEN
        self._listeners: list[EdgeCallback] = []
        if on_edge is not None:
            self._listeners.append(on_edge)
        self._episodes: int = 0

    @property
    def state(self) -> BlinkState:
        return self._state

    @property
    def episodes(self) -> int:
        """Number of closure episodes started so far."""
        return self._episodes

    def add_listener(self, callback: EdgeCallback) -> None:
        """Register another edge listener."""
        self._listeners.append(callback)

    def step(self, eye_open_enough: bool) -> Optional[BlinkEdge]:
        """
        Consume one frame of the signal.

        Args:
            eye_open_enough: True if the watched eye reads as open this frame.

        Returns:
            The edge emitted by this frame, or None.
        """
        previous = self._state
        self._state, edge = _TRANSITIONS[(previous, bool(eye_open_enough))]

        if edge is None:
            return None

        if edge is BlinkEdge.BLINK_START:
            self._episodes += 1
        logger.debug("Blink %s (%s → %s)", edge.value, previous.value, self._state.value)

        for listener in self._listeners:
            try:
                listener(edge)
            except Exception as exc:  # noqa: BLE001
                logger.warning("Blink edge listener raised: %s", exc)
        return edge

    def feed(self, signal: list[bool]) -> list[tuple[int, BlinkEdge]]:
        """
        Step through a sequence of readings.

        Returns:
            ``(position, edge)`` pairs for every emitted edge.
        """
        edges: list[tuple[int, BlinkEdge]] = []
        for position, reading in enumerate(signal):
            edge = self.step(reading)
            if edge is not None:
                edges.append((position, edge))
        return edges

    def reset(self) -> None:
        """Return to OPEN without emitting anything."""
        self._state = BlinkState.OPEN
