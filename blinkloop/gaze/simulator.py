"""
blinkloop/gaze/simulator.py — Keyboard-simulated and scripted eye input.

Both classes provide the same interface as EyeTracker (start / stop /
get_frame) so the session is completely unaware of the input source.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Optional, Sequence

from blinkloop.core.config import BlinkConfig
from blinkloop.gaze.eye_signal import EyeFrame

logger = logging.getLogger(__name__)

_OPEN: float = 1.0
_CLOSED: float = 0.0

#: ``(watched_eye_open, hold_duration_ms)``
ScriptStep = tuple[bool, float]


def _frame_for(config: BlinkConfig, watched_open: bool, both_closed: bool = False) -> EyeFrame:
    """Build an EyeFrame with the watched eye open or closed."""
    watched = _OPEN if watched_open else _CLOSED
    reference = _CLOSED if both_closed else _OPEN
    if config.watched_eye == "right":
        left, right = reference, watched
    else:
        left, right = watched, reference
    return EyeFrame(left_open=left, right_open=right, timestamp=time.monotonic())


class KeyboardSimulator:
    """
    Keyboard-driven eye simulator for demo and testing without a webcam.

    Key bindings:
    - Space: Toggle the watched eye closed / open (a wink).
    - 'b': Toggle a full blink of both eyes (ignored by the signal gate).
    - 'r': Open both eyes.

    The simulator does NOT capture OS keyboard events; the UI calls
    :meth:`inject_key` from its ``<KeyPress>`` handler.

    Args:
        config: Blink configuration (decides which eye is the watched one).
    """

    def __init__(self, config: BlinkConfig) -> None:
        self._cfg = config
        self._watched_open: bool = True
        self._both_closed: bool = False
        self._running: bool = False
        self._lock = threading.Lock()

    def start(self) -> None:
        """Mark the simulator as running; no thread is needed."""
        self._running = True
        logger.info("KeyboardSimulator started — space toggles a wink")

    def stop(self) -> None:
        self._running = False
        logger.info("KeyboardSimulator stopped")

    def get_frame(self) -> EyeFrame:
        """Return the current simulated eye frame."""
        with self._lock:
            return _frame_for(self._cfg, self._watched_open, self._both_closed)

    def inject_key(self, key: str) -> None:
        """
        Process a key press (Tkinter keysym, e.g. ``'space'``, ``'b'``).

        Thread-safe; unknown keys are ignored.
        """
        with self._lock:
            if key in ("space", " "):
                self._watched_open = not self._watched_open
                logger.debug("Simulator: watched eye %s", "open" if self._watched_open else "closed")
            elif key == "b":
                self._both_closed = not self._both_closed
                logger.debug("Simulator: both eyes %s", "closed" if self._both_closed else "open")
            elif key == "r":
                self._watched_open = True
                self._both_closed = False

    @property
    def watched_eye_open(self) -> bool:
        with self._lock:
            return self._watched_open


class ScriptedEyeSource:
    """
    Plays back a fixed sequence of eye states in real time.

    After the last step the watched eye stays open until stopped.

    Args:
        config: Blink configuration.
        script: ``(watched_eye_open, hold_duration_ms)`` steps.
        clock: Monotonic time provider (seconds); injectable for tests.
    """

    #: Two winks spaced so the scan moves between them.
    DEMO_SCRIPT: tuple[ScriptStep, ...] = (
        (True, 2000.0),
        (False, 600.0),
        (True, 3000.0),
        (False, 600.0),
        (True, 1000.0),
    )

    def __init__(
        self,
        config: BlinkConfig,
        script: Optional[Sequence[ScriptStep]] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._cfg = config
        self._script: tuple[ScriptStep, ...] = tuple(script if script is not None else self.DEMO_SCRIPT)
        self._clock = clock
        self._started_at: Optional[float] = None

        # Cumulative end time (ms) of each step
        self._ends: list[float] = []
        total = 0.0
        for _, duration_ms in self._script:
            total += duration_ms
            self._ends.append(total)

    def start(self) -> None:
        self._started_at = self._clock()
        logger.info("ScriptedEyeSource started (%d steps)", len(self._script))

    def stop(self) -> None:
        self._started_at = None
        logger.info("ScriptedEyeSource stopped")

    @property
    def finished(self) -> bool:
        """True once the whole script has played."""
        if self._started_at is None:
            return False
        return self._elapsed_ms() >= (self._ends[-1] if self._ends else 0.0)

    def get_frame(self) -> EyeFrame:
        """Return the eye frame for the current point in the script."""
        return _frame_for(self._cfg, self._watched_open_now())

    def _elapsed_ms(self) -> float:
        assert self._started_at is not None
        return (self._clock() - self._started_at) * 1000.0

    def _watched_open_now(self) -> bool:
        if self._started_at is None:
            return True
        elapsed = self._elapsed_ms()
        for (watched_open, _), end in zip(self._script, self._ends):
            if elapsed < end:
                return watched_open
        return True
