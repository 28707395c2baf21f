"""
blinkloop/core/session.py — Scan session orchestration for BlinkLoop.

Ties together the scan clock, scan state machine, blink reducer, training
coordinator and frame recorder. Every state mutation (tick, eye frame,
command) runs inside one lock, so the clock thread and the eye sampler
thread never interleave; subscribers are notified after the lock is released.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Optional, Protocol

from blinkloop.alphabet.catalog import Alphabet, load_alphabet
from blinkloop.core.config import BlinkLoopConfig, ConfigurationError
from blinkloop.core.logger import get_logger
from blinkloop.gaze.blink_reducer import BlinkEdge, BlinkSignalReducer, BlinkState
from blinkloop.gaze.eye_signal import EyeFrame, EyeSignalGate
from blinkloop.output.frame_log import FrameLogEntry, build_log_entry
from blinkloop.output.frame_recorder import FrameRecorder
from blinkloop.scan.clock import ScanClock
from blinkloop.scan.state_machine import ScanState, ScanStateMachine
from blinkloop.training.coordinator import (
    HighlightColor,
    TextColor,
    TrainingCoordinator,
    TrainingCursor,
    highlight_color,
    text_color,
)

logger = logging.getLogger(__name__)


class EyeSource(Protocol):
    """Anything that yields EyeFrames: webcam tracker, simulator, script."""

    def start(self) -> None: ...

    def stop(self) -> None: ...

    def get_frame(self) -> EyeFrame: ...


TickCallback = Callable[[ScanState], None]
BlinkCallback = Callable[[], None]


class ScanSession:
    """
    One scanning session over an alphabet.

    Args:
        alphabet: Validated alphabet to scan.
        config: Loaded configuration; defaults are used if omitted.
        training: Enable training word matching; defaults to ``config.scan.training``.
        recorder: Optional frame recorder fed once per tick.
        now: Timestamp provider (seconds) stamped on every tick.
    """

    def __init__(
        self,
        alphabet: Alphabet,
        config: Optional[BlinkLoopConfig] = None,
        training: Optional[bool] = None,
        recorder: Optional[FrameRecorder] = None,
        now: Callable[[], float] = time.time,
    ) -> None:
        self._config = config or BlinkLoopConfig()
        self._alphabet = alphabet
        self._recorder = recorder
        self._lock = threading.Lock()

        self._machine = ScanStateMachine(
            alphabet_length=len(alphabet),
            tick_interval_ms=self._config.scan.interval_ms,
            now=now,
        )
        self._reducer = BlinkSignalReducer()
        self._gate = EyeSignalGate(self._config.blink)

        is_training = self._config.scan.training if training is None else training
        self._training: Optional[TrainingCoordinator] = None
        if is_training:
            # Called with self._lock held; the machine is only touched under it
            self._training = TrainingCoordinator(
                alphabet, request_reset=self._machine.enqueue_reset
            )

        self._clock = ScanClock(on_tick=self.tick, on_stop=self._teardown)
        self._last_state: Optional[ScanState] = None

        self._tick_subscribers: list[TickCallback] = []
        self._blink_start_subscribers: list[BlinkCallback] = []
        self._blink_end_subscribers: list[BlinkCallback] = []
        self._stop_subscribers: list[TickCallback] = []

        self._source: Optional[EyeSource] = None
        self._sampler_thread: Optional[threading.Thread] = None
        self._sampler_stop = threading.Event()

        logger.info(
            "ScanSession initialised (%d chars, training=%s)",
            len(alphabet), self._training is not None,
        )

    @classmethod
    def from_config(
        cls,
        config: BlinkLoopConfig,
        training: Optional[bool] = None,
        record: Optional[bool] = None,
    ) -> "ScanSession":
        """
        Build a session from configuration: load the alphabet and, if
        recording is enabled, a frame recorder.
        """
        alphabet = load_alphabet(config.alphabet.path)
        recorder = None
        if config.recorder.enabled if record is None else record:
            recorder = FrameRecorder(config.recorder)
        return cls(alphabet, config=config, training=training, recorder=recorder)

    # ──────────────────────────────────────────
    # Subscriptions
    # ──────────────────────────────────────────

    def subscribe_tick(self, callback: TickCallback) -> None:
        """Call *callback* with the new state after every tick."""
        self._tick_subscribers.append(callback)

    def subscribe_blink_start(self, callback: BlinkCallback) -> None:
        self._blink_start_subscribers.append(callback)

    def subscribe_blink_end(self, callback: BlinkCallback) -> None:
        self._blink_end_subscribers.append(callback)

    def subscribe_stop(self, callback: TickCallback) -> None:
        """Call *callback* with the last emitted state when scanning stops."""
        self._stop_subscribers.append(callback)

    # ──────────────────────────────────────────
    # Lifecycle
    # ──────────────────────────────────────────

    @property
    def running(self) -> bool:
        return self._clock.running

    def start(self, interval_ms: Optional[int] = None) -> None:
        """
        Start scanning at *interval_ms*.

        Defaults to the interval last set with :meth:`set_interval`, which
        starts out as ``config.scan.interval_ms``.

        Raises:
            RuntimeError: If the session is already running.
            ConfigurationError: If *interval_ms* is not positive.
        """
        if self._clock.running:
            raise RuntimeError("ScanSession is already running")

        if interval_ms is None:
            with self._lock:
                interval = self._machine.state.tick_interval_ms
        else:
            interval = interval_ms
        self._begin(interval)
        if self._recorder is not None:
            try:
                self._recorder.start()
            except OSError:
                self.stop()
                raise

        get_logger().info("scan", "started", {
            "interval_ms": interval,
            "chars": len(self._alphabet),
            "training": self._training is not None,
        })

    def stop(self) -> None:
        """
        Stop the sampler, the clock and the recorder.

        Idempotent and safe to call when nothing is running.
        """
        self._stop_sampler()
        was_running = self._clock.running
        self._clock.stop()
        if self._recorder is not None:
            self._recorder.stop()
        if was_running:
            get_logger().info("scan", "stopped", {
                "last_tick_index": self._last_state.tick_index if self._last_state else 0,
            })

    def set_interval(self, interval_ms: int) -> None:
        """
        Change the tick period.

        A running scan is stopped (and torn down) then restarted at the new
        interval; a stopped scan just records it for the next start.

        Raises:
            ConfigurationError: If *interval_ms* is not positive.
        """
        if interval_ms <= 0:
            raise ConfigurationError(f"Tick interval must be positive, got {interval_ms}")
        if not self._clock.running:
            with self._lock:
                self._machine.set_interval(interval_ms)
            return
        self._clock.stop()
        self._begin(interval_ms)
        logger.info("Scan interval changed to %d ms", interval_ms)

    def attach_source(self, source: EyeSource) -> None:
        """
        Start *source* and sample it every ``blink.sample_interval_ms``.

        Raises:
            RuntimeError: If a source is already attached.
        """
        if self._sampler_thread is not None:
            raise RuntimeError("An eye source is already attached")
        source.start()
        self._source = source
        self._sampler_stop = threading.Event()
        self._sampler_thread = threading.Thread(
            target=self._sample_loop,
            args=(self._sampler_stop,),
            name="eye-sampler",
            daemon=True,
        )
        self._sampler_thread.start()

    # ──────────────────────────────────────────
    # Steps (one critical section each)
    # ──────────────────────────────────────────

    def tick(self) -> ScanState:
        """
        Advance the scan by one tick.

        Called by the clock thread; tests call it directly.

        Returns:
            The state produced by the tick.
        """
        with self._lock:
            state = self._machine.advance()
            if self._training is not None:
                self._training.on_tick(state)
                state = self._machine.state
            entry = self._build_entry_locked() if self._recorder is not None else None

        self._dispatch(self._tick_subscribers, state)
        if entry is not None and self._recorder is not None:
            self._recorder.record(entry)
        return state

    def feed_eye_open(self, eye_open_enough: bool) -> Optional[BlinkEdge]:
        """
        Feed one frame of the eye-open signal.

        BLINK_START queues a pause and BLINK_END queues a reset.

        Returns:
            The emitted edge, if any.
        """
        with self._lock:
            edge = self._reducer.step(eye_open_enough)
            if edge is BlinkEdge.BLINK_START:
                self._machine.enqueue_pause()
            elif edge is BlinkEdge.BLINK_END:
                self._machine.enqueue_reset()
            highlighted = self._machine.state.highlighted_index

        if edge is None:
            return None

        get_logger().info("blink", edge.value.lower(), {
            "highlighted_index": highlighted,
            "highlighted_label": self._alphabet.chars[highlighted].label,
        })
        subscribers = (
            self._blink_start_subscribers
            if edge is BlinkEdge.BLINK_START
            else self._blink_end_subscribers
        )
        self._dispatch(subscribers)
        return edge

    def feed_eye_frame(self, frame: EyeFrame) -> Optional[BlinkEdge]:
        """Threshold *frame* and feed it; unusable frames are skipped."""
        eye_open = self._gate.evaluate(frame)
        if eye_open is None:
            return None
        return self.feed_eye_open(eye_open)

    def enqueue_pause(self) -> None:
        with self._lock:
            self._machine.enqueue_pause()

    def enqueue_reset(self) -> None:
        with self._lock:
            self._machine.enqueue_reset()

    def clear_pause(self) -> None:
        with self._lock:
            self._machine.clear_pause()

    # ──────────────────────────────────────────
    # Queries
    # ──────────────────────────────────────────

    @property
    def alphabet(self) -> Alphabet:
        return self._alphabet

    @property
    def state(self) -> ScanState:
        with self._lock:
            return self._machine.state

    @property
    def last_state(self) -> Optional[ScanState]:
        """State emitted just before the most recent teardown."""
        return self._last_state

    @property
    def blink_state(self) -> BlinkState:
        with self._lock:
            return self._reducer.state

    @property
    def training(self) -> Optional[TrainingCoordinator]:
        return self._training

    @property
    def cursor(self) -> Optional[TrainingCursor]:
        with self._lock:
            return self._training.cursor if self._training is not None else None

    @property
    def recorder(self) -> Optional[FrameRecorder]:
        return self._recorder

    def build_log_entry(self) -> FrameLogEntry:
        """Build a frame log entry for the current state."""
        with self._lock:
            return self._build_entry_locked()

    def highlight_color(self, index: int) -> HighlightColor:
        with self._lock:
            cursor = self._training.cursor if self._training is not None else None
            return highlight_color(index, self._machine.state, self._alphabet, cursor)

    def text_color(self, index: int) -> TextColor:
        with self._lock:
            cursor = self._training.cursor if self._training is not None else None
            return text_color(index, self._alphabet, cursor)

    # ──────────────────────────────────────────
    # Helpers
    # ──────────────────────────────────────────

    def _begin(self, interval_ms: int) -> None:
        """Set the interval, check the initial cell for a match, start the clock."""
        with self._lock:
            self._machine.set_interval(interval_ms)
            if self._training is not None:
                self._training.observe_start(self._machine.state)
        self._clock.start(interval_ms)

    def _teardown(self) -> None:
        """Publish the last state, then return the machine to its zero state."""
        with self._lock:
            last = self._machine.state
            self._last_state = last
            self._machine.teardown()
            self._reducer.reset()
        self._dispatch(self._stop_subscribers, last)
        logger.debug("Scan torn down at tick %d", last.tick_index)

    def _build_entry_locked(self) -> FrameLogEntry:
        cursor = self._training.cursor if self._training is not None else None
        return build_log_entry(self._machine.state, self._alphabet, cursor)

    def _sample_loop(self, stop_event: threading.Event) -> None:
        """Poll the eye source until *stop_event* is set."""
        assert self._source is not None
        interval_s = self._config.blink.sample_interval_ms / 1000.0
        while not stop_event.wait(interval_s):
            try:
                self.feed_eye_frame(self._source.get_frame())
            except Exception as exc:  # noqa: BLE001
                logger.error("Eye sampling failed: %s", exc, exc_info=True)

    def _stop_sampler(self) -> None:
        thread = self._sampler_thread
        if thread is None:
            return
        self._sampler_thread = None
        self._sampler_stop.set()
        if thread is not threading.current_thread():
            thread.join(timeout=2.0)
        if self._source is not None:
            self._source.stop()
            self._source = None

    def _dispatch(self, callbacks: list, *args: object) -> None:
        """Invoke each callback, logging (not raising) subscriber errors."""
        for callback in callbacks:
            try:
                callback(*args)
            except Exception as exc:  # noqa: BLE001
                logger.warning("Session subscriber raised: %s", exc)
