"""
blinkloop/scan/clock.py — Periodic tick source for the scan.

Runs a single daemon thread that calls the tick callback, waits one
interval, and repeats. Each wait starts after the previous callback returns,
so ticks never overlap and drift accumulates instead of bunching up.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class ScanClock:
    """
    Start/stop lifecycle around a periodic tick callback.

    Args:
        on_tick: Called once per tick on the clock thread.
        on_stop: Called once after the clock has stopped, on the thread that
            called :meth:`stop`. Used for teardown.
    """

    def __init__(
        self,
        on_tick: Callable[[], None],
        on_stop: Optional[Callable[[], None]] = None,
    ) -> None:
        self._on_tick = on_tick
        self._on_stop = on_stop
        self._interval_ms: int = 0
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._lock = threading.Lock()
        self._tick_count: int = 0

    # ──────────────────────────────────────────
    # Lifecycle
    # ──────────────────────────────────────────

    @property
    def running(self) -> bool:
        """True between :meth:`start` and :meth:`stop`."""
        with self._lock:
            return self._thread is not None

    @property
    def interval_ms(self) -> int:
        return self._interval_ms

    @property
    def tick_count(self) -> int:
        """Ticks emitted since the last start."""
        return self._tick_count

    def start(self, interval_ms: int) -> None:
        """
        Begin emitting ticks every *interval_ms* milliseconds.

        The first tick fires one interval after this call.

        Raises:
            ValueError: If *interval_ms* is not positive.
            RuntimeError: If the clock is already running.
        """
        if interval_ms <= 0:
            raise ValueError(f"interval_ms must be positive, got {interval_ms}")

        with self._lock:
            if self._thread is not None:
                raise RuntimeError("ScanClock is already running")
            self._interval_ms = interval_ms
            self._tick_count = 0
            self._stop_event = threading.Event()
            self._thread = threading.Thread(
                target=self._run,
                args=(self._stop_event,),
                name="scan-clock",
                daemon=True,
            )
            self._thread.start()

        logger.info("ScanClock started (%d ms)", interval_ms)

    def stop(self) -> None:
        """
        Halt tick emission and run the teardown callback.

        Idempotent: calling it on a stopped clock does nothing. Safe to call
        from inside the tick callback (the clock thread is not joined then).
        """
        with self._lock:
            thread = self._thread
            if thread is None:
                return
            self._thread = None
            self._stop_event.set()

        if thread is not threading.current_thread():
            thread.join(timeout=max(1.0, 3 * self._interval_ms / 1000.0))
            if thread.is_alive():
                logger.warning("ScanClock thread did not exit in time")

        logger.info("ScanClock stopped after %d ticks", self._tick_count)

        if self._on_stop is not None:
            self._on_stop()

    def restart(self, interval_ms: int) -> None:
        """Stop, then start again at a new interval."""
        self.stop()
        self.start(interval_ms)

    # ──────────────────────────────────────────
    # Clock thread
    # ──────────────────────────────────────────

    def _run(self, stop_event: threading.Event) -> None:
        """Tick loop; exits as soon as *stop_event* is set."""
        interval_s = self._interval_ms / 1000.0
        while not stop_event.wait(interval_s):
            self._tick_count += 1
            try:
                self._on_tick()
            except Exception as exc:  # noqa: BLE001
                logger.error("Tick callback raised: %s", exc, exc_info=True)
