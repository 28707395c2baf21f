"""
blinkloop/output/frame_recorder.py — Background writer for the frame log.

Appends one JSON line per FrameLogEntry to ``<directory>/<session_id>.txt``.
Each entry is written newline-prefixed, so a fresh file starts with an empty
line. All file I/O runs in a daemon worker thread; record() never blocks.
"""

from __future__ import annotations

import logging
import queue
import threading
import time
from pathlib import Path
from typing import Optional

from blinkloop.core.config import RecorderConfig
from blinkloop.core.logger import get_logger
from blinkloop.output.frame_log import FrameLogEntry

logger = logging.getLogger(__name__)

# Signals the worker to exit
_STOP_SENTINEL = object()


def new_session_id(prefix: str = "training") -> str:
    """Return a session identifier like ``training-1760864523123``."""
    return f"{prefix}-{int(time.time() * 1000)}"


class FrameRecorder:
    """
    Non-blocking frame log writer with a bounded queue and worker thread.

    When the queue is full the oldest pending entry is dropped so the tick
    thread never waits on disk.

    Args:
        config: Recorder configuration (directory, queue size, prefix).
        session_id: Log file key; generated from the prefix if omitted.
    """

    def __init__(self, config: RecorderConfig, session_id: Optional[str] = None) -> None:
        self._cfg = config
        self._session_id = session_id or new_session_id(config.session_prefix)
        self._path = config.resolved_directory / f"{self._session_id}.txt"
        self._queue: queue.Queue[object] = queue.Queue(maxsize=config.queue_size)
        self._worker: Optional[threading.Thread] = None
        self._lock = threading.Lock()
        self._written: int = 0
        self._dropped: int = 0
        self._error: Optional[OSError] = None

    # ──────────────────────────────────────────
    # Public API
    # ──────────────────────────────────────────

    @property
    def session_id(self) -> str:
        return self._session_id

    @property
    def path(self) -> Path:
        """File the entries are appended to."""
        return self._path

    @property
    def written(self) -> int:
        with self._lock:
            return self._written

    @property
    def dropped(self) -> int:
        with self._lock:
            return self._dropped

    @property
    def error(self) -> Optional[OSError]:
        """The write failure that stopped recording, if any."""
        with self._lock:
            return self._error

    @property
    def running(self) -> bool:
        return self._worker is not None and self._worker.is_alive()

    def start(self) -> None:
        """Create the directory and start the worker thread."""
        if self.running:
            return
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._worker = threading.Thread(
            target=self._worker_loop, name="frame-recorder", daemon=True
        )
        self._worker.start()
        get_logger().info("recorder", "started", {
            "session_id": self._session_id,
            "path": str(self._path),
        })

    def record(self, entry: FrameLogEntry) -> None:
        """
        Enqueue *entry* for writing and return immediately.

        Entries recorded after a write failure are discarded.
        """
        if self.error is not None:
            return
        try:
            self._queue.put_nowait(entry)
        except queue.Full:
            try:
                self._queue.get_nowait()
            except queue.Empty:
                pass
            with self._lock:
                self._dropped += 1
            self._queue.put_nowait(entry)
            logger.warning("Frame recorder queue full — dropped oldest entry")

    def stop(self) -> None:
        """
        Flush pending entries and stop the worker.

        Blocks until the queue drains (up to 3 seconds). Idempotent.
        """
        worker = self._worker
        if worker is None:
            return
        self._worker = None
        if worker.is_alive():
            try:
                self._queue.put(_STOP_SENTINEL, timeout=3.0)
            except queue.Full:
                logger.warning("Frame recorder did not drain in time")
            worker.join(timeout=3.0)
        get_logger().info("recorder", "stopped", {
            "session_id": self._session_id,
            "written": self.written,
            "dropped": self.dropped,
        })

    # ──────────────────────────────────────────
    # Worker thread
    # ──────────────────────────────────────────

    def _worker_loop(self) -> None:
        """Drain the queue into the log file until the stop sentinel arrives."""
        while True:
            item = self._queue.get()
            if item is _STOP_SENTINEL:
                break
            assert isinstance(item, FrameLogEntry)
            try:
                with self._path.open("a", encoding="utf-8") as fh:
                    fh.write("\n" + item.to_json())
            except OSError as exc:
                with self._lock:
                    self._error = exc
                get_logger().error("recorder", "write_failed", {
                    "path": str(self._path),
                    "error": str(exc),
                })
                break
            with self._lock:
                self._written += 1
