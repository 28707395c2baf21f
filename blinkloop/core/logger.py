"""
blinkloop/core/logger.py — JSONL structured event logger for BlinkLoop.

BlinkLoopLogger writes one JSON object per line to logs/blinkloop_{date}.jsonl,
rotating automatically each day. WARN/ERROR/CRITICAL are also mirrored to
Python stdlib logging (stderr). Thread-safe via threading.Lock.

Usage::

    from blinkloop.core.logger import get_logger
    log = get_logger()
    log.info("scan", "started", {"interval_ms": 300})
    log.warn("recorder", "queue_full", {"dropped": 1})
"""

from __future__ import annotations

import json
import logging
import platform
import sys
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

# ── stdlib mirror logger (stderr for WARN+) ──────────────────
_stdlib = logging.getLogger("blinkloop.events")
if not _stdlib.handlers:
    _handler = logging.StreamHandler(sys.stderr)
    _handler.setFormatter(logging.Formatter("[%(levelname)s] %(name)s — %(message)s"))
    _stdlib.addHandler(_handler)
_stdlib.setLevel(logging.DEBUG)
_stdlib.propagate = False

# ── Singleton storage ─────────────────────────────────────────
_log_dir = Path("logs")
_instance: Optional["BlinkLoopLogger"] = None
_instance_lock = threading.Lock()


class BlinkLoopLogger:
    """
    Singleton JSONL structured logger.

    Each log call appends a single JSON line to
    ``<log_dir>/blinkloop_{YYYY-MM-DD}.jsonl``. A new file is opened
    automatically when the calendar date changes.

    Fields written per entry:

    .. code-block:: json

        {
          "timestamp_iso": "2026-10-19T09:12:03.120511+00:00",
          "level": "INFO",
          "phase": "blink",
          "event": "blink_start",
          "data": {"tick_index": 42}
        }

    Do not instantiate directly — use :func:`get_logger`.

    Args:
        log_dir: Directory the daily files are written to.
    """

    def __init__(self, log_dir: Path) -> None:
        self._log_dir = log_dir
        self._lock = threading.Lock()
        self._file: Optional[Any] = None
        self._current_date: str = ""
        self._closed = False
        self._open_file()
        self._write_startup()

    @property
    def log_dir(self) -> Path:
        return self._log_dir

    @property
    def current_path(self) -> Path:
        """Path of the file currently being written."""
        return self._log_dir / f"blinkloop_{self._current_date}.jsonl"

    # ──────────────────────────────────────────
    # Public logging methods
    # ──────────────────────────────────────────

    def debug(self, phase: str, event: str, data: Optional[dict] = None) -> None:
        """Write a DEBUG-level entry (file only)."""
        self._write("DEBUG", phase, event, data)

    def info(self, phase: str, event: str, data: Optional[dict] = None) -> None:
        """
        Write an INFO-level structured log entry.

        Args:
            phase: Subsystem (e.g. ``'scan'``, ``'blink'``, ``'recorder'``).
            event: Short event identifier (e.g. ``'started'``).
            data: Optional dict of additional key-value context.
        """
        self._write("INFO", phase, event, data)

    def warn(self, phase: str, event: str, data: Optional[dict] = None) -> None:
        """Write a WARN-level entry and mirror to stderr."""
        self._write("WARN", phase, event, data)
        _stdlib.warning("[%s] %s | %s", phase, event, data or {})

    def error(self, phase: str, event: str, data: Optional[dict] = None) -> None:
        """Write an ERROR-level entry and mirror to stderr."""
        self._write("ERROR", phase, event, data)
        _stdlib.error("[%s] %s | %s", phase, event, data or {})

    def critical(self, phase: str, event: str, data: Optional[dict] = None) -> None:
        """Write a CRITICAL-level entry and mirror to stderr."""
        self._write("CRITICAL", phase, event, data)
        _stdlib.critical("[%s] %s | %s", phase, event, data or {})

    def flush(self) -> None:
        """Flush the underlying file buffer immediately."""
        with self._lock:
            if self._file and not self._file.closed:
                self._file.flush()

    def close(self) -> None:
        """Close the log file for good; later writes are dropped."""
        with self._lock:
            self._closed = True
            if self._file and not self._file.closed:
                self._file.close()

    # ──────────────────────────────────────────
    # Internal helpers
    # ──────────────────────────────────────────

    def _write(self, level: str, phase: str, event: str, data: Optional[dict]) -> None:
        now = datetime.now(tz=timezone.utc)
        record: dict[str, Any] = {
            "timestamp_iso": now.isoformat(),
            "level": level,
            "phase": phase,
            "event": event,
            "data": data or {},
        }
        line = json.dumps(record, ensure_ascii=False, separators=(",", ":"), default=str)

        with self._lock:
            if self._closed:
                return
            self._rotate_if_needed(now)
            if self._file and not self._file.closed:
                self._file.write(line + "\n")
                self._file.flush()

    def _rotate_if_needed(self, now: datetime) -> None:
        """Open a new log file if the calendar date changed. Call with the lock held."""
        today = now.strftime("%Y-%m-%d")
        if today != self._current_date:
            if self._file and not self._file.closed:
                self._file.close()
            self._current_date = today
            self._log_dir.mkdir(parents=True, exist_ok=True)
            self._file = open(self.current_path, "a", encoding="utf-8", buffering=1)

    def _open_file(self) -> None:
        with self._lock:
            self._rotate_if_needed(datetime.now(tz=timezone.utc))

    def _write_startup(self) -> None:
        self.info(
            phase="system",
            event="startup",
            data={
                "python_version": sys.version,
                "platform": platform.platform(),
                "timestamp_local": datetime.now().isoformat(),
            },
        )


# ──────────────────────────────────────────────────────────────
# Singleton accessors
# ──────────────────────────────────────────────────────────────

def configure_logger(log_dir: Path | str) -> BlinkLoopLogger:
    """
    Point the singleton at *log_dir*, replacing any existing instance.

    Call once at startup, before the first :func:`get_logger`.
    """
    global _instance, _log_dir
    with _instance_lock:
        if _instance is not None:
            _instance.close()
        _log_dir = Path(log_dir)
        _instance = BlinkLoopLogger(_log_dir)
    return _instance


def get_logger() -> BlinkLoopLogger:
    """
    Return the singleton :class:`BlinkLoopLogger` instance.

    The first call creates the instance in the configured directory
    (``logs/`` by default).
    """
    global _instance
    if _instance is None:
        with _instance_lock:
            if _instance is None:
                _instance = BlinkLoopLogger(_log_dir)
    return _instance
