"""
tests/test_frame_log.py — Unit tests for frame log entries and the recorder.

Recorder tests write into pytest's tmp_path.
"""

from __future__ import annotations

import json
import unittest
from pathlib import Path

from blinkloop.core.config import RecorderConfig
from blinkloop.output.frame_log import FrameLogEntry, build_log_entry
from blinkloop.output.frame_recorder import FrameRecorder, new_session_id
from blinkloop.scan.state_machine import ScanState
from blinkloop.training.coordinator import TrainingCursor
from helpers import make_alphabet


class TestBuildLogEntry(unittest.TestCase):
    """Tests for the pure entry builder."""

    def setUp(self) -> None:
        self.alphabet = make_alphabet("abc", ("cab",))
        self.state = ScanState(
            tick_index=4,
            last_tick_timestamp=1234.5,
            tick_interval_ms=300,
            highlighted_index=1,
            delta=300,
        )

    def test_fields_without_training(self) -> None:
        entry = build_log_entry(self.state, self.alphabet)
        self.assertEqual(entry.tick_index, 4)
        self.assertEqual(entry.timestamp, 1234.5)
        self.assertEqual(entry.delta, 300)
        self.assertEqual(entry.highlighted_character_id, "b")
        self.assertEqual(entry.highlighted_character_label, "b")
        self.assertIsNone(entry.training_word_id)
        self.assertIsNone(entry.training_char_label)

    def test_fields_with_training(self) -> None:
        entry = build_log_entry(self.state, self.alphabet, TrainingCursor(0, 1))
        self.assertEqual(entry.word_index, 0)
        self.assertEqual(entry.char_index, 1)
        self.assertEqual(entry.training_word_id, "w-cab")
        self.assertEqual(entry.training_word_label, "cab")
        self.assertEqual(entry.training_char_id, "a")
        self.assertEqual(entry.training_char_label, "a")

    def test_builder_is_deterministic(self) -> None:
        cursor = TrainingCursor(0, 2)
        first = build_log_entry(self.state, self.alphabet, cursor)
        second = build_log_entry(self.state, self.alphabet, cursor)
        self.assertEqual(first, second)
        self.assertEqual(first.to_json(), second.to_json())

    def test_json_is_one_compact_line(self) -> None:
        line = build_log_entry(self.state, self.alphabet).to_json()
        self.assertNotIn("\n", line)
        decoded = json.loads(line)
        self.assertEqual(decoded["highlighted_index"], 1)
        self.assertIsNone(decoded["training_word_id"])
        self.assertEqual(list(decoded), sorted(decoded))


# ──────────────────────────────────────────────────────────────
# FrameRecorder
# ──────────────────────────────────────────────────────────────

def _entry(tick: int) -> FrameLogEntry:
    alphabet = make_alphabet("ab")
    return build_log_entry(
        ScanState(tick_index=tick, last_tick_timestamp=float(tick), highlighted_index=tick % 2),
        alphabet,
    )


def test_new_session_id_uses_prefix() -> None:
    session_id = new_session_id("demo")
    prefix, _, millis = session_id.partition("-")
    assert prefix == "demo"
    assert millis.isdigit()


def test_recorder_writes_newline_prefixed_json_lines(tmp_path: Path) -> None:
    config = RecorderConfig(enabled=True, directory=str(tmp_path / "rec"))
    recorder = FrameRecorder(config, session_id="training-1")
    recorder.start()
    for tick in range(1, 4):
        recorder.record(_entry(tick))
    recorder.stop()

    assert recorder.path == tmp_path / "rec" / "training-1.txt"
    text = recorder.path.read_text(encoding="utf-8")
    assert text.startswith("\n")
    lines = text.split("\n")[1:]
    assert [json.loads(line)["tick_index"] for line in lines] == [1, 2, 3]
    assert recorder.written == 3
    assert recorder.dropped == 0
    assert recorder.error is None


def test_recorder_appends_to_existing_file(tmp_path: Path) -> None:
    config = RecorderConfig(directory=str(tmp_path))
    first = FrameRecorder(config, session_id="s")
    first.start()
    first.record(_entry(1))
    first.stop()

    second = FrameRecorder(config, session_id="s")
    second.start()
    second.record(_entry(2))
    second.stop()

    lines = [l for l in (tmp_path / "s.txt").read_text().split("\n") if l]
    assert len(lines) == 2


def test_recorder_stop_is_idempotent(tmp_path: Path) -> None:
    recorder = FrameRecorder(RecorderConfig(directory=str(tmp_path)), session_id="x")
    recorder.stop()
    recorder.start()
    assert recorder.running
    recorder.stop()
    recorder.stop()
    assert not recorder.running


def test_recorder_drops_oldest_when_full(tmp_path: Path) -> None:
    config = RecorderConfig(directory=str(tmp_path), queue_size=2)
    recorder = FrameRecorder(config, session_id="full")
    # Worker not started: the queue fills up
    for tick in range(1, 6):
        recorder.record(_entry(tick))
    assert recorder.dropped == 3
    recorder.start()
    recorder.stop()
    lines = [l for l in recorder.path.read_text().split("\n") if l]
    assert [json.loads(l)["tick_index"] for l in lines] == [4, 5]


def test_recorder_worker_error_stops_recording(tmp_path: Path) -> None:
    config = RecorderConfig(directory=str(tmp_path))
    recorder = FrameRecorder(config, session_id="s")
    # A directory where the file should be makes open() fail
    recorder.path.mkdir(parents=True)
    recorder.start()
    recorder.record(_entry(1))
    recorder.stop()
    assert isinstance(recorder.error, OSError)
    assert recorder.written == 0
    recorder.record(_entry(2))
