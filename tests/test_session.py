"""
tests/test_session.py — Integration tests for ScanSession.

Sessions are started with a very long interval so the clock never fires on
its own; ticks are driven by calling tick() directly.
"""

from __future__ import annotations

import json
import threading
import unittest
from pathlib import Path

import pytest

from blinkloop.core.config import BlinkLoopConfig, ConfigurationError, RecorderConfig, ScanConfig
from blinkloop.core.logger import configure_logger
from blinkloop.core.session import ScanSession
from blinkloop.gaze.blink_reducer import BlinkEdge, BlinkState
from blinkloop.gaze.eye_signal import EyeFrame
from blinkloop.gaze.simulator import KeyboardSimulator
from blinkloop.output.frame_recorder import FrameRecorder
from blinkloop.scan.state_machine import PendingCommand, ScanState
from blinkloop.training.coordinator import HighlightColor, TextColor, TrainingCursor
from helpers import FakeClock, make_alphabet

_IDLE_MS = 60_000


def _session(labels: str, words: tuple[str, ...] = (), **kwargs) -> ScanSession:
    """Session over *labels* with deterministic timestamps."""
    return ScanSession(make_alphabet(labels, words), now=FakeClock(), **kwargs)


class TestScanSession(unittest.TestCase):
    """Scan behaviour through the session facade."""

    def setUp(self) -> None:
        self.session = _session("abc")
        self.session.start(_IDLE_MS)

    def tearDown(self) -> None:
        self.session.stop()

    def test_seven_ticks(self) -> None:
        for _ in range(7):
            state = self.session.tick()
        self.assertEqual(state.tick_index, 7)
        self.assertEqual(state.highlighted_index, 1)

    def test_blink_start_pauses_and_blink_end_resets(self) -> None:
        self.session.tick()
        self.session.tick()
        self.assertIs(self.session.feed_eye_open(False), BlinkEdge.BLINK_START)
        self.assertEqual(self.session.tick().highlighted_index, 2)
        self.assertEqual(self.session.tick().highlighted_index, 2)

        self.assertIs(self.session.feed_eye_open(True), BlinkEdge.BLINK_END)
        state = self.session.tick()
        self.assertEqual(state.highlighted_index, 0)
        self.assertIs(state.pending_command, PendingCommand.NONE)

    def test_repeated_readings_emit_nothing(self) -> None:
        self.assertIsNone(self.session.feed_eye_open(True))
        self.session.feed_eye_open(False)
        self.assertIsNone(self.session.feed_eye_open(False))
        self.assertIs(self.session.blink_state, BlinkState.CLOSED)

    def test_blink_subscribers(self) -> None:
        events: list[str] = []
        self.session.subscribe_blink_start(lambda: events.append("start"))
        self.session.subscribe_blink_end(lambda: events.append("end"))
        for reading in (True, False, False, True, True):
            self.session.feed_eye_open(reading)
        self.assertEqual(events, ["start", "end"])

    def test_tick_subscribers_receive_each_state(self) -> None:
        received: list[ScanState] = []
        self.session.subscribe_tick(received.append)
        states = [self.session.tick() for _ in range(3)]
        self.assertEqual(received, states)

    def test_subscriber_error_does_not_break_tick(self) -> None:
        def _bad(state: ScanState) -> None:
            raise RuntimeError("subscriber failure")

        received: list[ScanState] = []
        self.session.subscribe_tick(_bad)
        self.session.subscribe_tick(received.append)
        state = self.session.tick()
        self.assertEqual(received, [state])

    def test_feed_eye_frame_uses_gate(self) -> None:
        # Right eye watched by default: closed right, open left → wink
        wink = EyeFrame(left_open=1.0, right_open=0.0, timestamp=0.0)
        both_closed = EyeFrame(left_open=0.0, right_open=0.0, timestamp=0.0)
        self.assertIsNone(self.session.feed_eye_frame(both_closed))
        self.assertIs(self.session.feed_eye_frame(wink), BlinkEdge.BLINK_START)
        self.assertTrue(self.session.state.is_paused)

    def test_clear_pause(self) -> None:
        self.session.tick()
        self.session.enqueue_pause()
        self.session.clear_pause()
        self.assertEqual(self.session.tick().highlighted_index, 2)

    def test_enqueue_reset(self) -> None:
        self.session.tick()
        self.session.enqueue_reset()
        self.assertEqual(self.session.tick().highlighted_index, 0)

    def test_colours_outside_training(self) -> None:
        self.session.tick()
        self.assertIs(self.session.highlight_color(1), HighlightColor.HIGHLIGHTED)
        self.assertIs(self.session.highlight_color(0), HighlightColor.NONE)
        self.assertIs(self.session.text_color(1), TextColor.NORMAL)
        self.assertIsNone(self.session.cursor)

    def test_double_start_raises(self) -> None:
        with self.assertRaises(RuntimeError):
            self.session.start(_IDLE_MS)


# ──────────────────────────────────────────────────────────────
# Lifecycle
# ──────────────────────────────────────────────────────────────

def test_stop_publishes_last_state_then_zero_state() -> None:
    session = _session("abc")
    stopped: list[ScanState] = []
    session.subscribe_stop(stopped.append)
    session.start(_IDLE_MS)
    for _ in range(4):
        session.tick()
    session.enqueue_pause()
    session.stop()

    assert len(stopped) == 1
    assert stopped[0].tick_index == 4
    assert stopped[0].highlighted_index == 1
    assert session.last_state == stopped[0]
    assert session.state.tick_index == 0
    assert session.state.highlighted_index == 0
    assert session.state.pending_command is PendingCommand.NONE
    assert not session.running


def test_stop_is_idempotent() -> None:
    session = _session("abc")
    stopped: list[ScanState] = []
    session.subscribe_stop(stopped.append)
    session.stop()
    session.start(_IDLE_MS)
    session.stop()
    session.stop()
    assert len(stopped) == 1


def test_stop_resets_blink_reducer() -> None:
    session = _session("abc")
    session.start(_IDLE_MS)
    session.feed_eye_open(False)
    session.stop()
    assert session.blink_state is BlinkState.OPEN


def test_set_interval_while_running_restarts_from_zero() -> None:
    session = _session("abc")
    session.start(_IDLE_MS)
    session.tick()
    session.set_interval(_IDLE_MS + 1)
    try:
        assert session.running
        assert session.state.tick_index == 0
        assert session.state.tick_interval_ms == _IDLE_MS + 1
        assert session.tick().delta == _IDLE_MS + 1
    finally:
        session.stop()


def test_set_interval_while_stopped_is_recorded() -> None:
    session = _session("abc")
    session.set_interval(_IDLE_MS + 5)
    assert session.state.tick_interval_ms == _IDLE_MS + 5
    assert not session.running

    session.start()
    try:
        assert session.state.tick_interval_ms == _IDLE_MS + 5
        assert session._clock.interval_ms == _IDLE_MS + 5
        assert session.tick().delta == _IDLE_MS + 5
    finally:
        session.stop()


def test_start_without_interval_uses_config() -> None:
    config = BlinkLoopConfig(scan=ScanConfig(interval_ms=_IDLE_MS + 7))
    session = _session("abc", config=config)
    session.start()
    try:
        assert session._clock.interval_ms == _IDLE_MS + 7
    finally:
        session.stop()


@pytest.mark.parametrize("interval_ms", [0, -5])
def test_non_positive_interval_is_rejected(interval_ms: int) -> None:
    session = _session("abc")
    with pytest.raises(ConfigurationError):
        session.start(interval_ms)
    assert not session.running
    with pytest.raises(ConfigurationError):
        session.set_interval(interval_ms)


def test_running_session_keeps_interval_on_bad_change() -> None:
    session = _session("abc")
    session.start(_IDLE_MS)
    try:
        with pytest.raises(ConfigurationError):
            session.set_interval(0)
        assert session.running
        assert session._clock.interval_ms == _IDLE_MS
    finally:
        session.stop()


def test_failed_start_leaves_recorder_stopped(tmp_path: Path) -> None:
    recorder = FrameRecorder(RecorderConfig(directory=str(tmp_path)), session_id="bad")
    session = _session("abc", recorder=recorder)
    with pytest.raises(ConfigurationError):
        session.start(-5)
    assert not recorder.running
    assert not session.running


def test_recorder_failure_stops_clock(tmp_path: Path) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("")
    config = RecorderConfig(directory=str(blocker / "rec"))
    session = _session("abc", recorder=FrameRecorder(config, session_id="s"))
    with pytest.raises(OSError):
        session.start(_IDLE_MS)
    assert not session.running


def test_clock_drives_ticks() -> None:
    session = _session("abcd")
    fired = threading.Event()
    session.subscribe_tick(lambda state: fired.set() if state.tick_index >= 2 else None)
    session.start(10)
    try:
        assert fired.wait(timeout=2.0)
    finally:
        session.stop()


def test_attached_source_feeds_blinks() -> None:
    config = BlinkLoopConfig()
    session = _session("abc", config=config)
    started = threading.Event()
    session.subscribe_blink_start(started.set)
    sim = KeyboardSimulator(config.blink)
    session.attach_source(sim)
    try:
        sim.inject_key("space")
        assert started.wait(timeout=2.0)
        assert session.state.is_paused
        with pytest.raises(RuntimeError):
            session.attach_source(sim)
    finally:
        session.stop()


# ──────────────────────────────────────────────────────────────
# Training through the session
# ──────────────────────────────────────────────────────────────

class TestTrainingSession(unittest.TestCase):
    """Training word matching wired through the session lock."""

    def setUp(self) -> None:
        self.session = _session("ab", ("ab",), training=True)

    def tearDown(self) -> None:
        self.session.stop()

    def test_training_defaults_to_config(self) -> None:
        config = BlinkLoopConfig(scan=ScanConfig(training=True))
        session = ScanSession(make_alphabet("ab", ("a",)), config=config)
        self.assertIsNotNone(session.training)

    def test_immediate_match_then_progression(self) -> None:
        self.session.start(_IDLE_MS)
        self.assertIs(self.session.state.pending_command, PendingCommand.RESET)
        self.assertIs(self.session.highlight_color(0), HighlightColor.MATCH)

        state = self.session.tick()
        self.assertEqual(state.highlighted_index, 0)
        self.assertEqual(self.session.cursor, TrainingCursor(0, 1))
        self.assertIs(self.session.text_color(1), TextColor.TARGET)

        state = self.session.tick()
        self.assertEqual(state.highlighted_index, 1)
        self.assertIs(state.pending_command, PendingCommand.RESET)

        state = self.session.tick()
        self.assertEqual(state.highlighted_index, 0)
        self.assertEqual(self.session.cursor, TrainingCursor(0, 0))

    def test_log_entry_reflects_cursor(self) -> None:
        self.session.start(_IDLE_MS)
        self.session.tick()
        entry = self.session.build_log_entry()
        self.assertEqual(entry.training_word_id, "w-ab")
        self.assertEqual(entry.training_char_id, "b")
        self.assertEqual(entry.char_index, 1)


def test_session_records_one_line_per_tick(tmp_path: Path) -> None:
    recorder = FrameRecorder(RecorderConfig(directory=str(tmp_path)), session_id="sess")
    session = _session("abc", recorder=recorder)
    session.start(_IDLE_MS)
    for _ in range(3):
        session.tick()
    session.stop()

    lines = [l for l in recorder.path.read_text().split("\n") if l]
    assert [json.loads(l)["tick_index"] for l in lines] == [1, 2, 3]
    assert json.loads(lines[-1])["highlighted_character_id"] == "a"


class _FailingSource:
    """Eye source whose camera never opens."""

    def start(self) -> None:
        raise RuntimeError("camera unavailable")

    def stop(self) -> None:
        pass

    def get_frame(self) -> EyeFrame:
        raise AssertionError("never sampled")


def test_failed_source_start_is_not_attached() -> None:
    config = BlinkLoopConfig()
    session = _session("abc", config=config)
    with pytest.raises(RuntimeError):
        session.attach_source(_FailingSource())

    sim = KeyboardSimulator(config.blink)
    session.attach_source(sim)
    started = threading.Event()
    session.subscribe_blink_start(started.set)
    try:
        sim.inject_key("space")
        assert started.wait(timeout=2.0)
    finally:
        session.stop()


def test_from_config_builds_recorder(tmp_path: Path) -> None:
    config = BlinkLoopConfig(recorder=RecorderConfig(directory=str(tmp_path)))
    assert ScanSession.from_config(config).recorder is None
    session = ScanSession.from_config(config, training=True, record=True)
    assert session.recorder is not None
    assert session.training is not None
    assert len(session.alphabet) == 28


def test_event_log_written(event_log_dir: Path) -> None:
    session = _session("abc")
    session.start(_IDLE_MS)
    session.feed_eye_open(False)
    session.stop()

    files = list(event_log_dir.glob("blinkloop_*.jsonl"))
    assert len(files) == 1
    events = [json.loads(l) for l in files[0].read_text().splitlines() if l]
    names = [(e["phase"], e["event"]) for e in events]
    assert ("system", "startup") in names
    assert ("scan", "started") in names
    assert ("blink", "blink_start") in names
    assert ("scan", "stopped") in names


def test_replaced_logger_stops_writing(tmp_path: Path) -> None:
    old = configure_logger(tmp_path / "old")
    old_path = old.current_path
    before = old_path.read_text()

    configure_logger(tmp_path / "new")
    old.info("scan", "late_event", {})
    assert old_path.read_text() == before
