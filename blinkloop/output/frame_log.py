"""
blinkloop/output/frame_log.py — Frame log records.

One FrameLogEntry describes the scan and training position at a tick. The
builder is a pure function; writing entries to disk is the recorder's job.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from typing import Any, Optional

from blinkloop.alphabet.catalog import Alphabet
from blinkloop.scan.state_machine import ScanState
from blinkloop.training.coordinator import TrainingCursor, current_target, current_word


@dataclass(frozen=True)
class FrameLogEntry:
    """
    Immutable snapshot of scan + training state for the frame log.

    Training fields are None when no training word is active.
    """

    tick_index: int
    timestamp: Optional[float]
    delta: int
    highlighted_index: int
    highlighted_character_id: str
    highlighted_character_label: str
    word_index: int
    char_index: int
    training_word_id: Optional[str]
    training_word_label: Optional[str]
    training_char_id: Optional[str]
    training_char_label: Optional[str]

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    def to_json(self) -> str:
        """Serialise to one compact JSON line (sorted keys, no trailing newline)."""
        return json.dumps(self.to_dict(), ensure_ascii=False, sort_keys=True, separators=(",", ":"))


def build_log_entry(
    state: ScanState,
    alphabet: Alphabet,
    cursor: Optional[TrainingCursor] = None,
) -> FrameLogEntry:
    """
    Assemble a :class:`FrameLogEntry` from the current state.

    Deterministic: the same inputs always produce an equal entry.

    Args:
        state: Current scan state.
        alphabet: The alphabet being scanned.
        cursor: Training cursor, or None outside training.
    """
    highlighted = alphabet.chars[state.highlighted_index]
    if cursor is None:
        cursor, word, target = TrainingCursor(), None, None
    else:
        word = current_word(alphabet, cursor)
        target = current_target(alphabet, cursor)

    return FrameLogEntry(
        tick_index=state.tick_index,
        timestamp=state.last_tick_timestamp,
        delta=state.delta,
        highlighted_index=state.highlighted_index,
        highlighted_character_id=highlighted.id,
        highlighted_character_label=highlighted.label,
        word_index=cursor.word_index,
        char_index=cursor.char_index,
        training_word_id=word.id if word else None,
        training_word_label=word.label if word else None,
        training_char_id=target.id if target else None,
        training_char_label=target.label if target else None,
    )
