"""
blinkloop/training/coordinator.py — Training word progression over the scan.

Watches the highlighted index tick by tick, compares it with the current
target character of the current training word, and requests a scan reset as
soon as the target is highlighted. The cursor moves to the next character
each time the scan restarts at index 0, and on to the next word when a word
is exhausted.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from blinkloop.alphabet.catalog import Alphabet, Character, Word
from blinkloop.scan.state_machine import ScanState

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TrainingCursor:
    """
    Position within the training word list.

    Attributes:
        word_index: Index into ``Alphabet.training_words``.
        char_index: Index of the target glyph within that word.
    """

    word_index: int = 0
    char_index: int = 0


class HighlightColor(Enum):
    """Background hint for one grid cell."""

    NONE = "none"
    HIGHLIGHTED = "highlighted"
    MATCH = "match"


class TextColor(Enum):
    """Text hint for one grid cell."""

    NORMAL = "normal"
    TARGET = "target"


# ──────────────────────────────────────────────
# Pure queries
# ──────────────────────────────────────────────


def current_word(alphabet: Alphabet, cursor: TrainingCursor) -> Optional[Word]:
    """Return the training word under *cursor*, or None if there is none."""
    if not 0 <= cursor.word_index < len(alphabet.training_words):
        return None
    return alphabet.training_words[cursor.word_index]


def current_target(alphabet: Alphabet, cursor: TrainingCursor) -> Optional[Character]:
    """Return the character the user should select next, or None."""
    word = current_word(alphabet, cursor)
    if word is None or not 0 <= cursor.char_index < len(word):
        return None
    return alphabet.find_char(word.glyphs[cursor.char_index])


def next_cursor(alphabet: Alphabet, cursor: TrainingCursor) -> TrainingCursor:
    """
    Return the cursor one target further on.

    Moves to the next character; past the end of a word moves to the first
    character of the next word, wrapping to the first word after the last.
    """
    word = current_word(alphabet, cursor)
    if word is None:
        return cursor
    if cursor.char_index + 1 < len(word):
        return TrainingCursor(cursor.word_index, cursor.char_index + 1)
    return TrainingCursor((cursor.word_index + 1) % len(alphabet.training_words), 0)


def highlight_color(
    index: int,
    state: ScanState,
    alphabet: Alphabet,
    cursor: Optional[TrainingCursor] = None,
) -> HighlightColor:
    """
    Background hint for cell *index*.

    HIGHLIGHTED for the scanned cell, refined to MATCH when that cell is the
    current training target. Pass ``cursor=None`` outside training.
    """
    if index != state.highlighted_index:
        return HighlightColor.NONE
    if cursor is not None:
        target = current_target(alphabet, cursor)
        if target is not None and alphabet.chars[index].key == target.key:
            return HighlightColor.MATCH
    return HighlightColor.HIGHLIGHTED


def text_color(index: int, alphabet: Alphabet, cursor: Optional[TrainingCursor]) -> TextColor:
    """TARGET for the cell holding the current training target, whatever the highlight."""
    if cursor is None:
        return TextColor.NORMAL
    target = current_target(alphabet, cursor)
    if target is not None and alphabet.chars[index].key == target.key:
        return TextColor.TARGET
    return TextColor.NORMAL


# ──────────────────────────────────────────────
# Coordinator
# ──────────────────────────────────────────────


class TrainingCoordinator:
    """
    Owner of the :class:`TrainingCursor`.

    Reads scan states; never mutates them. When the highlighted character is
    the target it calls *request_reset*, which the session wires to
    :meth:`~blinkloop.scan.state_machine.ScanStateMachine.enqueue_reset`.

    Args:
        alphabet: Validated alphabet with the training word list.
        request_reset: Invoked on every match.
    """

    def __init__(
        self,
        alphabet: Alphabet,
        request_reset: Optional[Callable[[], None]] = None,
    ) -> None:
        self._alphabet = alphabet
        self._request_reset = request_reset
        self._cursor = TrainingCursor()
        self._matches: int = 0

        if not alphabet.training_words:
            logger.warning("Training started with no training words — matching disabled")

    @property
    def cursor(self) -> TrainingCursor:
        return self._cursor

    @property
    def matches(self) -> int:
        """Number of matches detected since construction or :meth:`reset`."""
        return self._matches

    @property
    def current_word(self) -> Optional[Word]:
        return current_word(self._alphabet, self._cursor)

    @property
    def current_target(self) -> Optional[Character]:
        return current_target(self._alphabet, self._cursor)

    def observe_start(self, state: ScanState) -> bool:
        """
        Check the initial scan state before any tick.

        Returns:
            True if the first highlighted cell already matches the target.
        """
        return self._check_match(state)

    def on_tick(self, state: ScanState) -> bool:
        """
        Process the state produced by one tick.

        Ticks taken while a pause is pending are ignored. Otherwise the
        cursor advances if the scan is back at index 0, then the highlighted
        cell is checked against the (possibly new) target.

        Args:
            state: The scan state after the tick.

        Returns:
            True if a match was detected and a reset requested.
        """
        if state.is_paused:
            return False

        if state.highlighted_index == 0:
            self.advance_cursor()

        return self._check_match(state)

    def advance_cursor(self) -> TrainingCursor:
        """Move to the next target and return the new cursor."""
        previous = self._cursor
        self._cursor = next_cursor(self._alphabet, previous)
        if self._cursor.word_index != previous.word_index:
            word = self.current_word
            logger.info("Training word → %r", word.label if word else None)
        return self._cursor

    def reset(self) -> None:
        """Return to the first character of the first word."""
        self._cursor = TrainingCursor()
        self._matches = 0

    def highlight_color(self, index: int, state: ScanState) -> HighlightColor:
        return highlight_color(index, state, self._alphabet, self._cursor)

    def text_color(self, index: int) -> TextColor:
        return text_color(index, self._alphabet, self._cursor)

    def _check_match(self, state: ScanState) -> bool:
        target = self.current_target
        if target is None:
            return False

        highlighted = self._alphabet.chars[state.highlighted_index]
        if highlighted.key != target.key:
            return False

        self._matches += 1
        logger.debug(
            "Match on %r at tick %d (word=%d, char=%d)",
            highlighted.label, state.tick_index,
            self._cursor.word_index, self._cursor.char_index,
        )
        if self._request_reset is not None:
            self._request_reset()
        return True
