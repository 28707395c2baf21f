"""
blinkloop/scan/state_machine.py — Highlighted-character scan state machine.

Advances the highlighted index once per tick and applies at most one queued
command (PAUSE or RESET) with a fixed precedence: RESET always wins.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, Optional

from blinkloop.core.config import ConfigurationError

logger = logging.getLogger(__name__)


class PendingCommand(Enum):
    """Control command queued for the next tick."""

    NONE = "NONE"
    PAUSE = "PAUSE"
    RESET = "RESET"


@dataclass(frozen=True)
class ScanState:
    """
    Snapshot of the scan after a tick or command.

    Attributes:
        tick_index: Number of ticks applied since scanning started.
        last_tick_timestamp: Wall-clock seconds of the last tick (None before
            the first tick).
        tick_interval_ms: Configured tick period.
        highlighted_index: Index of the highlighted character.
        pending_command: Command the next tick will honour.
        delta: Milliseconds the last tick represents (always the interval).
    """

    tick_index: int = 0
    last_tick_timestamp: Optional[float] = None
    tick_interval_ms: int = 300
    highlighted_index: int = 0
    pending_command: PendingCommand = PendingCommand.NONE
    delta: int = 300

    @property
    def is_paused(self) -> bool:
        """True while a PAUSE is queued (and not overridden by RESET)."""
        return self.pending_command is PendingCommand.PAUSE


def zero_state(tick_interval_ms: int, timestamp: Optional[float] = None) -> ScanState:
    """Return the canonical zero state for a scan at *tick_interval_ms*."""
    return ScanState(
        tick_index=0,
        last_tick_timestamp=timestamp,
        tick_interval_ms=tick_interval_ms,
        highlighted_index=0,
        pending_command=PendingCommand.NONE,
        delta=tick_interval_ms,
    )


def advance(state: ScanState, alphabet_length: int, now: float) -> ScanState:
    """
    Apply one tick to *state* and return the resulting state.

    A pending RESET returns the scan to index 0 and clears the command
    without also stepping. A pending PAUSE keeps the index and stays queued.
    Otherwise the index moves one cell forward, wrapping at the end.

    Args:
        state: State before the tick.
        alphabet_length: Number of characters in the scan grid.
        now: Timestamp to stamp on the tick.

    Returns:
        The new :class:`ScanState`.

    Raises:
        ConfigurationError: If *alphabet_length* is not positive.
    """
    if alphabet_length <= 0:
        raise ConfigurationError(
            f"Cannot advance a scan over {alphabet_length} characters"
        )

    if state.pending_command is PendingCommand.RESET:
        return replace(
            state,
            tick_index=state.tick_index + 1,
            last_tick_timestamp=now,
            highlighted_index=0,
            pending_command=PendingCommand.NONE,
            delta=state.tick_interval_ms,
        )

    candidate = (state.highlighted_index + 1) % alphabet_length
    if state.pending_command is PendingCommand.PAUSE:
        candidate = state.highlighted_index

    return replace(
        state,
        tick_index=state.tick_index + 1,
        last_tick_timestamp=now,
        highlighted_index=candidate,
        delta=state.tick_interval_ms,
    )


class ScanStateMachine:
    """
    Owner of the live :class:`ScanState`.

    The only writer of scan state: ticks go through :meth:`advance`, control
    requests through the ``enqueue_*`` methods. Not locked itself; the
    :class:`~blinkloop.core.session.ScanSession` serialises every call.

    Args:
        alphabet_length: Number of characters being scanned.
        tick_interval_ms: Tick period recorded in each state.
        now: Timestamp provider (seconds).
    """

    def __init__(
        self,
        alphabet_length: int,
        tick_interval_ms: int = 300,
        now: Callable[[], float] = time.time,
    ) -> None:
        if alphabet_length <= 0:
            raise ConfigurationError("Alphabet must contain at least one character")
        if tick_interval_ms <= 0:
            raise ConfigurationError(
                f"Tick interval must be positive, got {tick_interval_ms}"
            )
        self._length = alphabet_length
        self._now = now
        self._state = zero_state(tick_interval_ms)

    @property
    def state(self) -> ScanState:
        """The current scan state."""
        return self._state

    @property
    def alphabet_length(self) -> int:
        return self._length

    def advance(self) -> ScanState:
        """Apply one tick and return the new state."""
        self._state = advance(self._state, self._length, self._now())
        return self._state

    def enqueue_pause(self) -> None:
        """Freeze the highlight on the next ticks unless a RESET is already queued."""
        if self._state.pending_command is PendingCommand.RESET:
            logger.debug("Pause ignored: reset already pending")
            return
        self._state = replace(self._state, pending_command=PendingCommand.PAUSE)
        logger.debug("Pause queued at index %d", self._state.highlighted_index)

    def enqueue_reset(self) -> None:
        """Return to index 0 on the next tick, overriding any PAUSE."""
        self._state = replace(self._state, pending_command=PendingCommand.RESET)
        logger.debug("Reset queued at index %d", self._state.highlighted_index)

    def clear_pause(self) -> None:
        """Drop a queued PAUSE so scanning resumes from the frozen index."""
        if self._state.pending_command is PendingCommand.PAUSE:
            self._state = replace(self._state, pending_command=PendingCommand.NONE)
            logger.debug("Pause cleared")

    def set_interval(self, tick_interval_ms: int) -> None:
        """
        Change the tick period recorded in subsequent states.

        Only call between runs; the clock must be restarted to take effect.
        """
        if tick_interval_ms <= 0:
            raise ConfigurationError(
                f"Tick interval must be positive, got {tick_interval_ms}"
            )
        self._state = replace(self._state, tick_interval_ms=tick_interval_ms, delta=tick_interval_ms)

    def teardown(self) -> ScanState:
        """
        Reset to the canonical zero state stamped with the current time.

        Returns:
            The zero state now held by the machine.
        """
        self._state = zero_state(self._state.tick_interval_ms, self._now())
        return self._state

    def __repr__(self) -> str:
        s = self._state
        return (
            f"ScanStateMachine(tick={s.tick_index}, index={s.highlighted_index}/"
            f"{self._length}, pending={s.pending_command.value})"
        )
