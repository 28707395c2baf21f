"""
blinkloop/output/display.py — Tkinter scan board for BlinkLoop.

Draws the alphabet as a grid and recolours it after every tick using the
session's highlight/text queries. All updates coming from the clock thread
are dispatched via ``root.after()`` to run on the GUI thread.
"""

from __future__ import annotations

import tkinter as tk
from tkinter import font as tkfont
from typing import Callable, Optional

from blinkloop.core.session import ScanSession
from blinkloop.scan.state_machine import ScanState
from blinkloop.training.coordinator import HighlightColor, TextColor

BG_ROOT = "#f5f5f5"
FG_HEADER = "#212121"

CELL_BACKGROUNDS: dict[HighlightColor, str] = {
    HighlightColor.NONE: "#ffffff",
    HighlightColor.HIGHLIGHTED: "#ffa726",  # orange
    HighlightColor.MATCH: "#22c55e",        # green
}

CELL_FOREGROUNDS: dict[TextColor, str] = {
    TextColor.NORMAL: "#000000",
    TextColor.TARGET: "#ef5350",            # red
}


class ScanBoardWindow:
    """
    Grid of character cells driven by a :class:`ScanSession`.

    Public methods are safe to call from any thread.

    Args:
        root: The root Tkinter window.
        session: Session whose ticks repaint the board.
        columns: Cells per row.
        on_key: Receives the keysym of every key press (e.g. the simulator's
            ``inject_key``).
    """

    def __init__(
        self,
        root: tk.Tk,
        session: ScanSession,
        columns: int = 4,
        on_key: Optional[Callable[[str], None]] = None,
    ) -> None:
        self._root = root
        self._session = session
        self._columns = columns
        self._on_key = on_key
        self._cells: list[tk.Label] = []

        self._root.title("BlinkLoop")
        self._root.configure(bg=BG_ROOT)
        self._cell_font = tkfont.Font(family="Arial", size=36, weight="bold")
        self._header_font = tkfont.Font(family="Arial", size=20)

        self._header = tk.Label(root, text="", font=self._header_font, bg=BG_ROOT, fg=FG_HEADER)
        self._header.pack(side=tk.TOP, pady=10)

        grid = tk.Frame(root, bg=BG_ROOT)
        grid.pack(side=tk.TOP, fill=tk.BOTH, expand=True, padx=10, pady=10)
        for index, char in enumerate(session.alphabet.chars):
            cell = tk.Label(
                grid,
                text=char.label if char.label.strip() else "␣",
                font=self._cell_font,
                width=3,
                relief=tk.SOLID,
                borderwidth=1,
            )
            row, col = divmod(index, columns)
            cell.grid(row=row, column=col, sticky="nsew", padx=1, pady=1)
            self._cells.append(cell)
        for col in range(columns):
            grid.grid_columnconfigure(col, weight=1)

        self._root.bind("<KeyPress>", self._handle_key)
        session.subscribe_tick(self.update_state)
        self._apply_state()

    def update_state(self, state: ScanState) -> None:
        """Schedule a repaint for *state* (thread-safe)."""
        self._root.after(0, self._apply_state)

    def run(self) -> None:
        """Enter the Tkinter main loop (blocks until the window closes)."""
        self._root.mainloop()

    def _apply_state(self) -> None:
        for index, cell in enumerate(self._cells):
            cell.config(
                bg=CELL_BACKGROUNDS[self._session.highlight_color(index)],
                fg=CELL_FOREGROUNDS[self._session.text_color(index)],
            )

        training = self._session.training
        if training is None:
            self._header.config(text="")
            return
        word = training.current_word
        target = training.current_target
        self._header.config(
            text=f"{word.label if word else ''}  [{target.label if target else ''}]"
        )

    def _handle_key(self, event: tk.Event) -> None:
        if self._on_key is not None:
            self._on_key(event.keysym)
