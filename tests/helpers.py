"""
tests/helpers.py — Builders shared by the test modules.
"""

from __future__ import annotations

from blinkloop.alphabet.catalog import Alphabet, build_alphabet


def make_alphabet(labels: str, words: tuple[str, ...] = ()) -> Alphabet:
    """Build an alphabet whose character ids equal their labels."""
    return build_alphabet(
        [{"id": label, "label": label} for label in labels],
        [{"id": f"w-{word}", "label": word} for word in words],
    )


class FakeClock:
    """Timestamp provider that moves forward by *step* seconds per call."""

    def __init__(self, start: float = 1000.0, step: float = 0.3) -> None:
        self.now = start
        self.step = step

    def __call__(self) -> float:
        self.now += self.step
        return self.now
