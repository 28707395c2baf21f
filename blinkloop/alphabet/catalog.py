"""
blinkloop/alphabet/catalog.py — Scan alphabet and training word catalog.

Defines the ordered characters the scan cycles through and the training
words the user is guided to select. Loaded once at startup from YAML or the
built-in set; any broken invariant raises ConfigurationError immediately.
"""

from __future__ import annotations

import logging
import string
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import yaml

from blinkloop.core.config import ConfigurationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Character:
    """
    A single selectable cell of the scan grid.

    Attributes:
        id: Stable identifier (identity).
        label: Single glyph shown on the cell (used for matching).
    """

    id: str
    label: str

    @property
    def key(self) -> str:
        """Case-folded label used for all comparisons."""
        return self.label.lower()


@dataclass(frozen=True)
class Word:
    """
    A training word: the sequence of characters the user should select.

    Attributes:
        id: Stable identifier.
        label: The word as displayed; compared glyph by glyph, lower-cased.
    """

    id: str
    label: str

    @property
    def glyphs(self) -> tuple[str, ...]:
        """Lower-cased target glyphs in selection order."""
        return tuple(self.label.lower())

    def __len__(self) -> int:
        return len(self.label)


@dataclass(frozen=True)
class Alphabet:
    """
    The ordered scan characters plus the training word list.

    Build through :func:`build_alphabet` or :func:`load_alphabet` so the
    invariants are checked; the constructor itself does not validate.

    Attributes:
        chars: Characters in scan order.
        training_words: Training words in progression order.
    """

    chars: tuple[Character, ...]
    training_words: tuple[Word, ...] = ()

    def __len__(self) -> int:
        return len(self.chars)

    def find_char(self, glyph: str) -> Optional[Character]:
        """
        Return the character whose label matches *glyph* case-insensitively.

        Args:
            glyph: A single glyph, any case.

        Returns:
            The matching :class:`Character`, or None.
        """
        key = glyph.lower()
        for char in self.chars:
            if char.key == key:
                return char
        return None

    def index_of(self, glyph: str) -> Optional[int]:
        """Return the scan index of *glyph*, or None if it is not in the grid."""
        key = glyph.lower()
        for index, char in enumerate(self.chars):
            if char.key == key:
                return index
        return None


# ──────────────────────────────────────────────
# Built-in catalog: 4 × 7 grid
# ──────────────────────────────────────────────

_DEFAULT_CHARS: list[dict] = (
    [{"id": letter, "label": letter} for letter in string.ascii_lowercase]
    + [
        {"id": "space", "label": " "},
        {"id": "period", "label": "."},
    ]
)

_DEFAULT_WORDS: list[dict] = [
    {"id": "w-hello", "label": "Hello"},
    {"id": "w-yes", "label": "yes"},
    {"id": "w-no", "label": "no"},
    {"id": "w-water", "label": "water"},
    {"id": "w-help", "label": "help"},
]


def build_alphabet(chars: list[dict], words: list[dict]) -> Alphabet:
    """
    Build and validate an :class:`Alphabet` from plain definitions.

    Args:
        chars: ``[{"id": ..., "label": ...}, ...]`` in scan order.
        words: ``[{"id": ..., "label": ...}, ...]`` in training order.

    Returns:
        A validated :class:`Alphabet`.

    Raises:
        ConfigurationError: If the alphabet is empty, a label is not a single
            glyph or is duplicated, or a training word uses an unknown glyph.
    """
    try:
        alphabet = Alphabet(
            chars=tuple(Character(id=str(d["id"]), label=str(d["label"])) for d in chars),
            training_words=tuple(Word(id=str(d["id"]), label=str(d["label"])) for d in words),
        )
    except (KeyError, TypeError) as exc:
        raise ConfigurationError(f"Malformed catalog entry: {exc}") from exc

    validate_alphabet(alphabet)
    return alphabet


def validate_alphabet(alphabet: Alphabet) -> None:
    """
    Check the catalog invariants.

    Raises:
        ConfigurationError: On the first violated invariant.
    """
    if not alphabet.chars:
        raise ConfigurationError("Alphabet must contain at least one character")

    seen_ids: set[str] = set()
    seen_labels: set[str] = set()
    for char in alphabet.chars:
        if len(char.label) != 1:
            raise ConfigurationError(
                f"Character {char.id!r} label must be a single glyph, got {char.label!r}"
            )
        if char.id in seen_ids:
            raise ConfigurationError(f"Duplicate character id: {char.id!r}")
        if char.key in seen_labels:
            raise ConfigurationError(f"Duplicate character label: {char.label!r}")
        seen_ids.add(char.id)
        seen_labels.add(char.key)

    for word in alphabet.training_words:
        if not word.label:
            raise ConfigurationError(f"Training word {word.id!r} is empty")
        missing = sorted({g for g in word.glyphs if g not in seen_labels})
        if missing:
            raise ConfigurationError(
                f"Training word {word.label!r} uses glyphs not in the alphabet: {missing}"
            )


def default_alphabet() -> Alphabet:
    """Return the built-in a–z, space, period catalog."""
    return build_alphabet(_DEFAULT_CHARS, _DEFAULT_WORDS)


def load_alphabet(path: Path | str | None = None) -> Alphabet:
    """
    Load the alphabet catalog from YAML, or the built-in catalog if *path* is None.

    The YAML layout is::

        chars:
          - {id: a, label: a}
        training:
          words:
            - {id: w-hi, label: hi}

    Args:
        path: Optional path to a catalog YAML file.

    Returns:
        A validated :class:`Alphabet`.

    Raises:
        FileNotFoundError: If *path* is given but does not exist.
        ConfigurationError: If the catalog violates an invariant.
    """
    if path is None:
        alphabet = default_alphabet()
        logger.info(
            "Using built-in alphabet (%d chars, %d training words)",
            len(alphabet), len(alphabet.training_words),
        )
        return alphabet

    resolved = Path(path)
    if not resolved.exists():
        raise FileNotFoundError(f"Alphabet file not found: {resolved}")

    with resolved.open("r", encoding="utf-8") as fh:
        raw = yaml.safe_load(fh) or {}
    if not isinstance(raw, dict):
        raise ConfigurationError(f"Alphabet file must be a YAML mapping, got: {type(raw)}")

    training = raw.get("training") or {}
    alphabet = build_alphabet(raw.get("chars") or [], training.get("words") or [])
    logger.info(
        "Loaded alphabet from %s (%d chars, %d training words)",
        resolved, len(alphabet), len(alphabet.training_words),
    )
    return alphabet
