"""
blinkloop/gaze/eye_signal.py — Eye-open probabilities → per-frame boolean.

Every eye source (webcam, keyboard simulator, scripted playback) produces
EyeFrames; EyeSignalGate thresholds them into the boolean consumed by the
blink reducer. Also holds the Eye Aspect Ratio maths used by the webcam.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

import numpy as np

from blinkloop.core.config import BlinkConfig

logger = logging.getLogger(__name__)


@dataclass
class EyeFrame:
    """
    A single eye observation from a source.

    Attributes:
        left_open: Probability in [0, 1] that the left eye is open.
        right_open: Probability in [0, 1] that the right eye is open.
        timestamp: Monotonic time of capture.
        confidence: Face detection confidence; 0 means no face was found.
    """

    left_open: float
    right_open: float
    timestamp: float
    confidence: float = 1.0


class EyeSignalGate:
    """
    Threshold one eye's open probability into "open enough".

    The user selects by closing the watched eye while the other (reference)
    eye stays open. Frames where the reference eye is also closed, or where
    no face is detected, carry no usable signal and are skipped.

    Args:
        config: Blink configuration holding thresholds and the watched eye.
    """

    def __init__(self, config: BlinkConfig) -> None:
        self._watched = config.watched_eye
        self._open_threshold = config.open_threshold
        self._reference_threshold = config.reference_threshold
        self._require_reference = config.require_reference_eye_open
        self._min_confidence = config.min_confidence

    def evaluate(self, frame: EyeFrame) -> Optional[bool]:
        """
        Return whether the watched eye is open enough, or None to skip the frame.

        Args:
            frame: The latest eye observation.

        Returns:
            True/False for a usable frame; None when the frame must be ignored.
        """
        if frame.confidence < self._min_confidence:
            return None

        if self._watched == "right":
            watched, reference = frame.right_open, frame.left_open
        else:
            watched, reference = frame.left_open, frame.right_open

        if self._require_reference and reference < self._reference_threshold:
            return None

        return watched >= self._open_threshold


def compute_ear(landmarks: object, indices: tuple[int, ...]) -> float:
    """
    Compute the Eye Aspect Ratio (EAR) from 6 facial landmark points.

    EAR = (||p2-p6|| + ||p3-p5||) / (2 * ||p1-p4||)

    Args:
        landmarks: Indexable landmark list whose items have ``x`` and ``y``.
        indices: 6 landmark indices (corner, top×2, corner, bottom×2).

    Returns:
        EAR value; roughly 0.3 for an open eye, below 0.15 when closed.
    """
    pts = np.array([(landmarks[i].x, landmarks[i].y) for i in indices], dtype=float)

    vertical_1 = float(np.linalg.norm(pts[1] - pts[5]))
    vertical_2 = float(np.linalg.norm(pts[2] - pts[4]))
    horizontal = float(np.linalg.norm(pts[0] - pts[3]))

    if horizontal < 1e-6:
        return 0.0

    return (vertical_1 + vertical_2) / (2.0 * horizontal)


def ear_to_open_probability(ear: float, ear_closed: float, ear_open: float) -> float:
    """
    Map an EAR linearly onto an open probability in [0, 1].

    Args:
        ear: Measured eye aspect ratio.
        ear_closed: EAR at or below which the eye counts as fully closed.
        ear_open: EAR at or above which the eye counts as fully open.
    """
    span = ear_open - ear_closed
    if span <= 0:
        return 1.0 if ear >= ear_open else 0.0
    return float(np.clip((ear - ear_closed) / span, 0.0, 1.0))
