"""
blinkloop/gaze/tracker.py — MediaPipe FaceMesh eye-open tracker.

Captures webcam frames, extracts eyelid landmarks via MediaPipe FaceMesh,
and converts each eye's aspect ratio into an open probability. Reports zero
confidence if no face is detected, which the signal gate skips.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Optional

import cv2
import mediapipe as mp
import numpy as np

from blinkloop.core.config import BlinkConfig, CameraConfig
from blinkloop.gaze.eye_signal import EyeFrame, compute_ear, ear_to_open_probability

logger = logging.getLogger(__name__)

# EAR landmark indices (per eye, 6 points each), image-space left/right
_LEFT_EAR_IDX: tuple[int, ...] = (33, 160, 158, 133, 153, 144)
_RIGHT_EAR_IDX: tuple[int, ...] = (362, 385, 387, 263, 373, 380)


class EyeTracker:
    """
    Webcam eye-open tracker using MediaPipe FaceMesh.

    Runs capture in a background thread and exposes the most recent
    :class:`EyeFrame` via :meth:`get_frame`.

    Args:
        config: Camera hardware configuration and EAR calibration.
        blink_config: Used for the face detection confidence floor.
    """

    def __init__(self, config: CameraConfig, blink_config: BlinkConfig) -> None:
        """Record settings; the camera and FaceMesh are opened by :meth:`start`."""
        self._cfg = config
        self._cap: Optional[cv2.VideoCapture] = None
        self._running = False
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()

        self._latest_frame = EyeFrame(
            left_open=1.0, right_open=1.0, timestamp=time.monotonic(), confidence=0.0,
        )

        self._min_confidence = blink_config.min_confidence
        self._face_mesh: Optional[Any] = None

        logger.info(
            "EyeTracker initialised (camera=%d, %dx%d @ %dfps)",
            config.index, config.width, config.height, config.fps,
        )

    # ──────────────────────────────────────────
    # Lifecycle
    # ──────────────────────────────────────────

    def start(self) -> None:
        """
        Open the webcam and start the background capture thread.

        Raises:
            RuntimeError: If the camera cannot be opened.
        """
        self._cap = cv2.VideoCapture(self._cfg.index)
        if not self._cap.isOpened():
            self._cap.release()
            self._cap = None
            raise RuntimeError(
                f"Cannot open camera at index {self._cfg.index}. "
                "Check that a webcam is connected or use --mode sim."
            )
        self._cap.set(cv2.CAP_PROP_FRAME_WIDTH, self._cfg.width)
        self._cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self._cfg.height)
        self._cap.set(cv2.CAP_PROP_FPS, self._cfg.fps)

        self._face_mesh = mp.solutions.face_mesh.FaceMesh(  # type: ignore[attr-defined]
            static_image_mode=False,
            max_num_faces=2,
            refine_landmarks=False,
            min_detection_confidence=self._min_confidence,
            min_tracking_confidence=self._min_confidence,
        )

        self._running = True
        self._thread = threading.Thread(
            target=self._capture_loop, name="eye-capture", daemon=True
        )
        self._thread.start()
        logger.info("EyeTracker started")

    def stop(self) -> None:
        """Stop the capture thread and release camera resources."""
        self._running = False
        if self._thread:
            self._thread.join(timeout=3.0)
            self._thread = None
        if self._cap:
            self._cap.release()
            self._cap = None
        if self._face_mesh is not None:
            self._face_mesh.close()
            self._face_mesh = None
        logger.info("EyeTracker stopped")

    def get_frame(self) -> EyeFrame:
        """Return the most recent eye frame (thread-safe)."""
        with self._lock:
            return self._latest_frame

    # ──────────────────────────────────────────
    # Capture loop (background thread)
    # ──────────────────────────────────────────

    def _capture_loop(self) -> None:
        assert self._cap is not None
        mesh = self._face_mesh
        assert mesh is not None
        frame_interval = 1.0 / self._cfg.fps

        while self._running:
            t0 = time.monotonic()
            ret, bgr = self._cap.read()
            if not ret:
                logger.warning("Camera read failed — keeping previous frame")
                time.sleep(frame_interval)
                continue

            eye_frame = self._process_frame(bgr, mesh)

            with self._lock:
                self._latest_frame = eye_frame

            sleep_remaining = frame_interval - (time.monotonic() - t0)
            if sleep_remaining > 0:
                time.sleep(sleep_remaining)

    def _process_frame(self, bgr: np.ndarray, mesh: Any) -> EyeFrame:
        """Run FaceMesh on one BGR frame and convert both EARs to probabilities."""
        rgb = cv2.cvtColor(bgr, cv2.COLOR_BGR2RGB)
        rgb.flags.writeable = False
        results = mesh.process(rgb)

        timestamp = time.monotonic()

        if not results.multi_face_landmarks:
            return EyeFrame(left_open=1.0, right_open=1.0, timestamp=timestamp, confidence=0.0)

        if len(results.multi_face_landmarks) > 1:
            logger.warning("More than one face visible — using the first")

        landmarks = results.multi_face_landmarks[0].landmark
        left_ear = compute_ear(landmarks, _LEFT_EAR_IDX)
        right_ear = compute_ear(landmarks, _RIGHT_EAR_IDX)

        return EyeFrame(
            left_open=ear_to_open_probability(left_ear, self._cfg.ear_closed, self._cfg.ear_open),
            right_open=ear_to_open_probability(right_ear, self._cfg.ear_closed, self._cfg.ear_open),
            timestamp=timestamp,
            confidence=1.0,
        )
