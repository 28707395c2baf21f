"""
blinkloop/core/config.py — Typed configuration loader for BlinkLoop.

Loads config/blinkloop.yaml and validates all values into typed dataclasses.
All downstream modules import from this module; never read YAML directly.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml

logger = logging.getLogger(__name__)


class ConfigurationError(ValueError):
    """
    Raised when configuration or catalog data violates a load-time invariant.

    Nothing recovers from it at runtime.
    """


# ──────────────────────────────────────────────
# Dataclass hierarchy (mirrors blinkloop.yaml)
# ──────────────────────────────────────────────


@dataclass(frozen=True)
class ScanConfig:
    """Scan cadence and mode."""

    interval_ms: int = 300
    training: bool = False


@dataclass(frozen=True)
class BlinkConfig:
    """Eye signal thresholds and sampling."""

    watched_eye: str = "right"
    open_threshold: float = 0.75
    reference_threshold: float = 0.75
    require_reference_eye_open: bool = True
    min_confidence: float = 0.5
    sample_interval_ms: int = 100


@dataclass(frozen=True)
class CameraConfig:
    """Configuration for the webcam capture device."""

    index: int = 0
    width: int = 640
    height: int = 480
    fps: int = 30
    ear_closed: float = 0.12
    ear_open: float = 0.28


@dataclass(frozen=True)
class RecorderConfig:
    """Frame log recording configuration."""

    enabled: bool = False
    directory: str = "recordings"
    session_prefix: str = "training"
    queue_size: int = 256

    @property
    def resolved_directory(self) -> Path:
        """Return the recordings directory as an absolute Path, expanding ~."""
        return Path(os.path.expanduser(self.directory))


@dataclass(frozen=True)
class LoggingConfig:
    """Logging configuration."""

    level: str = "INFO"
    log_dir: str = "logs"


@dataclass(frozen=True)
class AlphabetConfig:
    """Where the alphabet catalog comes from (None = built-in catalog)."""

    path: Optional[str] = None


@dataclass(frozen=True)
class BlinkLoopConfig:
    """Root configuration object — single source of truth for all settings."""

    scan: ScanConfig = field(default_factory=ScanConfig)
    blink: BlinkConfig = field(default_factory=BlinkConfig)
    camera: CameraConfig = field(default_factory=CameraConfig)
    recorder: RecorderConfig = field(default_factory=RecorderConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    alphabet: AlphabetConfig = field(default_factory=AlphabetConfig)


# ──────────────────────────────────────────────
# Loader
# ──────────────────────────────────────────────


def _resolve_path(config_path: Path | str | None) -> Path | None:
    """
    Find the config file to load, or None to use built-in defaults.

    Search order:
    1. *config_path* argument (if provided)
    2. BLINKLOOP_CONFIG environment variable
    3. ``config/blinkloop.yaml`` in the project root or working directory

    Raises:
        FileNotFoundError: If an explicitly named file does not exist.
    """
    if config_path is not None:
        resolved = Path(config_path)
        if not resolved.exists():
            raise FileNotFoundError(f"Config file not found: {resolved}")
        return resolved

    if "BLINKLOOP_CONFIG" in os.environ:
        resolved = Path(os.environ["BLINKLOOP_CONFIG"])
        if not resolved.exists():
            raise FileNotFoundError(
                f"BLINKLOOP_CONFIG points to missing file: {resolved}"
            )
        return resolved

    here = Path(__file__).resolve()
    for parent in [here.parent.parent.parent, Path.cwd()]:
        candidate = parent / "config" / "blinkloop.yaml"
        if candidate.exists():
            return candidate
    return None


def load_config(config_path: Path | str | None = None) -> BlinkLoopConfig:
    """
    Load, validate, and return a BlinkLoopConfig from a YAML file.

    Missing sections and keys fall back to the dataclass defaults.

    Args:
        config_path: Optional path to a ``blinkloop.yaml`` file.

    Returns:
        A fully populated and frozen :class:`BlinkLoopConfig` instance.

    Raises:
        ConfigurationError: If a YAML field is unknown or has an invalid value.
        FileNotFoundError: If *config_path* is explicitly given but does not exist.
    """
    resolved_path = _resolve_path(config_path)

    raw: dict = {}
    if resolved_path is not None:
        logger.info("Loading config from: %s", resolved_path)
        with resolved_path.open("r", encoding="utf-8") as fh:
            loaded = yaml.safe_load(fh) or {}
        if not isinstance(loaded, dict):
            raise ConfigurationError(
                f"Config file must be a YAML mapping, got: {type(loaded)}"
            )
        raw = loaded
    else:
        logger.info("No config file found — using built-in defaults")

    try:
        config = BlinkLoopConfig(
            scan=ScanConfig(**raw.get("scan", {})),
            blink=BlinkConfig(**raw.get("blink", {})),
            camera=CameraConfig(**raw.get("camera", {})),
            recorder=RecorderConfig(**raw.get("recorder", {})),
            logging=LoggingConfig(**raw.get("logging", {})),
            alphabet=AlphabetConfig(**raw.get("alphabet", {})),
        )
    except TypeError as exc:
        raise ConfigurationError(f"Invalid config value: {exc}") from exc

    validate_config(config)
    logger.debug("Config loaded: %s", config)
    return config


def validate_config(config: BlinkLoopConfig) -> None:
    """
    Validate range and cross-field constraints on a configuration.

    Raises:
        ConfigurationError: If any configured value violates a hard constraint.
    """
    scan, blink, camera = config.scan, config.blink, config.camera

    if scan.interval_ms <= 0:
        raise ConfigurationError(
            f"scan.interval_ms must be positive, got {scan.interval_ms}"
        )
    if blink.watched_eye not in {"left", "right"}:
        raise ConfigurationError(
            f"blink.watched_eye must be 'left' or 'right', got '{blink.watched_eye}'"
        )
    if not (0.4 <= blink.open_threshold <= 0.75):
        raise ConfigurationError(
            f"blink.open_threshold must be in [0.4, 0.75], got {blink.open_threshold}"
        )
    if not (0.0 < blink.reference_threshold <= 1.0):
        raise ConfigurationError(
            f"blink.reference_threshold must be in (0, 1], got {blink.reference_threshold}"
        )
    if not (0.0 <= blink.min_confidence <= 1.0):
        raise ConfigurationError(
            f"blink.min_confidence must be in [0, 1], got {blink.min_confidence}"
        )
    if blink.sample_interval_ms <= 0:
        raise ConfigurationError(
            f"blink.sample_interval_ms must be positive, got {blink.sample_interval_ms}"
        )
    if camera.fps <= 0:
        raise ConfigurationError(f"camera.fps must be positive, got {camera.fps}")
    if not (0.0 <= camera.ear_closed < camera.ear_open):
        raise ConfigurationError(
            "camera.ear_closed must be below camera.ear_open, got "
            f"{camera.ear_closed} >= {camera.ear_open}"
        )
    if config.recorder.queue_size <= 0:
        raise ConfigurationError(
            f"recorder.queue_size must be positive, got {config.recorder.queue_size}"
        )
    if config.logging.level.upper() not in {"DEBUG", "INFO", "WARN", "WARNING", "ERROR"}:
        raise ConfigurationError(f"logging.level is not a level name: {config.logging.level}")
