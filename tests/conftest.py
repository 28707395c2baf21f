"""
tests/conftest.py — Shared fixtures.

Points the structured event logger at a per-test temporary directory so
test runs never write into the working tree.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from blinkloop.core.logger import configure_logger


@pytest.fixture(autouse=True)
def event_log_dir(tmp_path: Path) -> Path:
    """Per-test directory for the JSONL event log."""
    log_dir = tmp_path / "logs"
    configure_logger(log_dir)
    return log_dir
