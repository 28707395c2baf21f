"""
BlinkLoop — Blink-driven scanning alphabet for assistive communication.

Timed character scan → one-eye blink pause/reset → training word matching.
Designed for users who can reliably close one eye but cannot type or speak.
"""

__version__ = "1.0.0"
__author__ = "BlinkLoop Team"
