"""
scan — Periodic tick clock and the highlighted-character state machine.

The clock only produces ticks; the state machine decides what each tick
means, applying queued pause/reset commands with fixed precedence.
"""
