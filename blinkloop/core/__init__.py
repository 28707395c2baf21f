"""
core — Configuration, structured logging, and the scan session that
serialises every state transition onto one timeline.
"""
