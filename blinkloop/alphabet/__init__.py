"""
alphabet — Selectable characters and training words, loaded once at startup.
"""
