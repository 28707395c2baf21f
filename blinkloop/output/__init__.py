"""
output — Frame log records, the background frame recorder, and the
Tkinter scan board.
"""
