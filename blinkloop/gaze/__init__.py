"""
gaze — Eye-open signal sources and blink edge detection.

Provides a unified EyeFrame interface from webcam (MediaPipe FaceMesh),
keyboard simulation and scripted playback, plus the debouncing reducer
that turns the per-frame signal into blink start/end edges.
"""
