# Gesture+Galaxy - Gesture-Driven Particle Tree / Galaxy Morph
# Author: Gesture+Galaxy Team
# Version: 1.0.0

"""
Core modules for the gesture-driven particle display:
- geometry: Dual particle buffers (assembled tree / dispersed galaxy)
- gesture_signal: Hand landmarks to openness value
- control_signal: Shared dispersion scalar and its smoothing
- motion: Per-frame particle positions, flow field, topper ornament
- caption: Caption text particles
- camera: Webcam stream handler
- hand_tracking: MediaPipe hand landmark detection
- tracking_session: Gesture pipeline state machine
- renderer / ui: Preview window
"""

__version__ = "1.0.0"
__author__ = "Gesture+Galaxy Team"
